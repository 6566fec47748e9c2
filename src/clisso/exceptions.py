"""Errors that end a clisso command with a specific exit status.

:func:`clisso.app.main` prints ``str(exc)`` for any :class:`ClissoError`
and exits with its ``exit_code``::

    ClissoError            1
      InvalidUsageError    2
      LoginError           3
      ConnectionError_     6
      ProtocolError        7
      ConfigError          1
      LoginSessionError    1
"""

from clisso.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_LOGIN_FAILURE,
    EXIT_PROTOCOL_ERROR,
)


class ClissoError(Exception):
    """Root of the hierarchy. *exit_code* overrides the class default."""

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(ClissoError):
    """Bad options, an incomplete profile or an unknown grant."""

    exit_code = EXIT_INVALID_USAGE


class LoginError(ClissoError):
    """The identity provider or the broker said no."""

    exit_code = EXIT_LOGIN_FAILURE


class ConnectionError_(ClissoError):
    """Could not reach, or lost, the broker or the identity provider.

    The underscore keeps the builtin ``ConnectionError`` usable.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ProtocolError(ClissoError):
    """The relay's event stream did not follow the login protocol."""

    exit_code = EXIT_PROTOCOL_ERROR


class ConfigError(ClissoError):
    exit_code = EXIT_GENERIC_FAILURE


class LoginSessionError(ClissoError):
    """Duplicate or unknown request id in the broker's correlation table."""

    exit_code = EXIT_GENERIC_FAILURE
