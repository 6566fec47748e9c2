"""Abstract base class for login plugins.

A login plugin turns a :class:`~clisso.models.LoginProfile` into a
:class:`~clisso.models.LoginResult` by driving one interactive grant
(relay through a broker, or the device authorization grant).

To add a grant, subclass :class:`LoginPlugin`, set :attr:`~LoginPlugin.grant_type`,
implement :meth:`~LoginPlugin.login`, and optionally override
:meth:`~LoginPlugin.validate_config`.

See Also:
    :mod:`clisso.auth.manager` for plugin registration and dispatch.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from clisso.models import LoginProfile, LoginResult


class LoginPlugin(ABC):
    """Abstract base class for login plugins.

    Plugins are registered with :class:`~clisso.auth.manager.LoginManager`
    and looked up by their ``grant_type`` at runtime.
    """

    @property
    @abstractmethod
    def grant_type(self) -> str:
        """Return the unique grant identifier this plugin handles (``"relay"``, ``"device_grant"``)."""
        ...

    @abstractmethod
    def login(self, profile: LoginProfile) -> LoginResult:
        """Run the interactive login described by *profile*.

        Args:
            profile: The login target.

        Returns:
            The tokens obtained from the identity provider.

        Raises:
            LoginError: If the identity provider or the broker reports a
                failure, or the login times out.
            ConnectionError_: If the endpoint cannot be reached.
            ProtocolError: If the broker's event stream is malformed.
        """
        ...

    def validate_config(self, profile: LoginProfile) -> list[str]:
        """Return human-readable problems with *profile*; empty when usable."""
        return []
