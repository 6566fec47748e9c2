"""Process exit statuses.

Scripts wrapping ``clisso login`` can tell a refused login (3) from an
unreachable broker (6) or a broken relay stream (7) without reading stderr.
"""

EXIT_SUCCESS = 0
EXIT_GENERIC_FAILURE = 1
EXIT_INVALID_USAGE = 2

# Denied, expired or timed out at the identity provider
EXIT_LOGIN_FAILURE = 3

EXIT_CONNECTION_ERROR = 6
EXIT_PROTOCOL_ERROR = 7
