"""Plugin-based console login for clisso.

The main entry points are:

- :class:`LoginPlugin` -- abstract base class for a login grant.
- :class:`LoginManager` -- maps grant names to plugin instances and runs
  the login for a :class:`~clisso.models.LoginProfile`.
- :func:`create_default_manager` -- a :class:`LoginManager` pre-loaded
  with the built-in grants.

Typical usage::

    from clisso.auth import create_default_manager

    result = create_default_manager().login(profile)
    print(result.access_token)
"""

from clisso.auth.base import LoginPlugin
from clisso.auth.manager import LoginManager, create_default_manager

__all__ = [
    "LoginManager",
    "LoginPlugin",
    "create_default_manager",
]
