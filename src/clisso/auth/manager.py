"""Login manager -- registry and dispatcher for login plugins.

Call :func:`create_default_manager` to get a manager pre-loaded with the
built-in ``relay`` and ``device_grant`` plugins.
"""

from __future__ import annotations

from clisso.auth.base import LoginPlugin
from clisso.exceptions import InvalidUsageError
from clisso.models import LoginProfile, LoginResult


class LoginManager:
    """Registry and dispatcher for login plugins.

    Example::

        from clisso.auth import LoginManager
        from clisso.plugins.relay import RelayLoginPlugin

        manager = LoginManager()
        manager.register(RelayLoginPlugin())
        result = manager.login(profile)
    """

    def __init__(self) -> None:
        self._plugins: dict[str, LoginPlugin] = {}

    def register(self, plugin: LoginPlugin) -> None:
        """Register *plugin* under its grant type, replacing any previous one."""
        self._plugins[plugin.grant_type] = plugin

    def get_plugin(self, grant_type: str) -> LoginPlugin:
        """Retrieve a registered plugin by grant type.

        Raises:
            InvalidUsageError: If no plugin is registered for *grant_type*.
        """
        plugin = self._plugins.get(grant_type)
        if plugin is None:
            available = ", ".join(sorted(self._plugins)) or "(none)"
            raise InvalidUsageError(
                f"Unknown login grant '{grant_type}'. Available grants: {available}"
            )
        return plugin

    def login(self, profile: LoginProfile) -> LoginResult:
        """Validate *profile* and run the login with the matching plugin.

        Raises:
            InvalidUsageError: If the grant is unknown or the profile is
                missing fields the plugin needs.
        """
        plugin = self.get_plugin(profile.grant)
        problems = plugin.validate_config(profile)
        if problems:
            raise InvalidUsageError(
                f"Profile '{profile.name}' is not usable: " + "; ".join(problems)
            )
        return plugin.login(profile)

    def list_grants(self) -> list[str]:
        return sorted(self._plugins.keys())


def create_default_manager() -> LoginManager:
    """Create a :class:`LoginManager` with the ``relay`` and ``device_grant`` plugins."""
    from clisso.plugins.device_grant import DeviceGrantPlugin
    from clisso.plugins.relay import RelayLoginPlugin

    manager = LoginManager()
    manager.register(RelayLoginPlugin())
    manager.register(DeviceGrantPlugin())
    return manager
