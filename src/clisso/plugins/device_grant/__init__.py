"""OAuth2 Device Authorization Grant (:rfc:`8628`) login plugin.

Implements the ``device_grant`` login for browserless terminals. The user
is shown a URL and a short code to enter on another device while the CLI
polls for authorization.

See Also:
    :class:`~clisso.plugins.device_grant.plugin.DeviceGrantPlugin`
    :func:`~clisso.plugins.device_grant.plugin.login_with_device_grant`
"""

from clisso.plugins.device_grant.plugin import DeviceGrantPlugin, login_with_device_grant

__all__ = ["DeviceGrantPlugin", "login_with_device_grant"]
