"""Relay login plugin: log in through a clisso broker.

See Also:
    :class:`~clisso.plugins.relay.plugin.RelayLoginPlugin`
    :func:`~clisso.plugins.relay.plugin.login_with_relay`
"""

from clisso.plugins.relay.plugin import RelayLoginPlugin, login_with_relay

__all__ = ["RelayLoginPlugin", "login_with_relay"]
