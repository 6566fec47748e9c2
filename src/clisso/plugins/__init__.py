"""Built-in login plugins.

* :mod:`clisso.plugins.relay` -- relayed Authorization Code flow through a
  clisso broker.
* :mod:`clisso.plugins.device_grant` -- OAuth2 Device Authorization Grant
  (:rfc:`8628`) directly against the identity provider.
"""
