"""clisso -- browser-delegated OIDC/OAuth2 login for console applications.

A console program cannot show an identity provider's login page, so
clisso hands the interactive step to a web browser and waits for the
result. Two strategies are supported:

* **Relay** -- a small broker service (:mod:`clisso.broker`) issues a
  login identifier, returns the authorization URL over a Server-Sent
  Events stream, receives the identity provider's redirect, exchanges
  the authorization code, and pushes the tokens down the still-open
  stream.
* **Device grant** -- the console polls the identity provider directly
  using the OAuth2 Device Authorization Grant (:rfc:`8628`).

Typical workflow::

    clisso serve --port 8000                      # run the broker
    clisso login --relay-url http://localhost:8000/cli-login

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration, login profiles, broker config.
    exceptions: Exception hierarchy with exit-code mapping.
    sse: The event-stream codec shared by broker and relay client.
    broker: The login broker (correlation table, handlers, HTTP server).
"""

__version__ = "0.1.0"
