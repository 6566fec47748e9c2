"""Login broker that relays a browser login back to a waiting console client.

The main entry points are:

- :class:`CorrelationTable` -- pairs a started login with its completion.
- :class:`LoginBroker` -- the begin-login and redirect endpoints.
- :class:`BrokerServer` / :func:`serve` -- the threaded HTTP server.

Typical usage::

    from clisso.broker import serve
    from clisso.config import load_broker_config

    serve(load_broker_config(), host="0.0.0.0", port=8000)
"""

from clisso.broker.handlers import LoginBroker, RedirectResponse, generate_request_id
from clisso.broker.server import BrokerServer, create_server, serve
from clisso.broker.table import CorrelationTable, PendingLogin

__all__ = [
    "BrokerServer",
    "CorrelationTable",
    "LoginBroker",
    "PendingLogin",
    "RedirectResponse",
    "create_server",
    "generate_request_id",
    "serve",
]
