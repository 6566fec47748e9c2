"""HTTP surface of the login broker, built on :mod:`http.server`.

:class:`BrokerServer` is a :class:`~http.server.ThreadingHTTPServer`, so
every request runs in its own thread. A begin-login request can sit in
its wait for minutes while the redirect for the same login, and any
number of unrelated logins, are served next to it.

Routes (paths are configurable):

* ``GET /cli-login`` -- begin a login; ``text/event-stream`` response.
* ``GET /cli-logged-in?state=<id>&code=<code>`` -- the IdP redirect.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional, cast
from urllib.parse import parse_qs, urlsplit

from clisso.broker.handlers import LoginBroker
from clisso.models import BrokerConfig
from clisso.sse import encode_event

logger = logging.getLogger(__name__)

DEFAULT_LOGIN_PATH = "/cli-login"
DEFAULT_REDIRECT_PATH = "/cli-logged-in"


class BrokerRequestHandler(BaseHTTPRequestHandler):
    """Adapts :class:`~clisso.broker.handlers.LoginBroker` to ``http.server``."""

    server_version = "clisso-broker"

    def do_GET(self) -> None:
        self._dispatch()

    def do_POST(self) -> None:
        self._dispatch()

    def do_PUT(self) -> None:
        self._dispatch()

    def do_PATCH(self) -> None:
        self._dispatch()

    def do_DELETE(self) -> None:
        self._dispatch()

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)

    @property
    def broker_server(self) -> BrokerServer:
        return cast(BrokerServer, self.server)

    def _dispatch(self) -> None:
        parts = urlsplit(self.path)
        server = self.broker_server

        if parts.path == server.login_path:
            if self.command != "GET":
                self._send_text(HTTPStatus.METHOD_NOT_ALLOWED, f"HTTP method {self.command} is not allowed")
                return
            self._stream_login()
        elif parts.path == server.redirect_path:
            query = {
                key: values[0]
                for key, values in parse_qs(parts.query, keep_blank_values=True).items()
            }
            response = server.broker.handle_redirect(self.command, query)
            if response.location:
                self.send_response(response.status)
                self.send_header("Location", response.location)
                self.send_header("Content-Length", "0")
                self.end_headers()
            else:
                self._send_text(response.status, response.message)
        else:
            self._send_text(HTTPStatus.NOT_FOUND, "Not found")

    def _stream_login(self) -> None:
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "text/event-stream")
        self.send_header("Cache-Control", "no-cache")
        self.send_header("Connection", "keep-alive")
        self.end_headers()

        def emit(event: str, data: str) -> None:
            logger.debug("Sending SSE event '%s' with data '%s'", event, data)
            self.wfile.write(encode_event(event, data))
            self.wfile.flush()

        try:
            self.broker_server.broker.begin_login(emit)
        except OSError as exc:
            logger.warning("Login client disconnected: %s", exc)
        except Exception:
            logger.exception("Login stream aborted")
        # The stream has no length, so the end of the body is the end of the connection
        self.close_connection = True

    def _send_text(self, status: int, message: str) -> None:
        body = f"{message}\n".encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


class BrokerServer(ThreadingHTTPServer):
    """Threaded HTTP server exposing one :class:`LoginBroker`.

    Args:
        address: ``(host, port)`` to bind; port ``0`` picks a free port.
        broker: The broker serving both endpoints.
        login_path: Path of the begin-login endpoint.
        redirect_path: Path of the redirect endpoint (must match the
            path of ``BrokerConfig.redirect_uri``).
    """

    daemon_threads = True

    def __init__(
        self,
        address: tuple[str, int],
        broker: LoginBroker,
        login_path: str = DEFAULT_LOGIN_PATH,
        redirect_path: str = DEFAULT_REDIRECT_PATH,
    ) -> None:
        self.broker = broker
        self.login_path = login_path
        self.redirect_path = redirect_path
        super().__init__(address, BrokerRequestHandler)

    @property
    def base_url(self) -> str:
        host, port = self.server_address[:2]
        if isinstance(host, bytes):
            host = host.decode()
        if host in ("", "0.0.0.0"):
            host = "127.0.0.1"
        return f"http://{host}:{port}"


def create_server(
    config: BrokerConfig,
    host: str = "127.0.0.1",
    port: int = 0,
    login_path: str = DEFAULT_LOGIN_PATH,
    redirect_path: Optional[str] = None,
) -> BrokerServer:
    """Build a :class:`BrokerServer` for *config* without starting it.

    When *redirect_path* is omitted it is taken from the path of
    ``config.redirect_uri``, falling back to :data:`DEFAULT_REDIRECT_PATH`.
    """
    if redirect_path is None:
        redirect_path = urlsplit(config.redirect_uri).path or DEFAULT_REDIRECT_PATH
    return BrokerServer((host, port), LoginBroker(config), login_path, redirect_path)


def serve(
    config: BrokerConfig,
    host: str = "127.0.0.1",
    port: int = 8000,
    login_path: str = DEFAULT_LOGIN_PATH,
    redirect_path: Optional[str] = None,
) -> None:
    """Run the broker until interrupted."""
    server = create_server(config, host, port, login_path, redirect_path)
    logger.info(
        "Login broker listening on %s (login: %s, redirect: %s)",
        server.base_url, server.login_path, server.redirect_path,
    )
    try:
        server.serve_forever()
    finally:
        server.server_close()
        logger.info("Login broker stopped")
