"""Relay login -- log in through a clisso broker.

The console never talks to the identity provider here. It opens a single
long-lived GET to the broker's begin-login endpoint and reads the event
stream:

1. ``auth-uri`` -- the authorization URL; handed to a callback (print it,
   open a browser).
2. ``logged-in`` -- the tokens as JSON; the login succeeded.
3. ``error`` -- the broker's failure reason; the login failed.

The connection stays open while the user is in the browser, so the read
side has no timeout. The broker bounds the wait with its own login timeout.

See Also:
    :mod:`clisso.broker` for the server side of this exchange.
    :mod:`clisso.plugins.device_grant` for the broker-less alternative.
"""

from __future__ import annotations

import logging
import threading
import webbrowser
from typing import Callable, Iterable

import httpx
from pydantic import ValidationError

from clisso import output
from clisso.auth.base import LoginPlugin
from clisso.exceptions import ConnectionError_, LoginError, ProtocolError
from clisso.models import LoginProfile, LoginResult
from clisso.sse import EVENT_AUTH_URI, EVENT_ERROR, EVENT_LOGGED_IN, iter_events

logger = logging.getLogger(__name__)


def login_with_relay(
    login_uri: str,
    on_auth_uri_received: Callable[[str], None],
    *,
    timeout: float = 30.0,
) -> LoginResult:
    """Log in through the broker at *login_uri*.

    Args:
        login_uri: Absolute URL of the broker's begin-login endpoint.
        on_auth_uri_received: Called inline with the authorization URL as
            soon as it arrives. Must return promptly; the stream is not
            read while it runs.
        timeout: Connect/write timeout in seconds. Reads never time out.

    Returns:
        The :class:`~clisso.models.LoginResult` carried by ``logged-in``.

    Raises:
        LoginError: If the broker answers with a non-200 status or sends an
            ``error`` event.
        ConnectionError_: If the broker cannot be reached or the connection
            drops mid-stream.
        ProtocolError: If the stream is malformed, carries an unknown
            event, or ends without a terminal event.
    """
    try:
        with httpx.stream(
            "GET",
            login_uri,
            headers={"Accept": "text/event-stream"},
            timeout=httpx.Timeout(timeout, read=None),
        ) as response:
            if response.status_code != 200:
                raise LoginError(
                    f"Login request returned status {response.status_code}, expected 200"
                )
            return _consume_login_stream(response.iter_lines(), on_auth_uri_received)
    except httpx.HTTPError as exc:
        raise ConnectionError_(f"Login request to {login_uri} failed: {exc}") from exc


def _consume_login_stream(
    lines: Iterable[str],
    on_auth_uri_received: Callable[[str], None],
) -> LoginResult:
    auth_uri_seen = False
    for event in iter_events(lines):
        logger.debug("Received login event '%s'", event.event)

        if event.event == EVENT_AUTH_URI:
            if auth_uri_seen:
                raise ProtocolError("Received more than one 'auth-uri' event")
            auth_uri_seen = True
            on_auth_uri_received(event.data)
        elif event.event == EVENT_LOGGED_IN:
            if not auth_uri_seen:
                raise ProtocolError("Received 'logged-in' before 'auth-uri'")
            try:
                return LoginResult.model_validate_json(event.data)
            except ValidationError as exc:
                raise ProtocolError("Received login tokens in invalid format") from exc
        elif event.event == EVENT_ERROR:
            # Setup failures on the broker arrive without a preceding auth-uri
            raise LoginError(f"Login failed: {event.data}")
        else:
            raise ProtocolError(f"Encountered unknown login event '{event.event}'")

    raise ProtocolError("Login event stream ended before the login finished")


class RelayLoginPlugin(LoginPlugin):
    """Log in through a clisso broker (relayed Authorization Code flow).

    Prints the authorization URL to stderr and, unless the profile disables
    it, opens it in the default browser.
    """

    @property
    def grant_type(self) -> str:
        return "relay"

    def validate_config(self, profile: LoginProfile) -> list[str]:
        errors: list[str] = []
        if not profile.relay_login_url:
            errors.append("relay requires 'relay_login_url'")
        return errors

    def login(self, profile: LoginProfile) -> LoginResult:
        assert profile.relay_login_url

        def on_auth_uri(auth_uri: str) -> None:
            output.notice("Open the following URL in your browser to log in:")
            output.notice(auth_uri)
            if profile.open_browser:
                # webbrowser.open may block on some platforms
                threading.Thread(target=webbrowser.open, args=(auth_uri,), daemon=True).start()
            output.info("Waiting for login...")

        return login_with_relay(
            profile.relay_login_url,
            on_auth_uri,
            timeout=float(profile.request_timeout),
        )
