"""Login broker -- the begin-login and redirect endpoints, free of HTTP plumbing.

:class:`LoginBroker` implements the two halves of the relayed Authorization
Code flow:

1. :meth:`LoginBroker.begin_login` -- issues a fresh request id, emits the
   identity provider's authorization URL (``state`` set to the id) as an
   ``auth-uri`` event, then blocks until the login completes and emits one
   terminal event (``logged-in`` or ``error``).
2. :meth:`LoginBroker.handle_redirect` -- receives the identity provider's
   redirect, exchanges the authorization code for tokens, and delivers the
   outcome to the waiting :meth:`begin_login` through the
   :class:`~clisso.broker.table.CorrelationTable`.

The HTTP layer in :mod:`clisso.broker.server` adapts these methods to
``http.server`` request handlers.
"""

from __future__ import annotations

import logging
import secrets
from http import HTTPStatus
from typing import Any, Callable, Mapping, NamedTuple, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx
from pydantic import ValidationError

from clisso.broker.table import CorrelationTable, PendingLogin
from clisso.exceptions import ConfigError, LoginError, LoginSessionError
from clisso.models import BrokerConfig, LoginOutcome, TokenResponse, validation_summary
from clisso.sse import EVENT_AUTH_URI, EVENT_ERROR, EVENT_LOGGED_IN, single_line

logger = logging.getLogger(__name__)

REQUEST_ID_BYTES = 8
"""Random bytes per login request id (hex encoded to 16 characters)."""

_REGISTER_ATTEMPTS = 3

EmitFn = Callable[[str, str], None]


class RedirectResponse(NamedTuple):
    """What the HTTP layer should send back to the browser after a redirect.

    Attributes:
        status: HTTP status code.
        message: Plain-text body (ignored when ``location`` is set).
        location: Redirect target; when set, ``status`` is a 308.
    """

    status: int
    message: str
    location: Optional[str] = None


class _RedirectFailure(Exception):
    """Internal: aborts redirect handling with a status and a message."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status


def generate_request_id() -> str:
    """Return an unguessable login request id from the system CSPRNG."""
    return secrets.token_hex(REQUEST_ID_BYTES)


class LoginBroker:
    """Relays one browser login per request id back to a waiting console client.

    Args:
        config: The broker's OIDC configuration. Read-only after
            construction.
        table: The correlation table to use. A private one is created when
            omitted.
    """

    def __init__(self, config: BrokerConfig, table: Optional[CorrelationTable] = None) -> None:
        self.config = config
        self.table = table if table is not None else CorrelationTable()

    # ------------------------------------------------------------------
    # Begin-login endpoint
    # ------------------------------------------------------------------

    def build_authorization_uri(self, request_id: str) -> str:
        """Return the IdP authorization URI with ``state`` set to *request_id*.

        Query parameters already present in the configured URI are kept.

        Raises:
            ConfigError: If the configured authorization URI is not an
                absolute URL.
        """
        try:
            parts = urlsplit(self.config.authorization_uri)
        except ValueError as exc:
            raise ConfigError(f"Invalid authorization URI: {exc}") from exc
        if not parts.scheme or not parts.netloc:
            raise ConfigError(
                f"Invalid authorization URI: {self.config.authorization_uri!r}"
            )

        query = dict(parse_qsl(parts.query, keep_blank_values=True))
        if self.config.scopes:
            query["scope"] = " ".join(self.config.scopes)
        query["state"] = request_id
        return urlunsplit(parts._replace(query=urlencode(query)))

    def begin_login(self, emit: EmitFn) -> None:
        """Run one login from the initiating client's point of view.

        Emits ``auth-uri`` followed by exactly one terminal event. On setup
        failures only a single ``error`` event is emitted. Unexpected
        errors after ``auth-uri`` are logged and reported to the client as
        an ``error`` event.

        Args:
            emit: Writes and flushes one ``(event, data)`` pair to the
                client. The :class:`OSError` it raises when the client is
                gone propagates after the pending entry has been removed.
        """
        try:
            pending = self._register_request_id()
        except (OSError, NotImplementedError, LoginSessionError) as exc:
            logger.error("Failed to generate request id: %s", exc)
            emit(EVENT_ERROR, "Failed to generate random request id")
            return
        request_id = pending.request_id

        try:
            auth_uri = self.build_authorization_uri(request_id)
        except ConfigError:
            self.table.discard(request_id)
            logger.warning(
                "Invalid OIDC authorization URI: %s", self.config.authorization_uri
            )
            emit(EVENT_ERROR, "Invalid authorization URI")
            return

        try:
            logger.info("Sending OIDC authorization URI to client req-id=%s", request_id)
            emit(EVENT_AUTH_URI, auth_uri)
        except Exception:
            self.table.discard(request_id)
            raise

        try:
            self._finish_login(pending, emit)
        except OSError:
            raise
        except Exception:
            self.table.discard(request_id)
            logger.exception("Unexpected error while serving login req-id=%s", request_id)
            emit(EVENT_ERROR, "internal broker error")

    def _finish_login(self, pending: PendingLogin, emit: EmitFn) -> None:
        request_id = pending.request_id
        # Wait for the redirect from the identity provider
        outcome = self.table.await_outcome(pending, self.config.login_timeout)
        logger.info("Received login result req-id=%s", request_id)

        if not outcome.ok:
            logger.warning("OIDC login failed: %s req-id=%s", outcome.error, request_id)
            emit(EVENT_ERROR, single_line(f"OIDC login failed, reason: {outcome.error}"))
            return

        assert outcome.result is not None
        logger.info("Sending successful login result to client req-id=%s", request_id)
        emit(EVENT_LOGGED_IN, outcome.result.model_dump_json())

    def _register_request_id(self) -> PendingLogin:
        for _ in range(_REGISTER_ATTEMPTS):
            try:
                return self.table.register(generate_request_id())
            except LoginSessionError:
                logger.warning("Request id collision, regenerating")
        raise LoginSessionError("Could not allocate a unique login request id")

    # ------------------------------------------------------------------
    # Redirect endpoint
    # ------------------------------------------------------------------

    def handle_redirect(self, method: str, query: Mapping[str, str]) -> RedirectResponse:
        """Handle the identity provider's redirect back to the broker.

        Args:
            method: The HTTP method of the request.
            query: Parsed query parameters (first value of each).

        Returns:
            The :class:`RedirectResponse` to send to the browser.
        """
        request_id = query.get("state", "")
        logger.info("Received OIDC login redirect req-id=%s", request_id)

        try:
            self._process_redirect(method, query)
            status, message = int(HTTPStatus.OK), "Login successful, you can close this window"
        except _RedirectFailure as exc:
            status, message = int(exc.status), str(exc)
        except Exception as exc:
            logger.exception("Unexpected error while handling OIDC redirect req-id=%s", request_id)
            if request_id:
                self.table.deliver(request_id, LoginOutcome.failure("internal broker error"))
            status, message = int(HTTPStatus.INTERNAL_SERVER_ERROR), str(exc)

        if status >= HTTPStatus.BAD_REQUEST:
            if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
                logger.error(
                    "OIDC redirect ended with error (status: %d): %s req-id=%s",
                    status, message, request_id,
                )
            else:
                logger.warning(
                    "OIDC redirect ended with error (status: %d): %s req-id=%s",
                    status, message, request_id,
                )
            if self.config.failed_redirect_uri:
                return self._redirect_to(self.config.failed_redirect_uri)
            if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
                return RedirectResponse(status, "An error was encountered while serving the request")
            return RedirectResponse(status, message)

        logger.info("Successfully finished handling OIDC login redirect req-id=%s", request_id)
        if self.config.success_redirect_uri:
            return self._redirect_to(self.config.success_redirect_uri)
        return RedirectResponse(status, message)

    def _process_redirect(self, method: str, query: Mapping[str, str]) -> None:
        if method != "GET":
            raise _RedirectFailure(
                HTTPStatus.METHOD_NOT_ALLOWED, f"HTTP method {method} is not allowed"
            )
        # The request id travels in ``state`` because it was sent to the IdP
        if "state" not in query:
            raise _RedirectFailure(
                HTTPStatus.BAD_REQUEST,
                "OIDC URL query parameter 'state' was expected, but is missing",
            )
        if "code" not in query:
            raise _RedirectFailure(
                HTTPStatus.BAD_REQUEST,
                "OIDC URL query parameter 'code' was expected, but is missing",
            )

        request_id = query["state"]
        try:
            tokens = self.exchange_code(query["code"])
        except LoginError as exc:
            self.table.deliver(
                request_id,
                LoginOutcome.failure("failed to retrieve tokens from authorization code"),
            )
            raise _RedirectFailure(
                HTTPStatus.INTERNAL_SERVER_ERROR,
                f"failed to retrieve tokens from authorization code: {exc}",
            ) from exc

        if not self.table.deliver(request_id, LoginOutcome.success(tokens.to_login_result())):
            raise _RedirectFailure(
                HTTPStatus.BAD_REQUEST,
                "received request id does not exist, the login attempt probably timed out",
            )

    def exchange_code(self, code: str) -> TokenResponse:
        """Exchange an authorization code for tokens at ``<base_uri>/token``.

        Args:
            code: The authorization code from the redirect.

        Returns:
            The parsed :class:`~clisso.models.TokenResponse`.

        Raises:
            LoginError: On transport errors, non-2xx responses, or a body
                without ``access_token``.
        """
        data: dict[str, str] = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "redirect_uri": self.config.redirect_uri,
        }

        try:
            response = httpx.post(
                self.config.token_uri,
                data=data,
                headers={"Accept": "application/json"},
                timeout=self.config.request_timeout,
            )
            response.raise_for_status()
            token_data: Any = response.json()
        except httpx.HTTPStatusError as exc:
            raise LoginError(
                f"Token exchange failed with status {exc.response.status_code}: "
                f"{exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise LoginError(f"Token exchange failed: {exc}") from exc
        except ValueError as exc:
            raise LoginError(f"Token response is not valid JSON: {exc}") from exc

        try:
            return TokenResponse.model_validate(token_data)
        except ValidationError as exc:
            raise LoginError(f"Invalid token response: {validation_summary(exc)}") from exc

    @staticmethod
    def _redirect_to(location: str) -> RedirectResponse:
        return RedirectResponse(int(HTTPStatus.PERMANENT_REDIRECT), "", location)
