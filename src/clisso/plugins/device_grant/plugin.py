"""OAuth2 Device Authorization Grant (:rfc:`8628`) login plugin.

For headless terminals (SSH, Docker, CI) where no broker is deployed and
a browser cannot be opened locally. The console talks to the identity
provider directly.

Flow:
    1. POST to the device authorization endpoint to obtain ``device_code``
       + ``user_code``.
    2. Show the user "Go to {verification_uri} and enter code: {user_code}".
    3. Poll the token endpoint until the user authorizes, denies, or the
       code expires.

See Also:
    :class:`clisso.auth.base.LoginPlugin` for the base interface.
    :mod:`clisso.plugins.relay` for the broker-based alternative.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx
from pydantic import ValidationError

from clisso import output
from clisso.auth.base import LoginPlugin
from clisso.config import resolve_credential
from clisso.exceptions import ConnectionError_, LoginError
from clisso.models import (
    DeviceAuthorization,
    DeviceGrantConfig,
    LoginProfile,
    LoginResult,
    TokenResponse,
    validation_summary,
)

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"

SLOW_DOWN_INCREMENT = 5
"""Seconds added to the poll interval on every ``slow_down`` (:rfc:`8628` section 3.5)."""


def login_with_device_grant(
    config: DeviceGrantConfig,
    on_verification: Callable[[str, str], None],
) -> LoginResult:
    """Run the device authorization grant against the identity provider.

    Args:
        config: Endpoints, client id and scopes.
        on_verification: Called once with ``(verification_uri, user_code)``
            before polling starts, so the caller can direct the user.

    Returns:
        The tokens issued once the user has authorized the device.

    Raises:
        LoginError: If the device authorization request is rejected, the
            user denies access, the code expires, the identity provider
            reports any other error, or the expiry window passes.
        ConnectionError_: If an endpoint cannot be reached. Transport
            errors are not retried.
    """
    authorization = request_device_authorization(config)
    on_verification(authorization.verification_uri, authorization.user_code)
    return poll_for_token(config, authorization)


def request_device_authorization(config: DeviceGrantConfig) -> DeviceAuthorization:
    """POST to the device authorization endpoint.

    Raises:
        LoginError: On a non-200 status, a non-JSON body, or a body
            missing ``device_code``/``user_code``.
        ConnectionError_: On transport errors.
    """
    data: dict[str, str] = {"client_id": config.client_id}
    if config.scopes:
        data["scope"] = " ".join(config.scopes)

    try:
        response = httpx.post(
            config.device_authorization_uri,
            data=data,
            headers={"Accept": "application/json"},
            timeout=config.request_timeout,
        )
    except httpx.HTTPError as exc:
        raise ConnectionError_(f"Device authorization request failed: {exc}") from exc

    if response.status_code != 200:
        raise LoginError(
            f"Device authorization request failed with status "
            f"{response.status_code}, expected 200: {response.text}"
        )

    try:
        body: Any = response.json()
    except ValueError as exc:
        raise LoginError("Device authorization response is not valid JSON") from exc

    try:
        return DeviceAuthorization.model_validate(body)
    except ValidationError as exc:
        raise LoginError(
            "Device authorization response missing 'device_code' or 'user_code'"
        ) from exc


def poll_for_token(
    config: DeviceGrantConfig,
    authorization: DeviceAuthorization,
) -> LoginResult:
    """Poll the token endpoint until the user authorizes or the code expires.

    Implements :rfc:`8628` section 3.5: ``authorization_pending`` keeps
    polling, ``slow_down`` adds :data:`SLOW_DOWN_INCREMENT` seconds to the
    interval, ``access_denied`` and ``expired_token`` end the login, and any
    other error code is reported verbatim. A poll that would start after
    the ``expires_in`` window is never sent.

    Raises:
        LoginError: On denial, expiry, other IdP errors, unexpected
            responses, or when the window passes without success.
        ConnectionError_: On transport errors.
    """
    deadline = time.monotonic() + authorization.expires_in
    interval = max(authorization.interval, 1)

    data: dict[str, str] = {
        "grant_type": DEVICE_CODE_GRANT_TYPE,
        "device_code": authorization.device_code,
        "client_id": config.client_id,
    }

    while time.monotonic() + interval <= deadline:
        time.sleep(interval)

        try:
            response = httpx.post(
                config.token_uri,
                data=data,
                headers={"Accept": "application/json"},
                timeout=config.request_timeout,
            )
        except httpx.HTTPError as exc:
            raise ConnectionError_(f"Token polling failed: {exc}") from exc

        try:
            body: Any = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {}

        if response.status_code == 200:
            try:
                return TokenResponse.model_validate(body).to_login_result()
            except ValidationError as exc:
                raise LoginError(f"Invalid token response: {validation_summary(exc)}") from exc

        error = body.get("error", "")
        if not error:
            raise LoginError(
                f"Identity provider responded with unexpected status "
                f"{response.status_code} while polling the token endpoint"
            )

        if error == "authorization_pending":
            logger.debug("Authorization pending, polling again in %ds", interval)
            continue
        if error == "slow_down":
            interval += SLOW_DOWN_INCREMENT
            logger.debug("Asked to slow down, poll interval is now %ds", interval)
            continue
        if error == "access_denied":
            raise LoginError("Authorization denied by user")
        if error == "expired_token":
            raise LoginError("Device code expired, please try again")

        description = body.get("error_description")
        message = f"Device authorization failed with error '{error}'"
        if description:
            message += f": {description}"
        raise LoginError(message)

    raise LoginError(
        f"Device authorization timed out after {authorization.expires_in}s, please try again"
    )


class DeviceGrantPlugin(LoginPlugin):
    """Log in via OAuth2 Device Authorization Grant (:rfc:`8628`).

    The user is shown a short code to enter at a verification URI on any
    device while the console polls the identity provider.
    """

    @property
    def grant_type(self) -> str:
        return "device_grant"

    def validate_config(self, profile: LoginProfile) -> list[str]:
        errors: list[str] = []
        if not profile.device_authorization_url:
            errors.append("device_grant requires 'device_authorization_url'")
        if not profile.token_url:
            errors.append("device_grant requires 'token_url'")
        if not profile.client_id_source:
            errors.append("device_grant requires 'client_id_source'")
        return errors

    def login(self, profile: LoginProfile) -> LoginResult:
        assert profile.device_authorization_url
        assert profile.token_url
        assert profile.client_id_source

        config = DeviceGrantConfig(
            device_authorization_uri=profile.device_authorization_url,
            token_uri=profile.token_url,
            client_id=resolve_credential(profile.client_id_source),
            scopes=profile.scopes,
            request_timeout=float(profile.request_timeout),
        )
        return login_with_device_grant(config, self._display_user_code)

    @staticmethod
    def _display_user_code(verification_uri: str, user_code: str) -> None:
        output.notice(f"Go to: {verification_uri}")
        output.notice(f"Enter code: {user_code}")
        output.info("Waiting for authorization...")
