"""Canonical Pydantic models shared across all clisso modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Login values** -- produced by the broker and the clients:
    :class:`LoginResult` and :class:`LoginOutcome`.

**Identity-provider responses** -- parsed from the IdP's JSON bodies:
    :class:`TokenResponse` and :class:`DeviceAuthorization`.

**Configuration models** -- supplied once and read-only thereafter:
    :class:`BrokerConfig`, :class:`DeviceGrantConfig`, and
    :class:`LoginProfile` (serialised as JSON in the user's config
    directory).

All models use Pydantic v2. IdP response models ignore unknown keys so that
provider-specific extras (``id_token``, ``token_type``, ``scope``, ...) never
break parsing.
"""

from __future__ import annotations

from typing import Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

DEFAULT_POLL_INTERVAL = 5
"""Poll interval in seconds when the IdP does not specify one (:rfc:`8628` section 3.5)."""

DEFAULT_LOGIN_TIMEOUT = 300.0
"""Seconds a user has to finish logging in after the broker issued the authorization URL."""


# --- Login values ---


class LoginResult(BaseModel):
    """Tokens handed back to the calling application after a successful login.

    The JSON form of this model is exactly the payload of the ``logged-in``
    event sent by the broker::

        {"access_token": "...", "refresh_token": "...", "expiration": 600}

    Attributes:
        access_token: The OIDC/OAuth2 access token.
        refresh_token: The refresh token, or ``""`` if the IdP issued none.
        expiration: The ``expires_in`` value from the token endpoint, in
            seconds.
    """

    access_token: str
    refresh_token: str = ""
    expiration: int = 0


class LoginOutcome(BaseModel):
    """Terminal state of one login attempt -- either a success or a failure.

    Exactly one outcome is produced per pending login. Build instances with
    :meth:`success` or :meth:`failure` rather than the constructor.
    """

    model_config = ConfigDict(frozen=True)

    result: Optional[LoginResult] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, result: LoginResult) -> LoginOutcome:
        return cls(result=result)

    @classmethod
    def failure(cls, reason: str) -> LoginOutcome:
        return cls(error=reason)

    @property
    def ok(self) -> bool:
        """Whether this outcome carries tokens."""
        return self.result is not None and self.error is None


def validation_summary(exc: ValidationError) -> str:
    """One-line ``field: problem; ...`` description of a pydantic error."""
    return "; ".join(
        "{}: {}".format(".".join(map(str, err["loc"])) or "body", err["msg"])
        for err in exc.errors()
    )


# --- Identity-provider responses ---


class TokenResponse(BaseModel):
    """Successful response of an OAuth2 token endpoint (:rfc:`6749` section 5.1)."""

    access_token: str
    refresh_token: str = ""
    expires_in: int = 0

    @field_validator("refresh_token", "expires_in", mode="before")
    @classmethod
    def _null_is_absent(cls, value: object, info: ValidationInfo) -> object:
        # Some providers send explicit nulls for fields they do not issue
        if value is None:
            return cls.model_fields[info.field_name].default
        return value

    def to_login_result(self) -> LoginResult:
        return LoginResult(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expiration=self.expires_in,
        )


class DeviceAuthorization(BaseModel):
    """Response of a device authorization endpoint (:rfc:`8628` section 3.2).

    Google returns ``verification_url`` instead of the standard
    ``verification_uri``; both spellings are accepted.
    """

    device_code: str
    user_code: str
    verification_uri: str = Field(
        default="",
        validation_alias=AliasChoices("verification_uri", "verification_url"),
    )
    verification_uri_complete: Optional[str] = None
    expires_in: int = 1800
    interval: int = DEFAULT_POLL_INTERVAL

    @field_validator("interval", mode="before")
    @classmethod
    def _default_interval(cls, value: object) -> object:
        # The interval is optional and a zero value means "not specified".
        if value in (None, 0, "0", ""):
            return DEFAULT_POLL_INTERVAL
        return value


# --- Configuration ---


class BrokerConfig(BaseModel):
    """OIDC configuration of one login broker instance.

    Supplied once when the broker is constructed and never mutated
    afterwards, so request handlers read it without synchronisation.

    Example::

        BrokerConfig(
            base_uri="https://sso.example.com/realms/main/protocol/openid-connect",
            redirect_uri="https://broker.example.com/cli-logged-in",
            authorization_uri="https://sso.example.com/realms/main/protocol/openid-connect/auth",
            client_id="cli",
            client_secret="s3cret",
        )
    """

    model_config = ConfigDict(frozen=True)

    base_uri: str = Field(description="Token endpoint base; tokens are fetched from <base_uri>/token")
    redirect_uri: str = Field(description="Redirect URI registered with the IdP")
    authorization_uri: str = Field(description="IdP authorization endpoint")
    client_id: str
    client_secret: str
    scopes: list[str] = Field(
        default_factory=list, description="Scopes added to the authorization URI"
    )
    login_timeout: float = Field(
        default=DEFAULT_LOGIN_TIMEOUT,
        gt=0,
        description="Seconds a user has to log in after the login was initiated",
    )
    success_redirect_uri: Optional[str] = Field(
        default=None, description="Where to send the browser after a successful login"
    )
    failed_redirect_uri: Optional[str] = Field(
        default=None, description="Where to send the browser after a failed login"
    )
    request_timeout: float = Field(
        default=30.0, gt=0, description="Timeout for calls to the IdP, in seconds"
    )

    @property
    def token_uri(self) -> str:
        return f"{self.base_uri.rstrip('/')}/token"


class DeviceGrantConfig(BaseModel):
    """Inputs of the device authorization grant client."""

    model_config = ConfigDict(frozen=True)

    device_authorization_uri: str
    token_uri: str
    client_id: str
    scopes: list[str] = Field(default_factory=list)
    request_timeout: float = 30.0


class LoginProfile(BaseModel):
    """A saved console-side login target.

    Profiles live as JSON files under the profiles directory and are managed
    with ``clisso profile``. The ``grant`` field selects the login plugin;
    the remaining fields supply plugin-specific parameters.

    Example::

        LoginProfile(
            name="keycloak",
            grant="device_grant",
            device_authorization_url="http://localhost:8080/realms/test/protocol/openid-connect/auth/device",
            token_url="http://localhost:8080/realms/test/protocol/openid-connect/token",
            client_id_source="env:KEYCLOAK_CLIENT_ID",
        )
    """

    name: str = Field(description="Profile name, also the file stem on disk")
    grant: str = Field(default="relay", description="Login grant: relay, device_grant")
    # Relay
    relay_login_url: Optional[str] = Field(
        default=None, description="Begin-login endpoint of a clisso broker"
    )
    open_browser: bool = Field(
        default=True, description="Open the authorization URL in a browser"
    )
    # Device grant
    device_authorization_url: Optional[str] = None
    token_url: Optional[str] = None
    client_id_source: Optional[str] = Field(
        default=None,
        description="Credential source for the client id: env:VAR, file:/path, prompt, value:ID",
    )
    scopes: list[str] = Field(default_factory=list)
    request_timeout: int = Field(default=30, description="Request timeout in seconds")
