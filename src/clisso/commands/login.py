"""Login command -- obtain tokens for a console application.

Implements the ``clisso login`` top-level command. The login target comes
from a saved profile (``--profile``), from command-line options, or from
both (options override the profile's fields). The resulting tokens are
printed to stdout; everything meant for the user goes to stderr.

Typical usage::

    clisso login --relay-url https://broker.example.com/cli-login
    clisso login --profile keycloak --json | jq -r .access_token
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from clisso.output import error, format_response, success


def login_command(
    profile_name: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Saved login profile to use."
    ),
    grant: Optional[str] = typer.Option(
        None, "--grant", "-g", help="Login grant: relay, device_grant."
    ),
    relay_url: Optional[str] = typer.Option(
        None, "--relay-url", help="Begin-login endpoint of a clisso broker."
    ),
    device_authorization_url: Optional[str] = typer.Option(
        None, "--device-authorization-url", help="IdP device authorization endpoint."
    ),
    token_url: Optional[str] = typer.Option(
        None, "--token-url", help="IdP token endpoint (device_grant)."
    ),
    client_id_source: Optional[str] = typer.Option(
        None,
        "--client-id-source",
        help="Client id source: env:VAR, file:/path, prompt, value:ID.",
    ),
    scopes: Optional[list[str]] = typer.Option(
        None, "--scope", help="Scope to request (repeatable)."
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the login URL instead of opening a browser."
    ),
) -> None:
    """Log in and print the access token, refresh token and expiration.

    Raises:
        typer.Exit: With the error's exit code when the profile cannot be
            loaded or the login fails.

    Example::

        clisso login --relay-url https://broker.example.com/cli-login
        clisso login --grant device_grant \\
            --device-authorization-url https://sso.example.com/device \\
            --token-url https://sso.example.com/token \\
            --client-id-source env:CLIENT_ID
    """
    from clisso.auth import create_default_manager
    from clisso.config import load_profile
    from clisso.exceptions import ClissoError
    from clisso.models import LoginProfile

    overrides: dict[str, Any] = {
        "grant": grant,
        "relay_login_url": relay_url,
        "device_authorization_url": device_authorization_url,
        "token_url": token_url,
        "client_id_source": client_id_source,
        "scopes": scopes or None,
        "open_browser": False if no_browser else None,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}

    try:
        if profile_name:
            profile = load_profile(profile_name).model_copy(update=overrides)
        else:
            if "grant" not in overrides:
                overrides["grant"] = _infer_grant(overrides)
            profile = LoginProfile(name="cli", **overrides)

        result = create_default_manager().login(profile)
    except ClissoError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    success("Login successful.")
    format_response(result.model_dump(mode="json"))


def _infer_grant(options: dict[str, Any]) -> str:
    from clisso.exceptions import InvalidUsageError

    if "relay_login_url" in options:
        return "relay"
    if "device_authorization_url" in options:
        return "device_grant"
    raise InvalidUsageError(
        "Nothing to log in to: pass --profile, --relay-url, or --device-authorization-url"
    )
