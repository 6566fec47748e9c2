"""Profile commands -- manage saved login profiles.

Provides the ``clisso profile`` sub-command group. A profile records
which grant to use and where to reach the broker or the identity provider,
so that ``clisso login --profile NAME`` needs no further options.

Typical workflow::

    clisso profile add work --relay-url https://broker.example.com/cli-login
    clisso profile list
    clisso login --profile work
"""

from __future__ import annotations

from typing import Optional

import typer

from clisso.output import error, format_response, get_output, info, success, suggest


profile_app = typer.Typer(no_args_is_help=True)


@profile_app.command("list")
def profile_list() -> None:
    """List saved profiles with their grant and endpoint."""
    from clisso.config import list_profiles, load_profile
    from clisso.exceptions import ConfigError

    names = list_profiles()
    if not names:
        info("No profiles configured.")
        suggest("Create one: clisso profile add NAME --relay-url URL")
        return

    rows: list[list[str]] = []
    for name in names:
        try:
            profile = load_profile(name)
        except ConfigError:
            rows.append([name, "error", "-"])
            continue
        endpoint = (
            profile.relay_login_url
            if profile.grant == "relay"
            else profile.device_authorization_url
        )
        rows.append([name, profile.grant, endpoint or "-"])

    get_output().print_table(["Profile", "Grant", "Endpoint"], rows, title="Login Profiles")


@profile_app.command("show")
def profile_show(
    profile_name: str = typer.Argument(help="Profile name."),
) -> None:
    """Show a profile's settings."""
    from clisso.config import load_profile
    from clisso.exceptions import ConfigError

    try:
        profile = load_profile(profile_name)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=2) from None

    format_response(profile.model_dump(mode="json"))


@profile_app.command("add")
def profile_add(
    profile_name: str = typer.Argument(help="Profile name."),
    grant: str = typer.Option(
        "relay", "--grant", "-g", help="Login grant: relay, device_grant."
    ),
    relay_url: Optional[str] = typer.Option(
        None, "--relay-url", help="Begin-login endpoint of a clisso broker."
    ),
    device_authorization_url: Optional[str] = typer.Option(
        None, "--device-authorization-url", help="IdP device authorization endpoint."
    ),
    token_url: Optional[str] = typer.Option(
        None, "--token-url", help="IdP token endpoint."
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
        False, "--no-browser", help="Never open a browser for this profile."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing profile."
    ),
) -> None:
    """Save a login profile.

    The profile is checked against the grant's requirements before it is
    written, so a saved profile is always usable.

    Raises:
        typer.Exit: With code 2 if the grant is unknown, required fields
            are missing, or the profile exists and ``--force`` is not set.

    Example::

        clisso profile add work --relay-url https://broker.example.com/cli-login
        clisso profile add kc --grant device_grant \\
            --device-authorization-url http://localhost:8080/realms/test/protocol/openid-connect/auth/device \\
            --token-url http://localhost:8080/realms/test/protocol/openid-connect/token \\
            --client-id-source value:cli
    """
    from clisso.auth import create_default_manager
    from clisso.config import profile_exists, save_profile
    from clisso.exceptions import InvalidUsageError
    from clisso.models import LoginProfile

    if profile_exists(profile_name) and not force:
        error(f'Profile "{profile_name}" already exists.')
        suggest("Overwrite it with --force")
        raise typer.Exit(code=2)

    profile = LoginProfile(
        name=profile_name,
        grant=grant,
        relay_login_url=relay_url,
        device_authorization_url=device_authorization_url,
        token_url=token_url,
        client_id_source=client_id_source,
        scopes=scopes or [],
        open_browser=not no_browser,
    )

    try:
        plugin = create_default_manager().get_plugin(grant)
    except InvalidUsageError as exc:
        error(str(exc))
        raise typer.Exit(code=2) from None

    problems = plugin.validate_config(profile)
    if problems:
        for problem in problems:
            error(problem)
        raise typer.Exit(code=2)

    save_profile(profile)
    success(f'Profile "{profile_name}" saved.')
    suggest(f"Log in: clisso login --profile {profile_name}")


@profile_app.command("remove")
def profile_remove(
    profile_name: str = typer.Argument(help="Profile name."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Delete a saved profile."""
    from clisso.config import delete_profile, profile_exists

    if not profile_exists(profile_name):
        error(f'Profile "{profile_name}" not found.')
        raise typer.Exit(code=2)

    if not force:
        confirmed = typer.confirm(f'Remove profile "{profile_name}"?')
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    delete_profile(profile_name)
    success(f'Profile "{profile_name}" removed.')
