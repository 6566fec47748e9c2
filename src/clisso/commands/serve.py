"""Serve command -- run the login broker.

Implements ``clisso serve``. The broker's OIDC settings come from an
optional JSON file overlaid with ``OIDC_*`` / ``CLISSO_*`` environment
variables (see :func:`~clisso.config.load_broker_config`). The listen port
defaults to ``HTTP_PORT``.

This is the only place in clisso that configures logging handlers; the
broker modules only emit records.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.logging import RichHandler

from clisso.output import error


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def serve_command(
    ctx: typer.Context,
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="JSON file with broker settings."
    ),
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to listen on."),
    port: int = typer.Option(8000, "--port", envvar="HTTP_PORT", help="Port to listen on."),
    login_path: str = typer.Option(
        "/cli-login", "--login-path", help="Path of the begin-login endpoint."
    ),
    redirect_path: Optional[str] = typer.Option(
        None,
        "--redirect-path",
        help="Path of the redirect endpoint (default: path of OIDC_REDIRECT_URI).",
    ),
) -> None:
    """Run the login broker until interrupted.

    Raises:
        typer.Exit: With the error's exit code when the configuration is
            invalid or the port cannot be bound.

    Example::

        OIDC_BASE_URI=https://sso.example.com/realms/main/protocol/openid-connect \\
        OIDC_AUTHORIZATION_URI=https://sso.example.com/realms/main/protocol/openid-connect/auth \\
        OIDC_REDIRECT_URI=https://broker.example.com/cli-logged-in \\
        OIDC_CLIENT_ID=cli OIDC_CLIENT_SECRET=s3cret \\
        clisso serve --port 8000
    """
    from clisso.broker import serve
    from clisso.config import load_broker_config
    from clisso.exceptions import ConfigError

    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    _configure_logging(verbose)

    try:
        config = load_broker_config(config_file)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    try:
        serve(config, host=host, port=port, login_path=login_path, redirect_path=redirect_path)
    except OSError as exc:
        error(f"Cannot listen on {host}:{port}: {exc}")
        raise typer.Exit(code=1) from None
