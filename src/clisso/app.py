"""The ``clisso`` command line: root options and sub-command wiring.

``main`` is what the console script runs. Errors derived from
:class:`~clisso.exceptions.ClissoError` become a one-line message and
their own exit code; anything else leaves a traceback file in the data
directory.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any

import typer

from clisso import __version__
from clisso.exit_codes import EXIT_GENERIC_FAILURE

_EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="clisso",
    help="Log console applications in through OIDC single sign-on.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _show_version(value: bool) -> None:
    if not value:
        return
    typer.echo(f"clisso {__version__}")
    raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", is_eager=True, callback=_show_version,
        help="Print the clisso version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="Emit results as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Emit tab-separated plain text."),
    no_color: bool = typer.Option(False, "--no-color", help="Never use colour or markup."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only print results, instructions and errors."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print debug messages."),
) -> None:
    """Set up output for the sub-command about to run."""
    from clisso.output import OutputFormat, OutputManager, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = OutputFormat.AUTO
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.obj = {**(ctx.obj or {}), "verbose": verbose}


from clisso.commands.login import login_command  # noqa: E402
from clisso.commands.profile import profile_app  # noqa: E402
from clisso.commands.serve import serve_command  # noqa: E402

app.command("login")(login_command)
app.command("serve")(serve_command)
app.add_typer(profile_app, name="profile", help="Manage saved login profiles.")


def _interrupted(*_: Any) -> None:
    sys.stderr.write("\nInterrupted.\n")
    sys.exit(_EXIT_INTERRUPTED)


def _dump_traceback(exc: Exception) -> Path:
    from clisso.config import get_data_dir

    stamp = datetime.now().strftime("%Y%m%dT%H%M%S")
    target = get_data_dir() / f"clisso-crash-{stamp}.txt"
    target.write_text(f"{exc!r}\n\n{traceback.format_exc()}", encoding="utf-8")
    return target


def main() -> None:
    signal.signal(signal.SIGINT, _interrupted)
    try:
        app()
    except KeyboardInterrupt:
        _interrupted()
    except Exception as exc:
        from clisso.exceptions import ClissoError
        from clisso.output import error

        if isinstance(exc, ClissoError):
            error(str(exc))
            sys.exit(exc.exit_code)
        crash_file = _dump_traceback(exc)
        error(f"clisso crashed; traceback saved to {crash_file}")
        sys.exit(EXIT_GENERIC_FAILURE)
