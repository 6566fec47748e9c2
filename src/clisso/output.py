"""Terminal output for the clisso CLI.

Login results and profile listings are written to stdout and nothing else
is, so ``clisso login --json | jq -r .access_token`` stays scriptable.
The authorization URL, the device user code and all status chatter go
to stderr.

A single :class:`OutputManager` is built by the root callback from the
global flags and installed with :func:`set_output`; the small functions
at the bottom of this module forward to it.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


def _is_tty() -> bool:
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def _should_disable_color() -> bool:
    """Honour the ``NO_COLOR`` convention (set to anything) and ``TERM=dumb``."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


def _to_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


class OutputManager:
    """Output preferences for one CLI invocation.

    ``AUTO`` becomes ``RICH`` only when stdout is a terminal and colour is
    allowed. ``quiet`` hides chatter on stderr but never a :meth:`notice`,
    a warning or an error; ``verbose`` turns on :meth:`debug`.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format is OutputFormat.AUTO:
            rich_ok = _is_tty() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format

        self._out_console = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format is OutputFormat.RICH,
        )
        self._err_console = Console(file=sys.stderr, stderr=True, no_color=self._no_color)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # -- stdout -------------------------------------------------------------

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def format_response(self, data: dict[str, Any]) -> None:
        """Write *data* to stdout: indented JSON, ``key<TAB>value`` lines,
        or highlighted JSON depending on the format."""
        if self._format is OutputFormat.PLAIN:
            for key, value in data.items():
                self.print_data(f"{key}\t{value}")
        elif self._format is OutputFormat.JSON:
            self.print_data(_to_json(data))
        else:
            highlighted = Syntax(_to_json(data), "json", theme="monokai", word_wrap=True)
            self._out_console.print(highlighted)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write rows to stdout. JSON mode emits one object per row keyed by
        header; *title* only shows in Rich mode."""
        if self._format is OutputFormat.JSON:
            self.print_data(_to_json([dict(zip(headers, row)) for row in rows]))
            return
        if self._format is OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
            return

        table = Table(*headers, title=title, header_style="bold cyan")
        for row in rows:
            table.add_row(*row)
        self._out_console.print(table)

    # -- stderr -------------------------------------------------------------

    def _say(self, text: str, style: str = "", prefix: str = "", styled_prefix: bool = False) -> None:
        """Write one line to stderr, with Rich *style* unless colour is off.

        With *styled_prefix* only the prefix is styled.
        """
        if self._no_color:
            print(prefix + text, file=sys.stderr, flush=True)
            return
        prefix, text = escape(prefix), escape(text)
        if not style:
            markup = prefix + text
        elif styled_prefix:
            markup = f"[{style}]{prefix.rstrip()}[/{style}] {text}"
        else:
            markup = f"[{style}]{prefix}{text}[/{style}]"
        self._err_console.print(markup, highlight=False)

    def notice(self, message: str) -> None:
        """Something the user has to act on, such as a URL to open."""
        self._say(message, "bold")

    def info(self, message: str) -> None:
        if not self._quiet:
            self._say(message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._say(message, "green")

    def suggest(self, message: str) -> None:
        if not self._quiet:
            self._say(message, "dim", prefix="→ ")

    def warning(self, message: str) -> None:
        self._say(message, "yellow", prefix="Warning: ", styled_prefix=True)

    def error(self, message: str) -> None:
        self._say(message, "bold red", prefix="Error: ", styled_prefix=True)

    def debug(self, message: str) -> None:
        if self._verbose:
            self._say(message, "dim", prefix="[debug] ")


_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """The installed manager, or a default one built on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    global _output
    _output = None


def format_response(data: dict[str, Any]) -> None:
    get_output().format_response(data)


def notice(message: str) -> None:
    get_output().notice(message)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def error(message: str) -> None:
    get_output().error(message)
