"""Minimal Server-Sent Events codec shared by the broker and the relay client.

The broker streams exactly this shape, one event per message::

    event: <name>\\n
    data: <payload>\\n
    \\n

Only the ``event`` and ``data`` fields are used, each on a single line.
That keeps both ends trivial, but it means a payload must never contain a
line break. :func:`encode_event` rejects such payloads instead of
corrupting the framing; callers that emit free text (error reasons) flatten
it first.

See Also:
    :mod:`clisso.broker.handlers` -- the producer.
    :mod:`clisso.plugins.relay.plugin` -- the consumer.
"""

from __future__ import annotations

from typing import Iterable, Iterator, NamedTuple

from clisso.exceptions import ProtocolError

EVENT_AUTH_URI = "auth-uri"
"""Carries the absolute authorization URL the user has to open."""

EVENT_LOGGED_IN = "logged-in"
"""Terminal success event; data is the JSON form of :class:`~clisso.models.LoginResult`."""

EVENT_ERROR = "error"
"""Terminal failure event; data is a human-readable reason."""

_EVENT_PREFIX = "event: "
_DATA_PREFIX = "data: "


class ServerSentEvent(NamedTuple):
    """One decoded event."""

    event: str
    data: str


def encode_event(event: str, data: str) -> bytes:
    """Encode one event into its wire form.

    Args:
        event: The event name, e.g. :data:`EVENT_AUTH_URI`.
        data: The payload. Must fit on one line.

    Returns:
        UTF-8 bytes ready to be written to the response body.

    Raises:
        ProtocolError: If the name is empty or either field contains a
            line break.
    """
    if not event:
        raise ProtocolError("SSE event name must not be empty")
    for name, value in (("event", event), ("data", data)):
        if "\n" in value or "\r" in value:
            raise ProtocolError(f"SSE field '{name}' must not contain line breaks")
    return f"{_EVENT_PREFIX}{event}\n{_DATA_PREFIX}{data}\n\n".encode("utf-8")


def single_line(text: str) -> str:
    """Collapse *text* onto one line so it can travel as event data."""
    return " ".join(text.split())


def parse_event(raw: str) -> ServerSentEvent:
    """Parse one raw event block (without the terminating blank line).

    Raises:
        ProtocolError: If the block does not consist of exactly an
            ``event:`` line followed by a ``data:`` line.
    """
    parts = raw.split("\n")
    if len(parts) != 2:
        raise ProtocolError(
            "event does not contain one or both fields 'event' and 'data' "
            "or has more fields"
        )
    event_line, data_line = parts
    if not event_line.startswith(_EVENT_PREFIX):
        raise ProtocolError("SSE event field 'event' must start with 'event: '")
    if not data_line.startswith(_DATA_PREFIX):
        raise ProtocolError("SSE event field 'data' must start with 'data: '")
    return ServerSentEvent(event_line[len(_EVENT_PREFIX):], data_line[len(_DATA_PREFIX):])


def iter_events(lines: Iterable[str]) -> Iterator[ServerSentEvent]:
    """Decode events from an iterable of text lines.

    Designed for :meth:`httpx.Response.iter_lines`, which yields lines
    without their terminators and an empty string for each blank line.
    A block still open when the input ends is parsed as well.

    Args:
        lines: Text lines of an event stream.

    Yields:
        Each :class:`ServerSentEvent` in stream order.

    Raises:
        ProtocolError: On the first malformed block.
    """
    block: list[str] = []
    for line in lines:
        line = line.rstrip("\r")
        if line:
            block.append(line)
            continue
        if block:
            yield parse_event("\n".join(block))
            block = []
    if block:
        yield parse_event("\n".join(block))
