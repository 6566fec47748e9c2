"""Tests for the Server-Sent Events codec shared by broker and relay client."""

from __future__ import annotations

import pytest

from clisso.exceptions import ProtocolError
from clisso.sse import (
    EVENT_AUTH_URI,
    EVENT_ERROR,
    EVENT_LOGGED_IN,
    ServerSentEvent,
    encode_event,
    iter_events,
    parse_event,
    single_line,
)


class TestEncodeEvent:
    def test_wire_format(self) -> None:
        assert encode_event("auth-uri", "https://idp/auth?state=abc") == (
            b"event: auth-uri\ndata: https://idp/auth?state=abc\n\n"
        )

    def test_empty_data_allowed(self) -> None:
        assert encode_event("error", "") == b"event: error\ndata: \n\n"

    def test_utf8_encoded(self) -> None:
        assert encode_event("error", "échec") == "event: error\ndata: échec\n\n".encode("utf-8")

    @pytest.mark.parametrize("data", ["line1\nline2", "line1\r\nline2", "trailing\r"])
    def test_rejects_line_breaks_in_data(self, data: str) -> None:
        with pytest.raises(ProtocolError, match="data"):
            encode_event("error", data)

    def test_rejects_line_breaks_in_name(self) -> None:
        with pytest.raises(ProtocolError, match="event"):
            encode_event("bad\nname", "x")

    def test_rejects_empty_name(self) -> None:
        with pytest.raises(ProtocolError, match="empty"):
            encode_event("", "x")


class TestSingleLine:
    def test_collapses_whitespace(self) -> None:
        assert single_line("token call failed:\n  status 500\r\n") == "token call failed: status 500"

    def test_plain_text_untouched(self) -> None:
        assert single_line("user's login session timed out") == "user's login session timed out"


class TestParseEvent:
    def test_parses_block(self) -> None:
        assert parse_event("event: logged-in\ndata: {}") == ServerSentEvent("logged-in", "{}")

    def test_data_keeps_inner_colons_and_spaces(self) -> None:
        event = parse_event("event: error\ndata: OIDC login failed, reason: a: b ")
        assert event.data == "OIDC login failed, reason: a: b "

    def test_missing_data_line(self) -> None:
        with pytest.raises(ProtocolError):
            parse_event("event: auth-uri")

    def test_extra_field(self) -> None:
        with pytest.raises(ProtocolError):
            parse_event("event: auth-uri\ndata: x\nid: 1")

    def test_fields_in_wrong_order(self) -> None:
        with pytest.raises(ProtocolError, match="'event: '"):
            parse_event("data: x\nevent: auth-uri")

    def test_bad_data_prefix(self) -> None:
        with pytest.raises(ProtocolError, match="'data: '"):
            parse_event("event: auth-uri\ndata:x")


class TestIterEvents:
    def test_decodes_concatenated_encodings(self) -> None:
        pairs = [
            (EVENT_AUTH_URI, "https://idp.example.com/auth?state=0123456789abcdef"),
            (EVENT_ERROR, "OIDC login failed, reason: user's login session timed out"),
            (EVENT_LOGGED_IN, '{"access_token":"AT","refresh_token":"RT","expiration":600}'),
        ]
        stream = b"".join(encode_event(e, d) for e, d in pairs).decode("utf-8")

        events = list(iter_events(stream.split("\n")))

        assert events == [ServerSentEvent(e, d) for e, d in pairs]

    def test_skips_runs_of_blank_lines(self) -> None:
        lines = ["", "", "event: a", "data: 1", "", "", "", "event: b", "data: 2", ""]
        assert [e.event for e in iter_events(lines)] == ["a", "b"]

    def test_trailing_block_without_separator(self) -> None:
        lines = ["event: error", "data: gone"]
        assert list(iter_events(lines)) == [ServerSentEvent("error", "gone")]

    def test_strips_carriage_returns(self) -> None:
        lines = ["event: error\r", "data: x\r", "\r"]
        assert list(iter_events(lines)) == [ServerSentEvent("error", "x")]

    def test_malformed_block_raises_after_earlier_events(self) -> None:
        lines = ["event: a", "data: 1", "", "garbage", ""]
        iterator = iter_events(lines)
        assert next(iterator) == ServerSentEvent("a", "1")
        with pytest.raises(ProtocolError):
            next(iterator)

    def test_empty_input(self) -> None:
        assert list(iter_events([])) == []
