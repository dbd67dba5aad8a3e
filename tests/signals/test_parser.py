"""Tests for webhook payload parsing."""

from datetime import datetime, timezone

import pytest

from signal_relay.errors import ParseError, Rejection, RejectionKind, RejectionReason
from signal_relay.signals.models import BiasType, Direction, ExitType, SignalCategory, SummaryPeriod
from signal_relay.signals.parser import (
    is_valid_trade_id,
    parse_json_payload,
    parse_signal,
    scrub,
    to_number,
)

NOW_MS = 1792418400000


class TestParseJsonPayload:
    """Test raw body decoding."""

    def test_parses_object(self):
        assert parse_json_payload(b'{"type": "LONG_ENTRY"}') == {"type": "LONG_ENTRY"}

    def test_accepts_text(self):
        assert parse_json_payload('{"a": 1}') == {"a": 1}

    def test_invalid_json_raises(self):
        with pytest.raises(ParseError) as exc_info:
            parse_json_payload(b"{not json")
        assert exc_info.value.recoverable is True

    def test_non_object_raises(self):
        with pytest.raises(ParseError):
            parse_json_payload(b"[1, 2, 3]")


class TestFieldHelpers:
    """Test value normalization helpers."""

    @pytest.mark.parametrize("value", [None, "", "  ", "null", "undefined", "NaN", float("nan")])
    def test_scrub_null_markers(self, value):
        assert scrub(value) == ""

    def test_scrub_trims(self):
        assert scrub("  NQ1!  ") == "NQ1!"

    def test_to_number(self):
        assert to_number(" 101.25 ") == 101.25
        assert to_number(17500) == 17500.0

    @pytest.mark.parametrize("value", ["abc", "inf", "-inf", None, "null", ""])
    def test_to_number_rejects_non_finite(self, value):
        assert to_number(value) is None

    def test_trade_id_validation(self):
        assert is_valid_trade_id("101")
        assert is_valid_trade_id("TRADE_1792418400000")
        assert not is_valid_trade_id("0")
        assert not is_valid_trade_id("-5")
        assert not is_valid_trade_id("abc")
        assert not is_valid_trade_id("1.5")


class TestParseSignal:
    """Test payload classification and field extraction."""

    def test_entry_signal(self, entry_payload):
        signal = parse_signal(entry_payload, NOW_MS)

        assert signal.category == SignalCategory.ENTRY
        assert signal.type_code == "LONG_ENTRY"
        assert signal.direction == Direction.LONG
        assert signal.trade_id == "101"
        assert signal.symbol == "NQ1!"
        assert signal.timeframe == "3"
        assert signal.time == datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc)
        assert (signal.entry, signal.stop, signal.tp1, signal.tp2) == (100.0, 95.0, 105.0, 110.0)
        assert signal.primary_value == 100.0
        assert signal.symbol_line == "NQ1! 3m"

    def test_type_is_case_insensitive(self, entry_payload):
        entry_payload["type"] = "short_entry"

        signal = parse_signal(entry_payload, NOW_MS)

        assert signal.type_code == "SHORT_ENTRY"
        assert signal.direction == Direction.SHORT

    @pytest.mark.parametrize("type_code,exit_type", [
        ("SHORT_TP1", ExitType.TP1),
        ("LONG_BE", ExitType.BE),
        ("LONG_TP2", ExitType.TP2),
        ("SHORT_SL", ExitType.SL),
    ])
    def test_exit_signals(self, make_exit, type_code, exit_type):
        side, _, action = type_code.partition("_")
        signal = parse_signal(make_exit(action, "104.5", side=side), NOW_MS)

        assert signal.category == SignalCategory.EXIT
        assert signal.exit_type == exit_type
        assert signal.direction == Direction(side)
        assert signal.price == 104.5
        assert signal.primary_value == 104.5

    def test_bias_aliases(self):
        signal = parse_signal({"type": "BIAS", "symbol": "NQ1!", "profile": "Bullish"}, NOW_MS)

        assert signal.category == SignalCategory.BIAS
        assert signal.type_code == "OPENING_BIAS"
        assert signal.bias_type == BiasType.OPENING
        assert signal.profile == "Bullish"

    def test_bias_flip(self):
        signal = parse_signal({"type": "BIAS_FLIP", "message": "Now bearish"}, NOW_MS)

        assert signal.bias_type == BiasType.FLIP
        assert signal.profile == "Now bearish"

    def test_summary_signal(self):
        signal = parse_signal({"type": "WEEKLY_SUMMARY"}, NOW_MS)

        assert signal.category == SignalCategory.SUMMARY
        assert signal.summary_period == SummaryPeriod.WEEKLY
        assert signal.primary_value is None

    @pytest.mark.parametrize("type_code", ["LONG_FOO", "SIDEWAYS_ENTRY", "HELLO", ""])
    def test_unknown_type_rejected(self, type_code):
        result = parse_signal({"type": type_code, "tradeId": "1"}, NOW_MS)

        assert isinstance(result, Rejection)
        assert result.kind == RejectionKind.VALIDATION
        assert result.reason == RejectionReason.UNKNOWN_SIGNAL_TYPE

    def test_missing_trade_id_is_generated(self, entry_payload):
        del entry_payload["tradeId"]

        signal = parse_signal(entry_payload, NOW_MS)

        assert signal.trade_id == f"TRADE_{NOW_MS}"

    def test_malformed_trade_id_rejected(self, entry_payload):
        entry_payload["tradeId"] = "abc"

        result = parse_signal(entry_payload, NOW_MS)

        assert isinstance(result, Rejection)
        assert result.reason == RejectionReason.INVALID_TRADE_ID
        assert result.context["tradeId"] == "abc"

    def test_unparseable_numbers_kept_as_none(self, entry_payload):
        entry_payload["sl"] = "null"
        entry_payload["tp2"] = "NaN"

        signal = parse_signal(entry_payload, NOW_MS)

        assert signal.stop is None
        assert signal.tp2 is None
        assert signal.raw_values["sl"] == "null"
        assert signal.raw_values["tp2"] == "NaN"

    def test_defaults_for_missing_fields(self):
        signal = parse_signal({"type": "LONG_SL", "tradeId": "7"}, NOW_MS)

        assert signal.symbol == "UNKNOWN"
        assert signal.timeframe == ""
        assert signal.time is None
        assert signal.price is None
        assert signal.symbol_line == "UNKNOWN"

    def test_epoch_millisecond_time(self, entry_payload):
        entry_payload["time"] = 1792418400000

        signal = parse_signal(entry_payload, NOW_MS)

        assert signal.time == datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc)
