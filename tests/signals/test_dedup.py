"""Tests for duplicate signal suppression."""

import threading
from datetime import timedelta

from signal_relay.signals.dedup import MARKER_KIND, DuplicateSuppressor, signal_fingerprint
from signal_relay.signals.parser import parse_signal

TZ = "America/New_York"


class TestSignalFingerprint:
    """Test fingerprint derivation."""

    def test_fingerprint_format(self, entry_payload):
        signal = parse_signal(entry_payload)

        assert signal_fingerprint(signal, TZ) == "LONG_ENTRY_101_100_Mon, Oct 19, 2026, 10:00 AM EST"

    def test_fingerprint_changes_with_primary_value(self, make_exit):
        first = parse_signal(make_exit("TP1", "105"))
        second = parse_signal(make_exit("TP1", "105.25"))

        assert signal_fingerprint(first, TZ) != signal_fingerprint(second, TZ)

    def test_fingerprint_keeps_full_price_precision(self, make_exit):
        first = parse_signal(make_exit("TP1", "104523.5"))
        second = parse_signal(make_exit("TP1", "104524"))

        assert signal_fingerprint(first, TZ).startswith("LONG_TP1_101_104523.5_")
        assert signal_fingerprint(first, TZ) != signal_fingerprint(second, TZ)

    def test_fingerprint_distinguishes_type(self, make_exit):
        tp1 = parse_signal(make_exit("TP1", "105"))
        be = parse_signal(make_exit("BE", "105"))

        assert signal_fingerprint(tp1, TZ) != signal_fingerprint(be, TZ)

    def test_fingerprint_without_time(self):
        signal = parse_signal({"type": "LONG_SL", "tradeId": "7", "price": "90"})

        assert signal_fingerprint(signal, TZ) == "LONG_SL_7_90_N/A"

    def test_bias_fingerprint_ignores_generated_trade_id(self):
        payload = {"type": "OPENING_BIAS", "symbol": "NQ1!", "profile": "Bullish"}
        first = parse_signal(payload, now_ms=1000)
        second = parse_signal(payload, now_ms=2000)

        assert first.trade_id != second.trade_id
        assert signal_fingerprint(first, TZ) == signal_fingerprint(second, TZ)
        assert signal_fingerprint(first, TZ).startswith("OPENING_BIAS_NQ1!:")

    def test_bias_fingerprint_changes_with_profile(self):
        bullish = parse_signal({"type": "OPENING_BIAS", "profile": "Bullish"})
        bearish = parse_signal({"type": "OPENING_BIAS", "profile": "Bearish"})

        assert signal_fingerprint(bullish, TZ) != signal_fingerprint(bearish, TZ)


class TestDuplicateSuppressor:
    """Test atomic check-and-mark."""

    def test_first_sighting_is_not_duplicate(self, suppressor, now):
        assert suppressor.check_and_mark("fp", now) is False

        marker = suppressor.store.get(suppressor.marker_key("fp"))
        assert marker["kind"] == MARKER_KIND
        assert marker["expires_at"] - marker["seen_at"] == 5000

    def test_repeat_within_window_is_duplicate(self, suppressor, now):
        suppressor.check_and_mark("fp", now)

        assert suppressor.check_and_mark("fp", now + timedelta(seconds=4.9)) is True

    def test_duplicate_leaves_marker_untouched(self, suppressor, now):
        suppressor.check_and_mark("fp", now)
        first_seen = suppressor.last_seen("fp")

        suppressor.check_and_mark("fp", now + timedelta(seconds=2))

        assert suppressor.last_seen("fp") == first_seen

    def test_repeat_after_window_is_accepted_and_remarked(self, suppressor, now):
        suppressor.check_and_mark("fp", now)
        later = now + timedelta(seconds=5)

        assert suppressor.check_and_mark("fp", later) is False
        assert suppressor.last_seen("fp") == int(later.timestamp() * 1000)

    def test_distinct_fingerprints_are_independent(self, suppressor, now):
        suppressor.check_and_mark("a", now)

        assert suppressor.check_and_mark("b", now) is False

    def test_concurrent_identical_signals_admit_one(self, suppressor, now):
        outcomes = []
        barrier = threading.Barrier(6)

        def attempt():
            barrier.wait()
            outcomes.append(suppressor.check_and_mark("fp", now))

        threads = [threading.Thread(target=attempt) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count(False) == 1
        assert outcomes.count(True) == 5

    def test_check_signal(self, store, now, entry_payload):
        suppressor = DuplicateSuppressor(store, window_seconds=5.0)
        signal = parse_signal(entry_payload)

        assert suppressor.check_signal(signal, TZ, now) is False
        assert suppressor.check_signal(signal, TZ, now) is True

    def test_last_seen_unknown(self, suppressor):
        assert suppressor.last_seen("never") is None
