"""Duplicate signal suppression."""

import hashlib
from datetime import datetime
from typing import Any, Optional

import structlog

from ..persistence.kv_store import KeyValueStore
from ..utils.numbers import format_price
from ..utils.time import format_signal_time, to_epoch_ms
from .models import Signal, SignalCategory

logger = structlog.get_logger(__name__)

MARKER_PREFIX = "signal:"
MARKER_KIND = "duplicate_marker"


def signal_fingerprint(signal: Signal, tz_name: str) -> str:
    """
    Derive the duplicate-detection fingerprint of a signal.

    Built from the type code (which carries the category), trade id, primary
    numeric field and the signal time formatted in the session time zone.
    Bias and summary signals carry no trade id of their own, so they are
    identified by symbol and a digest of their profile text instead.
    """
    if signal.category in (SignalCategory.ENTRY, SignalCategory.EXIT):
        identity = signal.trade_id
    else:
        digest = hashlib.sha256(signal.profile.encode()).hexdigest()[:16]
        identity = f"{signal.symbol}:{digest}"

    primary = signal.primary_value
    primary_text = format_price(primary)
    formatted_time = format_signal_time(signal.time, tz_name)
    return f"{signal.type_code}_{identity}_{primary_text}_{formatted_time}"


class DuplicateSuppressor:
    """Atomic check-and-mark of signal fingerprints within a short window."""

    def __init__(self, store: KeyValueStore, window_seconds: float = 5.0):
        self.store = store
        self.window_ms = int(window_seconds * 1000)
        self.logger = logger

    @staticmethod
    def marker_key(fingerprint: str) -> str:
        return f"{MARKER_PREFIX}{fingerprint}"

    def is_active(self, marker: Optional[dict[str, Any]], now_ms: int) -> bool:
        """Check whether a stored marker still suppresses signals at ``now_ms``."""
        if not marker:
            return False
        return now_ms - marker.get("seen_at", 0) < self.window_ms

    def check_and_mark(self, fingerprint: str, now: datetime) -> bool:
        """
        Report whether ``fingerprint`` was seen within the window, marking it if not.

        A duplicate leaves the existing marker untouched; anything else writes
        a fresh marker stamped ``now``.

        Returns:
            True if the signal is a duplicate
        """
        now_ms = to_epoch_ms(now)

        def mark(existing: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
            if self.is_active(existing, now_ms):
                return None
            return {
                "kind": MARKER_KIND,
                "seen_at": now_ms,
                "expires_at": now_ms + self.window_ms,
            }

        result = self.store.atomic_update(self.marker_key(fingerprint), mark)
        is_duplicate = not result.written

        if is_duplicate:
            self.logger.info(
                "Duplicate signal suppressed",
                fingerprint=fingerprint,
                last_seen=result.previous.get("seen_at") if result.previous else None
            )

        return is_duplicate

    def check_signal(self, signal: Signal, tz_name: str, now: datetime) -> bool:
        """Fingerprint and check a signal. Returns True if it is a duplicate."""
        return self.check_and_mark(signal_fingerprint(signal, tz_name), now)

    def last_seen(self, fingerprint: str) -> Optional[int]:
        """Epoch milliseconds the fingerprint was last marked, if any."""
        marker = self.store.get(self.marker_key(fingerprint))
        return marker.get("seen_at") if marker else None
