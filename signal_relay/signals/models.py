"""
Signal data models.

A Signal is one inbound alert from the charting platform, already decoded
from its webhook payload. Signals are ephemeral: nothing here is persisted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class SignalCategory(str, Enum):
    """Top-level signal categories."""
    ENTRY = "ENTRY"
    EXIT = "EXIT"
    BIAS = "BIAS"
    SUMMARY = "SUMMARY"


class Direction(str, Enum):
    """Trade direction."""
    LONG = "LONG"
    SHORT = "SHORT"


class ExitType(str, Enum):
    """Exit signal types."""
    TP1 = "TP1"
    BE = "BE"
    TP2 = "TP2"
    SL = "SL"

    @property
    def is_partial(self) -> bool:
        return self in (ExitType.TP1, ExitType.BE)

    @property
    def is_full_close(self) -> bool:
        return self in (ExitType.TP2, ExitType.SL)

    @property
    def is_target_hit(self) -> bool:
        return self.value.startswith("TP")


class BiasType(str, Enum):
    """Bias alert types."""
    OPENING = "OPENING_BIAS"
    FLIP = "BIAS_FLIP"


class SummaryPeriod(str, Enum):
    """Summary periods an inbound summary signal can request."""
    DAILY = "DAILY_SUMMARY"
    WEEKLY = "WEEKLY_SUMMARY"


# Aliases accepted from older indicator versions
TYPE_ALIASES = {
    "BIAS": BiasType.OPENING.value,
    "OPENING": BiasType.OPENING.value,
    "FLIP": BiasType.FLIP.value,
    "SUMMARY": SummaryPeriod.DAILY.value,
}


@dataclass(frozen=True)
class Signal:
    """A decoded inbound signal."""

    type_code: str
    category: SignalCategory
    trade_id: str
    symbol: str = "UNKNOWN"
    timeframe: str = ""
    time: Optional[datetime] = None

    direction: Optional[Direction] = None
    exit_type: Optional[ExitType] = None
    bias_type: Optional[BiasType] = None
    summary_period: Optional[SummaryPeriod] = None

    # Entry levels
    entry: Optional[float] = None
    stop: Optional[float] = None
    tp1: Optional[float] = None
    tp2: Optional[float] = None

    # Exit price
    price: Optional[float] = None

    # Bias profile text
    profile: str = ""

    # Values as received, for diagnostics
    raw_values: dict[str, Any] = field(default_factory=dict)

    @property
    def primary_value(self) -> Optional[float]:
        """Numeric field that identifies the signal: entry for entries, price for exits."""
        if self.category == SignalCategory.ENTRY:
            return self.entry
        if self.category == SignalCategory.EXIT:
            return self.price
        return None

    @property
    def symbol_line(self) -> str:
        return f"{self.symbol} {self.timeframe}m" if self.timeframe else self.symbol
