"""
Signal rejections.

A rejection is a value, not an exception: the relay returns it to the caller
with the specific reason and the diagnostic fields an operator needs to tell
"the signal was bad" apart from "state already reflects a conflicting
decision".
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RejectionKind(str, Enum):
    """Rejection categories."""
    VALIDATION = "validation"
    CONFLICT = "conflict"


class RejectionReason(str, Enum):
    """Machine-readable rejection reasons."""
    # Validation
    INVALID_POSITION_VALUES = "invalid_position_values"
    INVALID_EXIT_PRICE = "invalid_exit_price"
    INVALID_TRADE_ID = "invalid_trade_id"
    UNKNOWN_SIGNAL_TYPE = "unknown_signal_type"
    DIRECTION_MISMATCH = "direction_mismatch"
    NO_ACTIVE_TRADE = "no_active_trade"
    OUTSIDE_ENTRY_WINDOW = "outside_entry_window"
    # Conflict
    ACTIVE_TRADE_EXISTS = "active_trade_exists"
    DUPLICATE_SIGNAL = "duplicate_signal"
    BIAS_ALREADY_SENT = "bias_already_sent"
    TRADE_ALREADY_CLOSED = "trade_already_closed"


@dataclass(frozen=True)
class Rejection:
    """A signal the relay declined to act on."""
    kind: RejectionKind
    reason: RejectionReason
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "rejected",
            "kind": self.kind.value,
            "reason": self.reason.value,
            "message": self.message,
            **self.context,
        }


def validation(reason: RejectionReason, message: str, **context: Any) -> Rejection:
    """Build a validation rejection."""
    return Rejection(RejectionKind.VALIDATION, reason, message, context)


def conflict(reason: RejectionReason, message: str, **context: Any) -> Rejection:
    """Build a conflict rejection."""
    return Rejection(RejectionKind.CONFLICT, reason, message, context)
