"""
Trade lifecycle data models.

This module defines immutable data structures for the single active trade,
its archived snapshot once closed, and the outcome of applying a signal.
"""

from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Optional

from ..errors import Rejection
from ..signals.models import Direction, ExitType

TRADE_PREFIX = "trade:"
ARCHIVE_PREFIX = "archive:"


class TradeState(str, Enum):
    """Trade lifecycle states."""
    NONE = "none"
    OPEN = "open"
    PARTIAL = "partial"
    CLOSED = "closed"


class TradeAction(str, Enum):
    """What applying a signal did."""
    OPENED = "opened"
    PARTIAL = "partial"
    CLOSED = "closed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Trade:
    """The live trade record."""

    trade_id: str
    direction: Direction
    symbol: str
    timeframe: str
    entry: float
    stop: float
    tp1: float
    tp2: float

    # Epoch milliseconds
    start_time: int
    last_update: int

    state: TradeState = TradeState.OPEN
    partial_closed: bool = False
    partial_type: Optional[str] = None
    partial_time: Optional[int] = None

    @property
    def key(self) -> str:
        return trade_key(self.trade_id)

    @property
    def is_live(self) -> bool:
        return self.state in (TradeState.OPEN, TradeState.PARTIAL)

    def with_partial(self, exit_type: ExitType, now_ms: int) -> "Trade":
        """Mark the trade partially closed."""
        return replace(
            self,
            state=TradeState.PARTIAL,
            partial_closed=True,
            partial_type=exit_type.value,
            partial_time=now_ms,
            last_update=now_ms,
        )

    def summary(self) -> dict[str, Any]:
        """Compact identity used in rejections and health output."""
        return {
            "id": self.trade_id,
            "type": self.direction.value,
            "symbol": self.symbol,
            "tf": self.timeframe,
            "startTime": self.start_time,
            "partialClosed": self.partial_closed,
        }

    def to_record(self) -> dict[str, Any]:
        record = asdict(self)
        record["direction"] = self.direction.value
        record["state"] = self.state.value
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Trade":
        return cls(
            trade_id=str(record["trade_id"]),
            direction=Direction(record["direction"]),
            symbol=record.get("symbol", "UNKNOWN"),
            timeframe=record.get("timeframe", ""),
            entry=float(record["entry"]),
            stop=float(record["stop"]),
            tp1=float(record["tp1"]),
            tp2=float(record["tp2"]),
            start_time=int(record["start_time"]),
            last_update=int(record["last_update"]),
            state=TradeState(record.get("state", TradeState.OPEN.value)),
            partial_closed=bool(record.get("partial_closed", False)),
            partial_type=record.get("partial_type"),
            partial_time=record.get("partial_time"),
        )


@dataclass(frozen=True)
class ArchiveRecord:
    """Immutable snapshot of a closed trade."""

    trade: Trade
    exit_type: ExitType
    exit_price: float
    points: float
    win: bool
    archived_at: int
    session_date: str

    @property
    def key(self) -> str:
        return archive_key(self.session_date, self.trade.trade_id)

    @classmethod
    def close(
        cls,
        trade: Trade,
        exit_type: ExitType,
        exit_price: float,
        now_ms: int,
        session_date: str
    ) -> "ArchiveRecord":
        """Build the archive record for a trade closing at ``exit_price``."""
        closed = replace(trade, state=TradeState.CLOSED, last_update=now_ms)
        return cls(
            trade=closed,
            exit_type=exit_type,
            exit_price=exit_price,
            points=realized_points(trade.direction, trade.entry, exit_price),
            win=is_win(exit_type, trade.partial_closed),
            archived_at=now_ms,
            session_date=session_date,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "trade": self.trade.to_record(),
            "exit_type": self.exit_type.value,
            "exit_price": self.exit_price,
            "points": self.points,
            "win": self.win,
            "archived_at": self.archived_at,
            "session_date": self.session_date,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "ArchiveRecord":
        return cls(
            trade=Trade.from_record(record["trade"]),
            exit_type=ExitType(record["exit_type"]),
            exit_price=float(record["exit_price"]),
            points=float(record["points"]),
            win=bool(record["win"]),
            archived_at=int(record["archived_at"]),
            session_date=record["session_date"],
        )


@dataclass(frozen=True)
class TradeOutcome:
    """Result of applying a trade signal."""

    action: TradeAction
    trade_id: str
    from_state: TradeState = TradeState.NONE
    to_state: TradeState = TradeState.NONE
    trade: Optional[Trade] = None
    archive: Optional[ArchiveRecord] = None
    rejection: Optional[Rejection] = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None

    @classmethod
    def rejected(cls, trade_id: str, rejection: Rejection,
                 state: TradeState = TradeState.NONE) -> "TradeOutcome":
        return cls(
            action=TradeAction.REJECTED,
            trade_id=trade_id,
            from_state=state,
            to_state=state,
            rejection=rejection,
        )


def trade_key(trade_id: str) -> str:
    return f"{TRADE_PREFIX}{trade_id}"


def archive_key(session_date: str, trade_id: str) -> str:
    return f"{ARCHIVE_PREFIX}{session_date}:{trade_id}"


def realized_points(direction: Direction, entry: float, exit_price: float) -> float:
    """Directional points: ``exit - entry`` for LONG, ``entry - exit`` for SHORT."""
    if direction == Direction.LONG:
        return exit_price - entry
    return entry - exit_price


def is_win(exit_type: ExitType, partial_closed: bool) -> bool:
    """A target hit wins; a stop after a partial close is breakeven-or-better and wins too."""
    return exit_type.is_target_hit or partial_closed
