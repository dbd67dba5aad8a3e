"""
Trade state engine.

Owns the single-active-trade invariant and the trade lifecycle:

    NONE -> OPEN -> PARTIAL -> CLOSED (archived)
    NONE -> OPEN -> CLOSED (archived)

Every check-then-act runs through one of the store's atomic primitives.
Rejections are returned as values on the TradeOutcome, never raised; only
store failures propagate as exceptions.
"""

from collections.abc import Iterable
from datetime import date, datetime
from typing import Any, Optional

from ..config.defaults import RelayConfig, get_default_config
from ..errors import Rejection, RejectionReason, conflict, validation
from ..logging.config import get_state_logger, log_rejection, log_state_transition
from ..persistence.kv_store import KeyValueStore
from ..signals.dedup import DuplicateSuppressor
from ..signals.models import Signal, SignalCategory
from ..utils.time import date_key, is_within_window, session_date, to_epoch_ms
from .models import (
    ARCHIVE_PREFIX,
    TRADE_PREFIX,
    ArchiveRecord,
    Trade,
    TradeAction,
    TradeOutcome,
    TradeState,
    archive_key,
    trade_key,
)

state_logger = get_state_logger(__name__)


def _blocks_new_trade(record: dict[str, Any]) -> bool:
    return record.get("state", TradeState.OPEN.value) != TradeState.CLOSED.value


class TradeStateEngine:
    """Applies entry and exit signals to the single active trade."""

    def __init__(
        self,
        store: KeyValueStore,
        suppressor: DuplicateSuppressor,
        config: Optional[RelayConfig] = None
    ):
        self.store = store
        self.suppressor = suppressor
        self.config = config or get_default_config()
        self.logger = state_logger

    @property
    def tz_name(self) -> str:
        return self.config.session.timezone

    def apply(self, signal: Signal, now: datetime) -> TradeOutcome:
        """Route an entry or exit signal to its transition."""
        if signal.category == SignalCategory.ENTRY:
            return self.open_trade(signal, now)
        if signal.category == SignalCategory.EXIT:
            return self.apply_exit(signal, now)
        raise ValueError(f"Trade engine cannot apply {signal.category.value} signals")

    def _reject(self, signal: Signal, rejection: Rejection,
                state: TradeState = TradeState.NONE) -> TradeOutcome:
        log_rejection(
            self.logger,
            reason=rejection.reason.value,
            message=rejection.message,
            context={"trade_id": signal.trade_id, "type": signal.type_code, **rejection.context}
        )
        return TradeOutcome.rejected(signal.trade_id, rejection, state)

    def _duplicate(self, signal: Signal, now: datetime) -> Optional[Rejection]:
        if self.suppressor.check_signal(signal, self.tz_name, now):
            return conflict(
                RejectionReason.DUPLICATE_SIGNAL,
                "Duplicate signal detected within suppression window",
                tradeId=signal.trade_id,
                type=signal.type_code,
            )
        return None

    def open_trade(self, signal: Signal, now: datetime) -> TradeOutcome:
        """NONE -> OPEN."""
        levels = (signal.entry, signal.stop, signal.tp1, signal.tp2)
        if any(level is None for level in levels):
            return self._reject(signal, validation(
                RejectionReason.INVALID_POSITION_VALUES,
                "Invalid position values",
                receivedValues=signal.raw_values,
            ))

        window = self.config.entry_window
        signal_time = signal.time or now
        if window.enabled and not is_within_window(signal_time, self.tz_name, window.start, window.end):
            return self._reject(signal, validation(
                RejectionReason.OUTSIDE_ENTRY_WINDOW,
                f"Outside trading hours ({window.start} - {window.end})",
                time=signal_time.isoformat(),
            ))

        duplicate = self._duplicate(signal, now)
        if duplicate:
            return self._reject(signal, duplicate)

        now_ms = to_epoch_ms(now)
        trade = Trade(
            trade_id=signal.trade_id,
            direction=signal.direction,
            symbol=signal.symbol,
            timeframe=signal.timeframe,
            entry=signal.entry,
            stop=signal.stop,
            tp1=signal.tp1,
            tp2=signal.tp2,
            start_time=to_epoch_ms(signal.time) if signal.time else now_ms,
            last_update=now_ms,
        )

        result = self.store.create_if_absent_matching(
            TRADE_PREFIX, _blocks_new_trade, trade.key, trade.to_record()
        )

        if not result.created:
            active = Trade.from_record(result.conflict)
            return self._reject(signal, conflict(
                RejectionReason.ACTIVE_TRADE_EXISTS,
                "Active trade already exists",
                activeTrade=active.summary(),
            ))

        log_state_transition(
            self.logger,
            trade_id=trade.trade_id,
            from_state=TradeState.NONE.value,
            to_state=TradeState.OPEN.value,
            trigger=signal.type_code,
            context={"entry": trade.entry, "stop": trade.stop, "tp1": trade.tp1, "tp2": trade.tp2}
        )

        return TradeOutcome(
            action=TradeAction.OPENED,
            trade_id=trade.trade_id,
            from_state=TradeState.NONE,
            to_state=TradeState.OPEN,
            trade=trade,
        )

    def apply_exit(self, signal: Signal, now: datetime) -> TradeOutcome:
        """OPEN -> PARTIAL, or OPEN/PARTIAL -> CLOSED."""
        if signal.price is None:
            return self._reject(signal, validation(
                RejectionReason.INVALID_EXIT_PRICE,
                "Invalid exit price",
                receivedValues=signal.raw_values,
            ))

        duplicate = self._duplicate(signal, now)
        if duplicate:
            return self._reject(signal, duplicate)

        if signal.exit_type.is_partial:
            return self._mark_partial(signal, now)
        return self._close(signal, now)

    def _check_exit(self, signal: Signal, trade: Optional[Trade]) -> Optional[Rejection]:
        if trade is None:
            return validation(
                RejectionReason.NO_ACTIVE_TRADE,
                "No active trade found with this ID",
                tradeId=signal.trade_id,
                type=signal.type_code,
            )
        if trade.direction != signal.direction:
            return validation(
                RejectionReason.DIRECTION_MISMATCH,
                "Exit direction does not match active trade",
                tradeId=trade.trade_id,
                tradeDirection=trade.direction.value,
                signalDirection=signal.direction.value,
            )
        return None

    def _mark_partial(self, signal: Signal, now: datetime) -> TradeOutcome:
        now_ms = to_epoch_ms(now)
        seen: dict[str, Any] = {}

        def update(existing: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
            trade = Trade.from_record(existing) if existing else None
            seen["trade"] = trade
            seen["rejection"] = self._check_exit(signal, trade)
            if seen["rejection"]:
                return None
            seen["updated"] = trade.with_partial(signal.exit_type, now_ms)
            return seen["updated"].to_record()

        self.store.atomic_update(trade_key(signal.trade_id), update)

        trade = seen["trade"]
        if seen["rejection"]:
            return self._reject(signal, seen["rejection"], trade.state if trade else TradeState.NONE)

        updated = seen["updated"]
        log_state_transition(
            self.logger,
            trade_id=updated.trade_id,
            from_state=trade.state.value,
            to_state=updated.state.value,
            trigger=signal.type_code,
            context={"price": signal.price}
        )

        return TradeOutcome(
            action=TradeAction.PARTIAL,
            trade_id=updated.trade_id,
            from_state=trade.state,
            to_state=updated.state,
            trade=updated,
        )

    def _close(self, signal: Signal, now: datetime) -> TradeOutcome:
        now_ms = to_epoch_ms(now)
        day = date_key(session_date(now, self.tz_name))
        seen: dict[str, Any] = {}

        def build(existing: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
            trade = Trade.from_record(existing) if existing else None
            seen["trade"] = trade
            seen["rejection"] = self._check_exit(signal, trade)
            if seen["rejection"]:
                return None
            seen["archive"] = ArchiveRecord.close(trade, signal.exit_type, signal.price, now_ms, day)
            return seen["archive"].to_record()

        # Archive write and live delete share one transaction; an archive
        # record, once written, is never replaced.
        result = self.store.move_if_absent(
            trade_key(signal.trade_id), archive_key(day, signal.trade_id), build
        )

        trade = seen["trade"]
        if seen["rejection"]:
            return self._reject(signal, seen["rejection"], trade.state if trade else TradeState.NONE)

        if not result.moved:
            return self._reject(signal, conflict(
                RejectionReason.TRADE_ALREADY_CLOSED,
                "Trade already closed",
                tradeId=trade.trade_id,
                archivedExitType=result.target.get("exit_type"),
            ), TradeState.CLOSED)

        archive = seen["archive"]
        log_state_transition(
            self.logger,
            trade_id=trade.trade_id,
            from_state=trade.state.value,
            to_state=TradeState.CLOSED.value,
            trigger=signal.type_code,
            context={"exit_price": archive.exit_price, "points": archive.points, "win": archive.win}
        )

        return TradeOutcome(
            action=TradeAction.CLOSED,
            trade_id=trade.trade_id,
            from_state=trade.state,
            to_state=TradeState.CLOSED,
            trade=archive.trade,
            archive=archive,
        )

    def get_trade(self, trade_id: str) -> Optional[Trade]:
        record = self.store.get(trade_key(trade_id))
        return Trade.from_record(record) if record else None

    def active_trades(self) -> list[Trade]:
        """Live trades in scan order."""
        return [Trade.from_record(record) for _, record in self.store.scan(TRADE_PREFIX)]

    def force_close(self, trades: Iterable[Trade], now: datetime) -> list[Trade]:
        """
        Remove exactly the given live trades without archiving.

        Used by the settlement sweep for the trades it announced; a trade opened
        after the announcement is left alone.
        """
        trades = list(trades)
        self.store.delete_many(trade.key for trade in trades)

        for trade in trades:
            log_state_transition(
                self.logger,
                trade_id=trade.trade_id,
                from_state=trade.state.value,
                to_state=TradeState.NONE.value,
                trigger="market_close",
                context={"archived": False, "at": to_epoch_ms(now)}
            )

        return trades

    def archive_for_dates(self, dates: Iterable[date]) -> list[ArchiveRecord]:
        """Archive records for the given session dates, date order then key order."""
        records = []
        for day in dates:
            prefix = f"{ARCHIVE_PREFIX}{date_key(day)}:"
            records.extend(ArchiveRecord.from_record(value) for _, value in self.store.scan(prefix))
        return records
