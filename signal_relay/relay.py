"""
Signal relay coordinator.

Wires the store, duplicate suppressor, trade engine, bias scheduler,
dispatcher and sweeps together and exposes the intake operation used by the
webhook transport:

    webhook body -> parse -> suppress duplicates -> engine / bias scheduler
                 -> format -> dispatch

State changes are committed before dispatch and are never rolled back when a
channel fails; the response reports the delivery failure instead.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from .bias.scheduler import BiasAction, BiasScheduler
from .config.defaults import RelayConfig, get_default_config
from .config.loader import load_config
from .delivery.dispatcher import DispatchResult, NotificationDispatcher, create_dispatcher
from .delivery.messages import close_message, entry_message, partial_message
from .errors import ParseError, Rejection, RejectionKind, RejectionReason, StoreError, conflict
from .logging.config import log_rejection
from .persistence.kv_store import KeyValueStore
from .signals.dedup import MARKER_PREFIX, DuplicateSuppressor
from .signals.models import Signal, SignalCategory, SummaryPeriod
from .signals.parser import parse_json_payload, parse_signal
from .state.engine import TradeStateEngine
from .state.models import TradeAction, TradeOutcome
from .sweeps.scheduler import SweepResult, SweepScheduler
from .utils.time import session_date, to_epoch_ms, utc_now, week_range

logger = structlog.get_logger(__name__)

REJECTION_STATUS = {
    RejectionKind.VALIDATION: 400,
    RejectionKind.CONFLICT: 409,
}


@dataclass(frozen=True)
class RelayResponse:
    """Transport-neutral intake response."""
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class SignalRelay:
    """Main coordinator for the webhook relay."""

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        store: Optional[KeyValueStore] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        sleep: Callable[[float], None] = time.sleep
    ) -> None:
        self.config = config or get_default_config()
        self.logger = logger

        self.store = store or KeyValueStore(
            self.config.store.db_path,
            self.config.store.timeout_seconds
        )
        self.dispatcher = dispatcher or create_dispatcher(self.config, sleep)

        self.suppressor = DuplicateSuppressor(self.store, self.config.suppression.window_seconds)
        self.engine = TradeStateEngine(self.store, self.suppressor, self.config)
        self.bias = BiasScheduler(self.store, self.dispatcher, self.config)
        self.sweeps = SweepScheduler(self.store, self.engine, self.bias, self.dispatcher, self.config)

        self.logger.info(
            "Signal relay initialized",
            channels=[channel.name for channel in self.dispatcher.channels],
            db_path=str(self.store.db_path)
        )

    @classmethod
    def from_config_dir(cls, config_dir: Optional[Path] = None) -> "SignalRelay":
        return cls(load_config(config_dir))

    @property
    def tz_name(self) -> str:
        return self.config.session.timezone

    def handle_webhook(self, body: Union[str, bytes], now: Optional[datetime] = None) -> RelayResponse:
        """Handle a raw webhook body."""
        try:
            payload = parse_json_payload(body)
        except ParseError as e:
            self.logger.warning("Rejected unparseable webhook body", error=str(e))
            return RelayResponse(400, {"status": "error", "reason": "Invalid JSON", "error": str(e)})

        return self.process(payload, now)

    def process(self, payload: dict[str, Any], now: Optional[datetime] = None) -> RelayResponse:
        """
        Process one decoded signal payload.

        Store failures abort the signal with a server-error response; the
        store's atomic primitives guarantee no half-applied mutation.
        """
        now = utc_now(now)
        try:
            return self._process(payload, now)
        except StoreError as e:
            self.logger.error("Store failure while processing signal", error=str(e), type=payload.get("type"))
            return RelayResponse(500, {"status": "error", "reason": "Store unavailable", "error": str(e)})

    def _process(self, payload: dict[str, Any], now: datetime) -> RelayResponse:
        parsed = parse_signal(payload, to_epoch_ms(now))
        if isinstance(parsed, Rejection):
            log_rejection(self.logger, parsed.reason.value, parsed.message, parsed.context)
            return self._rejected(parsed)

        signal = parsed
        if signal.category in (SignalCategory.ENTRY, SignalCategory.EXIT):
            return self._process_trade_signal(signal, now)

        duplicate = self._check_duplicate(signal, now)
        if duplicate:
            return self._rejected(duplicate)

        if signal.category == SignalCategory.BIAS:
            return self._process_bias(signal, now)
        return self._process_summary(signal, now)

    def _check_duplicate(self, signal: Signal, now: datetime) -> Optional[Rejection]:
        if not self.suppressor.check_signal(signal, self.tz_name, now):
            return None
        rejection = conflict(
            RejectionReason.DUPLICATE_SIGNAL,
            "Duplicate signal detected within suppression window",
            type=signal.type_code,
        )
        log_rejection(self.logger, rejection.reason.value, rejection.message, rejection.context)
        return rejection

    def _process_trade_signal(self, signal: Signal, now: datetime) -> RelayResponse:
        outcome = self.engine.apply(signal, now)
        if not outcome.accepted:
            return self._rejected(outcome.rejection)

        dispatch = self.dispatcher.notify(self._trade_message(signal, outcome))
        return self._delivered(dispatch, {
            "type": signal.type_code,
            "tradeId": outcome.trade_id,
            "action": outcome.action.value,
            "state": outcome.to_state.value,
            "points": outcome.archive.points if outcome.archive else None,
            "activeTradesCount": self.store.count("trade:"),
        })

    def _trade_message(self, signal: Signal, outcome: TradeOutcome):
        session = self.config.session
        if outcome.action == TradeAction.OPENED:
            return entry_message(signal, outcome.trade, session, self.config.messages)
        if outcome.action == TradeAction.PARTIAL:
            return partial_message(signal, session)
        return close_message(signal, outcome.archive, session)

    def _process_bias(self, signal: Signal, now: datetime) -> RelayResponse:
        outcome = self.bias.handle(signal, now)
        if not outcome.accepted:
            return self._rejected(outcome.rejection)

        if outcome.action == BiasAction.QUEUED:
            return RelayResponse(200, {
                "status": "queued",
                "type": signal.type_code,
                "day": outcome.day,
                "releaseAt": self.config.session.bias_cutoff,
            })

        return self._delivered(outcome.dispatch, {"type": signal.type_code, "day": outcome.day})

    def _process_summary(self, signal: Signal, now: datetime) -> RelayResponse:
        today = session_date(now, self.tz_name)
        if signal.summary_period == SummaryPeriod.WEEKLY:
            dates = week_range(today)
            title = f"Weekly Summary - {dates[0].isoformat()} to {dates[-1].isoformat()}"
        else:
            dates = [today]
            title = f"Daily Summary - {today.isoformat()}"

        report = self.sweeps.send_summary(title, dates, kind=signal.summary_period.value.lower())
        return self._delivered(report.dispatch, {"type": signal.type_code, "summary": report.summary.to_dict()})

    @staticmethod
    def _rejected(rejection: Rejection) -> RelayResponse:
        return RelayResponse(REJECTION_STATUS[rejection.kind], rejection.to_dict())

    @staticmethod
    def _delivered(dispatch: DispatchResult, details: dict[str, Any]) -> RelayResponse:
        if dispatch.success:
            return RelayResponse(200, {
                "status": "success",
                "message": "Alert sent",
                "attempt": dispatch.attempt,
                "delivery": dispatch.to_dict(),
                **details,
            })

        return RelayResponse(502, {
            "status": "error",
            "reason": "Primary channel delivery failed",
            "delivery": dispatch.to_dict(),
            **details,
        })

    def run_sweep(self, name: str, now: Optional[datetime] = None) -> SweepResult:
        """Run a named sweep (retention, settlement, bias_release)."""
        return self.sweeps.run(name, now)

    def health(self, now: Optional[datetime] = None) -> dict[str, Any]:
        """Read-only status: live trades and recent duplicate markers."""
        now = utc_now(now)
        trades = self.engine.active_trades()

        return {
            "status": "ok",
            "activeTradesCount": len(trades),
            "activeTrades": [trade.summary() for trade in trades],
            "recentSignalsCount": self.store.count(MARKER_PREFIX),
            "channels": self.dispatcher.get_stats(),
            "timestamp": now.isoformat(),
        }
