"""
Sweep scheduler.

Runs the time-triggered jobs delivered by an external scheduler:

- retention: age-based deletion of every record kind
- settlement: market-close force-close of live trades, then daily (and, on
  the week-ending day, weekly) performance summaries
- bias_release: release of the day's queued opening bias

Each sweep re-reads state from the store, so an interrupted run is repaired
by the next one.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import structlog

from ..bias.scheduler import PENDING_PREFIX, SENT_PREFIX, BiasOutcome, BiasScheduler
from ..config.defaults import RelayConfig, get_default_config
from ..delivery.dispatcher import BatchDispatchResult, DispatchResult, NotificationDispatcher
from ..delivery.messages import market_close_header, summary_message, trade_embed
from ..persistence.kv_store import KeyValueStore
from ..signals.dedup import MARKER_PREFIX
from ..state.engine import TradeStateEngine
from ..state.models import ARCHIVE_PREFIX, TRADE_PREFIX
from ..utils.time import session_date, to_epoch_ms, utc_now, week_range
from .summary import PerformanceSummary, summarize

logger = structlog.get_logger(__name__)

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


class SweepName(str, Enum):
    RETENTION = "retention"
    SETTLEMENT = "settlement"
    BIAS_RELEASE = "bias_release"


@dataclass(frozen=True)
class RetentionReport:
    """Records removed by a retention sweep."""
    trades: int = 0
    archives: int = 0
    duplicate_markers: int = 0
    pending_biases: int = 0
    bias_markers: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "cleanedTradeCount": self.trades,
            "cleanedArchiveCount": self.archives,
            "cleanedSignalCount": self.duplicate_markers,
            "cleanedBiasCount": self.pending_biases,
            "cleanedBiasMarkerCount": self.bias_markers,
        }


@dataclass(frozen=True)
class SummaryReport:
    """A computed summary and its delivery."""
    title: str
    summary: PerformanceSummary
    dispatch: Optional[DispatchResult] = None


@dataclass(frozen=True)
class SettlementReport:
    """Outcome of a market-close settlement sweep."""
    closed_trade_ids: tuple[str, ...] = ()
    close_notice: Optional[BatchDispatchResult] = None
    daily: Optional[SummaryReport] = None
    weekly: Optional[SummaryReport] = None


@dataclass(frozen=True)
class SweepResult:
    """Result of a named sweep run."""
    name: SweepName
    ran_at: datetime
    report: Any = field(default=None)


class SweepScheduler:
    """Dispatches named sweep invocations."""

    def __init__(
        self,
        store: KeyValueStore,
        engine: TradeStateEngine,
        bias_scheduler: BiasScheduler,
        dispatcher: NotificationDispatcher,
        config: Optional[RelayConfig] = None
    ):
        self.store = store
        self.engine = engine
        self.bias_scheduler = bias_scheduler
        self.dispatcher = dispatcher
        self.config = config or get_default_config()
        self.logger = logger

        self._sweeps: dict[SweepName, Callable[[datetime], Any]] = {
            SweepName.RETENTION: self.retention,
            SweepName.SETTLEMENT: self.settlement,
            SweepName.BIAS_RELEASE: self.bias_release,
        }

    def run(self, name: str, now: Optional[datetime] = None) -> SweepResult:
        """
        Run a sweep by name.

        Raises:
            ValueError: If the name is not a known sweep
        """
        sweep = SweepName(name)
        now = utc_now(now)

        self.logger.info("Sweep started", sweep=sweep.value)
        report = self._sweeps[sweep](now)
        self.logger.info("Sweep finished", sweep=sweep.value)

        return SweepResult(name=sweep, ran_at=now, report=report)

    def _expired(self, prefix: str, now_ms: int, max_age_ms: float,
                 timestamp_field: str) -> list[str]:
        expired = []
        for key, record in self.store.scan(prefix):
            stamp = record.get(timestamp_field) if isinstance(record, dict) else None
            if stamp is not None and now_ms - stamp > max_age_ms:
                expired.append(key)
        return expired

    def retention(self, now: datetime) -> RetentionReport:
        """Delete records past their retention age. Never touches younger records."""
        params = self.config.retention
        now_ms = to_epoch_ms(now)
        window_ms = self.config.suppression.window_seconds * 1000

        expired = {
            "trades": self._expired(TRADE_PREFIX, now_ms, params.trade_max_age_hours * HOUR_MS, "last_update"),
            "archives": self._expired(ARCHIVE_PREFIX, now_ms, params.archive_max_age_days * DAY_MS, "archived_at"),
            "duplicate_markers": self._expired(MARKER_PREFIX, now_ms, window_ms, "seen_at"),
            "pending_biases": self._expired(
                PENDING_PREFIX, now_ms, params.pending_bias_max_age_hours * HOUR_MS, "received_at"
            ),
            "bias_markers": self._expired(SENT_PREFIX, now_ms, params.bias_sent_max_age_hours * HOUR_MS, "sent_at"),
        }

        report = RetentionReport(**{
            kind: self.store.delete_many(keys) for kind, keys in expired.items()
        })

        self.logger.info("Retention sweep complete", **report.to_dict())
        return report

    def settlement(self, now: datetime) -> SettlementReport:
        """Force-close live trades at market close, then report performance."""
        session = self.config.session
        trades = self.engine.active_trades()
        close_notice = None

        if trades:
            close_notice = self.dispatcher.notify_batched(
                market_close_header(len(trades)),
                [trade_embed(trade, session) for trade in trades],
                kind="market_close",
            )
            self.engine.force_close(trades, now)
            self.logger.info(
                "Live trades force-closed at market close",
                trade_ids=[trade.trade_id for trade in trades]
            )

        today = session_date(now, session.timezone)
        daily = self.send_summary(f"Daily Summary - {today.isoformat()}", [today], kind="daily_summary")

        weekly = None
        if today.weekday() == session.week_end_weekday:
            week = week_range(today)
            weekly = self.send_summary(
                f"Weekly Summary - {week[0].isoformat()} to {week[-1].isoformat()}",
                week,
                kind="weekly_summary",
            )

        return SettlementReport(
            closed_trade_ids=tuple(trade.trade_id for trade in trades),
            close_notice=close_notice,
            daily=daily,
            weekly=weekly,
        )

    def send_summary(self, title: str, dates: list, kind: str = "summary") -> SummaryReport:
        """Compute a summary over archive records for ``dates`` and notify it."""
        summary = summarize(self.engine.archive_for_dates(dates))
        dispatch = self.dispatcher.notify(summary_message(title, summary, kind=kind))

        self.logger.info("Summary sent", title=title, delivered=dispatch.success, **summary.to_dict())
        return SummaryReport(title=title, summary=summary, dispatch=dispatch)

    def bias_release(self, now: datetime) -> BiasOutcome:
        return self.bias_scheduler.release(now)
