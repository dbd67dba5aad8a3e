"""
Opening bias scheduling.

One opening bias is released per session day. Bias alerts that arrive before
the cutoff are parked as the day's Pending Bias and released by the daily
release sweep; alerts at or after the cutoff go out immediately unless the
day's Bias-Sent Marker already exists. Bias flips bypass the queue.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import structlog

from ..config.defaults import RelayConfig, get_default_config
from ..delivery.dispatcher import DispatchResult, NotificationDispatcher
from ..delivery.messages import bias_message
from ..errors import Rejection, RejectionReason, conflict
from ..logging.config import log_rejection
from ..persistence.kv_store import KeyValueStore
from ..signals.models import BiasType, Signal
from ..utils.time import date_key, is_before_cutoff, session_date, to_epoch_ms

logger = structlog.get_logger(__name__)

PENDING_PREFIX = "bias:"
SENT_PREFIX = "bias_sent:"


class BiasAction(str, Enum):
    QUEUED = "queued"
    SENT = "sent"
    REJECTED = "rejected"
    NOTHING_PENDING = "nothing_pending"
    ALREADY_RELEASED = "already_released"


@dataclass(frozen=True)
class BiasOutcome:
    """Result of handling or releasing a bias alert."""
    action: BiasAction
    day: str
    dispatch: Optional[DispatchResult] = None
    rejection: Optional[Rejection] = None
    alert: dict[str, Any] = field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return self.rejection is None


def pending_key(day: str) -> str:
    return f"{PENDING_PREFIX}{day}"


def sent_key(day: str) -> str:
    return f"{SENT_PREFIX}{day}"


class BiasScheduler:
    """Owns Pending Bias records and Bias-Sent Markers."""

    def __init__(
        self,
        store: KeyValueStore,
        dispatcher: NotificationDispatcher,
        config: Optional[RelayConfig] = None
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.config = config or get_default_config()
        self.logger = logger

    @property
    def session(self):
        return self.config.session

    def today(self, now: datetime) -> str:
        return date_key(session_date(now, self.session.timezone))

    @staticmethod
    def alert_payload(signal: Signal, now: datetime) -> dict[str, Any]:
        """Stored form of a bias alert."""
        return {
            "type": signal.type_code,
            "symbol": signal.symbol,
            "timeframe": signal.timeframe,
            "profile": signal.profile,
            "time": to_epoch_ms(signal.time) if signal.time else None,
            "received_at": to_epoch_ms(now),
        }

    def _claim_day(self, day: str, now: datetime, source: str) -> bool:
        """Atomically write today's Bias-Sent Marker. False if it already existed."""
        marker = {"sent_at": to_epoch_ms(now), "source": source}
        result = self.store.atomic_update(
            sent_key(day),
            lambda existing: None if existing else marker
        )
        return result.written

    def handle(self, signal: Signal, now: datetime) -> BiasOutcome:
        """Handle an inbound bias signal."""
        day = self.today(now)
        alert = self.alert_payload(signal, now)

        if signal.bias_type == BiasType.FLIP:
            dispatch = self.dispatcher.notify(bias_message(alert, self.session, flip=True))
            self.logger.info("Bias flip sent", day=day, delivered=dispatch.success)
            return BiasOutcome(BiasAction.SENT, day, dispatch=dispatch, alert=alert)

        if is_before_cutoff(now, self.session.timezone, self.session.bias_cutoff):
            self.store.set(pending_key(day), alert)
            self.logger.info("Opening bias queued", day=day, release_at=self.session.bias_cutoff)
            return BiasOutcome(BiasAction.QUEUED, day, alert=alert)

        if not self._claim_day(day, now, source="immediate"):
            rejection = conflict(
                RejectionReason.BIAS_ALREADY_SENT,
                "Opening bias already sent today",
                day=day,
                sentAt=(self.store.get(sent_key(day)) or {}).get("sent_at"),
            )
            log_rejection(self.logger, rejection.reason.value, rejection.message, rejection.context)
            return BiasOutcome(BiasAction.REJECTED, day, rejection=rejection, alert=alert)

        # A late alert supersedes anything still parked for the day
        self.store.delete(pending_key(day))

        dispatch = self.dispatcher.notify(bias_message(alert, self.session))
        self.logger.info("Opening bias sent", day=day, delivered=dispatch.success)
        return BiasOutcome(BiasAction.SENT, day, dispatch=dispatch, alert=alert)

    def release(self, now: datetime) -> BiasOutcome:
        """Release today's queued opening bias. Safe to run more than once."""
        day = self.today(now)
        alert = self.store.get(pending_key(day))

        if not alert:
            self.logger.info("No pending bias to release", day=day)
            return BiasOutcome(BiasAction.NOTHING_PENDING, day)

        if not self._claim_day(day, now, source="release"):
            self.store.delete(pending_key(day))
            self.logger.info("Pending bias discarded, already sent today", day=day)
            return BiasOutcome(BiasAction.ALREADY_RELEASED, day, alert=alert)

        dispatch = self.dispatcher.notify(bias_message(alert, self.session))
        self.store.delete(pending_key(day))

        self.logger.info("Pending bias released", day=day, delivered=dispatch.success)
        return BiasOutcome(BiasAction.SENT, day, dispatch=dispatch, alert=alert)

    def pending(self, day: str) -> Optional[dict[str, Any]]:
        return self.store.get(pending_key(day))

    def was_sent(self, day: str) -> bool:
        return self.store.get(sent_key(day)) is not None
