"""Pytest configuration and shared fixtures."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from signal_relay.config.defaults import DispatchParams, RelayConfig, StoreParams
from signal_relay.delivery.base import BaseChannel, Message
from signal_relay.delivery.dispatcher import NotificationDispatcher
from signal_relay.persistence.kv_store import KeyValueStore
from signal_relay.relay import SignalRelay
from signal_relay.signals.dedup import DuplicateSuppressor

# Monday 2026-10-19 10:00 America/New_York (EDT, UTC-4)
MARKET_OPEN_UTC = datetime(2026, 10, 19, 14, 0, 0, tzinfo=timezone.utc)


class FakeChannel(BaseChannel):
    """In-memory channel that records messages and replays scripted failures."""

    def __init__(self, name: str = "fake", primary: bool = True,
                 outcomes: Optional[List[Optional[Exception]]] = None,
                 params: Optional[DispatchParams] = None):
        self.sleeps: List[float] = []
        super().__init__(name, params or DispatchParams(), primary=primary, sleep=self.sleeps.append)
        self.outcomes = list(outcomes or [])
        self.attempts: List[Message] = []
        self.delivered: List[Message] = []

    def deliver(self, message: Message) -> None:
        self.attempts.append(message)
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if outcome is not None:
            raise outcome
        self.delivered.append(message)


@pytest.fixture
def now() -> datetime:
    """Fixed instant during the regular session."""
    return MARKET_OPEN_UTC


@pytest.fixture
def store(tmp_path) -> KeyValueStore:
    """Fresh key-value store in a temporary directory."""
    return KeyValueStore(str(tmp_path / "relay.db"))


@pytest.fixture
def suppressor(store) -> DuplicateSuppressor:
    return DuplicateSuppressor(store, window_seconds=5.0)


@pytest.fixture
def config(tmp_path) -> RelayConfig:
    """Default configuration pointed at a temporary store."""
    return RelayConfig(
        store=StoreParams(db_path=str(tmp_path / "relay.db")),
        dispatch=DispatchParams(parallel_delivery=False),
    )


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel("primary", primary=True)


@pytest.fixture
def dispatcher(channel) -> NotificationDispatcher:
    batch_sleeps: List[float] = []
    dispatcher = NotificationDispatcher([channel], DispatchParams(parallel_delivery=False),
                                        sleep=batch_sleeps.append)
    dispatcher.batch_sleeps = batch_sleeps
    return dispatcher


@pytest.fixture
def relay(config, store, dispatcher) -> SignalRelay:
    return SignalRelay(config, store=store, dispatcher=dispatcher)


@pytest.fixture
def entry_payload() -> Dict[str, Any]:
    """LONG entry webhook payload."""
    return {
        "type": "LONG_ENTRY",
        "tradeId": "101",
        "symbol": "NQ1!",
        "tf": "3",
        "time": "2026-10-19T14:00:00Z",
        "entry": "100",
        "sl": "95",
        "tp1": "105",
        "tp2": "110",
    }


def exit_payload(exit_type: str, price: Any, trade_id: str = "101", side: str = "LONG",
                 time: str = "2026-10-19T14:30:00Z") -> Dict[str, Any]:
    """Exit webhook payload."""
    return {
        "type": f"{side}_{exit_type}",
        "tradeId": trade_id,
        "symbol": "NQ1!",
        "tf": "3",
        "time": time,
        "price": price,
    }


@pytest.fixture
def make_exit():
    """Factory for exit webhook payloads."""
    return exit_payload
