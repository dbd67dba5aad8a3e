"""Default configuration parameters for the signal relay."""

from dataclasses import dataclass, field
from typing import Optional

from .channels import ChannelsConfig


@dataclass(frozen=True)
class SessionParams:
    """Trading session parameters."""
    timezone: str = "America/New_York"
    timezone_label: str = "EST"                      # Suffix shown in messages
    bias_cutoff: str = "08:30"                       # Opening bias release time
    week_end_weekday: int = 4                        # Friday (Monday == 0)


@dataclass(frozen=True)
class EntryWindowParams:
    """Optional entry time-of-day filter."""
    enabled: bool = False
    start: str = "09:34"
    end: str = "11:00"


@dataclass(frozen=True)
class SuppressionParams:
    """Duplicate signal suppression parameters."""
    window_seconds: float = 5.0


@dataclass(frozen=True)
class RetentionParams:
    """Age-based retention limits."""
    trade_max_age_hours: float = 24.0
    archive_max_age_days: float = 30.0
    pending_bias_max_age_hours: float = 24.0
    bias_sent_max_age_hours: float = 48.0


@dataclass(frozen=True)
class DispatchParams:
    """Notification delivery parameters."""
    max_attempts: int = 3
    base_delay_seconds: float = 1.0                  # Backoff: 1s, 2s, 4s
    max_retry_after_seconds: float = 30.0            # Cap for rate-limit hints
    timeout_seconds: float = 10.0                    # Per-attempt HTTP timeout
    batch_size: int = 10                             # Items per batched message
    inter_batch_delay_seconds: float = 1.0
    parallel_delivery: bool = True


@dataclass(frozen=True)
class MessageParams:
    """Notification template parameters."""
    instrument_label: str = "NQ|NAS100"
    buy_image_url: Optional[str] = None
    sell_image_url: Optional[str] = None


@dataclass(frozen=True)
class StoreParams:
    """Key-value store parameters."""
    db_path: str = "relay.db"
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class RelayConfig:
    """Complete relay configuration."""
    session: SessionParams = field(default_factory=SessionParams)
    entry_window: EntryWindowParams = field(default_factory=EntryWindowParams)
    suppression: SuppressionParams = field(default_factory=SuppressionParams)
    retention: RetentionParams = field(default_factory=RetentionParams)
    dispatch: DispatchParams = field(default_factory=DispatchParams)
    messages: MessageParams = field(default_factory=MessageParams)
    store: StoreParams = field(default_factory=StoreParams)
    channels: ChannelsConfig = field(default_factory=ChannelsConfig)


def get_default_config() -> RelayConfig:
    """Get the default configuration instance."""
    return RelayConfig(
        session=SessionParams(),
        entry_window=EntryWindowParams(),
        suppression=SuppressionParams(),
        retention=RetentionParams(),
        dispatch=DispatchParams(),
        messages=MessageParams(),
        store=StoreParams(),
        channels=ChannelsConfig(),
    )
