"""Base classes for notification channels."""

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..config.defaults import DispatchParams
from ..logging.config import get_delivery_logger


class DeliveryStatus(Enum):
    """Notification delivery status."""
    SUCCESS = "success"
    FAILED = "failed"
    DEAD_LETTER = "dead_letter"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Message:
    """A formatted notification, independent of channel wire format."""
    text: str
    image_url: Optional[str] = None
    embeds: tuple[dict[str, Any], ...] = ()
    kind: str = "alert"


@dataclass
class DeliveryResult:
    """Result of delivering one message to one channel."""
    status: DeliveryStatus
    channel: str = ""
    message: Optional[str] = None
    attempt_count: int = 1
    delivery_time_ms: Optional[int] = None
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.status == DeliveryStatus.SUCCESS


class ChannelDeliveryError(Exception):
    """Base exception for channel delivery errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ChannelRetryableError(ChannelDeliveryError):
    """Retryable delivery error (5xx, 429, network)."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 retry_after: Optional[float] = None):
        super().__init__(message, status_code)
        self.retry_after = retry_after


class ChannelPermanentError(ChannelDeliveryError):
    """Permanent delivery error that should not be retried (4xx other than 429)."""
    pass


@dataclass
class ChannelStats:
    delivered: int = 0
    failed: int = 0
    attempts: int = 0
    last_error: Optional[str] = field(default=None)


class BaseChannel(ABC):
    """Base class for outbound messaging channels."""

    supports_images = False
    max_embeds = 10

    def __init__(
        self,
        name: str,
        params: Optional[DispatchParams] = None,
        primary: bool = False,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.name = name
        self.params = params or DispatchParams()
        self.primary = primary
        self.logger = get_delivery_logger(f"signal_relay.delivery.{name}").bind(channel=name)
        self._sleep = sleep
        self.stats = ChannelStats()

    @abstractmethod
    def deliver(self, message: Message) -> None:
        """
        Deliver one message with a single attempt.

        Raises:
            ChannelRetryableError: The attempt failed and may succeed later
            ChannelPermanentError: The channel refused the message
        """
        pass

    def truncate(self, text: str, limit: int, field_name: str, kind: str) -> str:
        """Cut ``text`` to the channel's length limit, logging what was lost."""
        if len(text) <= limit:
            return text
        self.logger.warning(
            "Message text truncated",
            field=field_name,
            kind=kind,
            length=len(text),
            limit=limit
        )
        return text[:limit]

    def backoff_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Delay before the attempt following ``attempt``: base * 2**(attempt-1)."""
        delay = self.params.base_delay_seconds * (2 ** (attempt - 1))
        if retry_after:
            delay = max(delay, min(retry_after, self.params.max_retry_after_seconds))
        return delay

    def send(self, message: Message) -> DeliveryResult:
        """
        Deliver a message with retry and exponential backoff.

        Returns:
            DeliveryResult; never raises for delivery failures
        """
        max_attempts = self.params.max_attempts
        attempt = 0
        last_error: Optional[Exception] = None

        while attempt < max_attempts:
            attempt += 1
            self.stats.attempts += 1
            retry_after = None
            start_time = time.monotonic()

            try:
                self.deliver(message)

            except ChannelPermanentError as e:
                self.stats.failed += 1
                self.stats.last_error = str(e)
                self.logger.error(
                    "Delivery rejected by channel",
                    attempt=attempt,
                    status_code=e.status_code,
                    error=str(e)
                )
                return DeliveryResult(
                    status=DeliveryStatus.FAILED,
                    channel=self.name,
                    message=f"Permanent error: {e}",
                    attempt_count=attempt,
                    error=e
                )

            except ChannelRetryableError as e:
                last_error = e
                retry_after = e.retry_after

            except Exception as e:
                # Unknown error - treat as retryable
                last_error = e

            else:
                self.stats.delivered += 1
                return DeliveryResult(
                    status=DeliveryStatus.SUCCESS,
                    channel=self.name,
                    message="Delivered",
                    attempt_count=attempt,
                    delivery_time_ms=int((time.monotonic() - start_time) * 1000)
                )

            if attempt < max_attempts:
                delay = self.backoff_delay(attempt, retry_after)
                self.logger.warning(
                    "Delivery attempt failed, retrying",
                    attempt=attempt,
                    retry_in_seconds=delay,
                    error=str(last_error)
                )
                self._sleep(delay)

        self.stats.failed += 1
        self.stats.last_error = str(last_error)
        self.logger.error(
            "Delivery failed after max attempts",
            attempts=attempt,
            error=str(last_error)
        )
        return DeliveryResult(
            status=DeliveryStatus.DEAD_LETTER,
            channel=self.name,
            message=f"Max retries exceeded: {last_error}",
            attempt_count=attempt,
            error=last_error
        )

    def get_stats(self) -> dict[str, Any]:
        """Get delivery statistics."""
        total = self.stats.delivered + self.stats.failed
        return {
            "name": self.name,
            "primary": self.primary,
            "delivered": self.stats.delivered,
            "failed": self.stats.failed,
            "attempts": self.stats.attempts,
            "last_error": self.stats.last_error,
            "success_rate": self.stats.delivered / total if total > 0 else 0.0,
        }


def render_embed_text(embed: dict[str, Any]) -> str:
    """Plain-text rendering of an embed for channels without rich embeds."""
    lines = []
    if embed.get("title"):
        lines.append(str(embed["title"]))
    if embed.get("description"):
        lines.append(str(embed["description"]))
    for embed_field in embed.get("fields", ()):
        lines.append(f"{embed_field.get('name')}: {embed_field.get('value')}")
    return "\n".join(lines)
