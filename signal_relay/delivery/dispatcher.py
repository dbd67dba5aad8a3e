"""
Notification dispatcher.

Fans a logical alert out to every configured channel. Each channel retries on
its own (see BaseChannel.send); the dispatcher only aggregates. Overall
success means the primary channel delivered; secondary channels are
best-effort and never affect each other or the primary.
"""

import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Optional

from ..config.channels import discord_is_configured, telegram_is_configured
from ..config.defaults import DispatchParams, RelayConfig
from ..logging.config import get_delivery_logger
from .base import BaseChannel, DeliveryResult, DeliveryStatus, Message
from .discord import DiscordChannel
from .telegram import TelegramChannel

logger = get_delivery_logger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of fanning one message out to all channels."""
    success: bool
    results: dict[str, DeliveryResult] = field(default_factory=dict)
    primary: Optional[str] = None

    @property
    def primary_result(self) -> Optional[DeliveryResult]:
        return self.results.get(self.primary) if self.primary else None

    @property
    def attempt(self) -> Optional[int]:
        result = self.primary_result
        return result.attempt_count if result else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "primary": self.primary,
            "channels": {
                name: {
                    "status": result.status.value,
                    "attempts": result.attempt_count,
                    "message": result.message,
                }
                for name, result in self.results.items()
            },
        }


@dataclass(frozen=True)
class BatchDispatchResult:
    """Outcome of a batched send."""
    batches: tuple[DispatchResult, ...] = ()
    batch_sizes: tuple[int, ...] = ()

    @property
    def success(self) -> bool:
        return all(batch.success for batch in self.batches)

    @property
    def failed_batches(self) -> list[int]:
        return [index for index, batch in enumerate(self.batches) if not batch.success]


def split_batches(items: Sequence[Any], batch_size: int) -> list[list[Any]]:
    """Split items into ordered batches of at most ``batch_size``."""
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


class NotificationDispatcher:
    """Multi-channel fan-out with batching."""

    def __init__(
        self,
        channels: Sequence[BaseChannel],
        params: Optional[DispatchParams] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.channels = list(channels)
        self.params = params or DispatchParams()
        self.logger = logger
        self._sleep = sleep

        primaries = [channel for channel in self.channels if channel.primary]
        if not primaries and self.channels:
            # First configured channel stands in as primary
            primaries = [self.channels[0]]
        self.primary: Optional[BaseChannel] = primaries[0] if primaries else None

    def _send_one(self, channel: BaseChannel, message: Message) -> DeliveryResult:
        try:
            return channel.send(message)
        except Exception as e:
            self.logger.error("Channel raised during send", channel=channel.name, error=str(e))
            return DeliveryResult(
                status=DeliveryStatus.FAILED,
                channel=channel.name,
                message=f"Unexpected error: {e}",
                error=e
            )

    def notify(self, message: Message) -> DispatchResult:
        """
        Deliver a message to every channel.

        Returns:
            DispatchResult whose ``success`` reflects the primary channel
        """
        if not self.channels:
            self.logger.warning("No channels configured, message dropped", kind=message.kind)
            return DispatchResult(success=False)

        if self.params.parallel_delivery and len(self.channels) > 1:
            with ThreadPoolExecutor(max_workers=len(self.channels)) as pool:
                futures = {
                    channel.name: pool.submit(self._send_one, channel, message)
                    for channel in self.channels
                }
                results = {name: future.result() for name, future in futures.items()}
        else:
            results = {channel.name: self._send_one(channel, message) for channel in self.channels}

        primary_name = self.primary.name
        success = results[primary_name].success

        self.logger.info(
            "Message dispatched",
            kind=message.kind,
            success=success,
            channels={name: result.status.value for name, result in results.items()}
        )

        return DispatchResult(success=success, results=results, primary=primary_name)

    def notify_batched(
        self,
        header: str,
        items: Sequence[dict[str, Any]],
        batch_size: Optional[int] = None,
        kind: str = "batch"
    ) -> BatchDispatchResult:
        """
        Send structured items as ordered, sequential batches.

        Each batch is its own message with its own retries; a failed batch is
        reported and the remaining batches still go out, so acknowledged
        batches are never re-sent.
        """
        batch_size = batch_size or self.params.batch_size
        batches = split_batches(items, batch_size)
        results = []

        for index, batch in enumerate(batches):
            text = header if len(batches) == 1 else f"{header} ({index + 1}/{len(batches)})"
            results.append(self.notify(Message(text=text, embeds=tuple(batch), kind=kind)))

            if index < len(batches) - 1:
                self._sleep(self.params.inter_batch_delay_seconds)

        batch_result = BatchDispatchResult(
            batches=tuple(results),
            batch_sizes=tuple(len(batch) for batch in batches)
        )

        if not batch_result.success:
            self.logger.warning(
                "Batched dispatch incomplete",
                kind=kind,
                failed_batches=batch_result.failed_batches,
                total_batches=len(batches)
            )

        return batch_result

    def get_stats(self) -> list[dict[str, Any]]:
        return [channel.get_stats() for channel in self.channels]


def build_channels(
    config: RelayConfig,
    sleep: Callable[[float], None] = time.sleep
) -> list[BaseChannel]:
    """Instantiate every configured channel."""
    channels: list[BaseChannel] = []

    if discord_is_configured(config.channels.discord):
        channels.append(DiscordChannel(config.channels.discord, config.dispatch, sleep=sleep))

    if telegram_is_configured(config.channels.telegram):
        channels.append(TelegramChannel(config.channels.telegram, config.dispatch, sleep=sleep))

    for channel in channels:
        channel.user_agent = config.channels.user_agent

    if not channels:
        logger.warning("No notification channels configured")

    return channels


def create_dispatcher(
    config: RelayConfig,
    sleep: Callable[[float], None] = time.sleep
) -> NotificationDispatcher:
    """Build a dispatcher for every configured channel."""
    return NotificationDispatcher(build_channels(config, sleep), config.dispatch, sleep=sleep)
