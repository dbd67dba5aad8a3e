"""Discord webhook channel."""

import time
from collections.abc import Callable
from typing import Any, Optional

from ..config.channels import DiscordChannelConfig
from ..config.defaults import DispatchParams
from .base import Message
from .http_channel import HttpChannel

DISCORD_CONTENT_LIMIT = 2000


class DiscordChannel(HttpChannel):
    """Posts messages to a Discord webhook as content plus embeds."""

    max_embeds = 10

    def __init__(
        self,
        config: DiscordChannelConfig,
        params: Optional[DispatchParams] = None,
        name: str = "discord",
        sleep: Callable[[float], None] = time.sleep
    ):
        super().__init__(name, params, primary=config.primary, sleep=sleep)
        self.config = config
        self.webhook_url = self.validate_url(config.webhook_url, name)

    def build_payload(self, message: Message) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "content": self.truncate(message.text, DISCORD_CONTENT_LIMIT, "content", message.kind)
        }

        embeds = list(message.embeds)
        if message.image_url:
            embeds.insert(0, {"image": {"url": message.image_url}})
        if len(embeds) > self.max_embeds:
            self.logger.warning(
                "Embeds dropped over Discord limit",
                kind=message.kind,
                dropped=len(embeds) - self.max_embeds,
                limit=self.max_embeds
            )
            embeds = embeds[:self.max_embeds]
        if embeds:
            payload["embeds"] = embeds

        if self.config.username:
            payload["username"] = self.config.username

        return payload

    def deliver(self, message: Message) -> None:
        self.post_json(self.webhook_url, self.build_payload(message))
