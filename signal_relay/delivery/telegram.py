"""Telegram bot channel."""

import time
from collections.abc import Callable
from typing import Any, Optional

from ..config.channels import TelegramChannelConfig
from ..config.defaults import DispatchParams
from ..errors import DeliveryError
from .base import Message, render_embed_text
from .http_channel import HttpChannel

TELEGRAM_TEXT_LIMIT = 4096
TELEGRAM_CAPTION_LIMIT = 1024


class TelegramChannel(HttpChannel):
    """
    Sends messages through the Telegram Bot API.

    Messages that carry an image go out as a photo with the text as caption
    (``sendPhoto``); everything else uses ``sendMessage``. Embeds are flattened
    into the message text.
    """

    supports_images = True

    def __init__(
        self,
        config: TelegramChannelConfig,
        params: Optional[DispatchParams] = None,
        name: str = "telegram",
        sleep: Callable[[float], None] = time.sleep
    ):
        super().__init__(name, params, primary=config.primary, sleep=sleep)
        self.config = config
        if not config.bot_token or not config.chat_id:
            raise DeliveryError("Telegram channel needs bot_token and chat_id", channel=name)
        self.api_url = self.validate_url(f"{config.api_base.rstrip('/')}/bot{config.bot_token}", name)

    def render_text(self, message: Message) -> str:
        parts = [message.text]
        parts.extend(render_embed_text(embed) for embed in message.embeds)
        return "\n\n".join(part for part in parts if part)

    def build_request(self, message: Message) -> tuple[str, dict[str, Any]]:
        """Return ``(method, payload)`` for a message."""
        text = self.render_text(message)
        payload: dict[str, Any] = {"chat_id": self.config.chat_id}
        if self.config.parse_mode:
            payload["parse_mode"] = self.config.parse_mode

        if message.image_url:
            payload["photo"] = message.image_url
            payload["caption"] = self.truncate(text, TELEGRAM_CAPTION_LIMIT, "caption", message.kind)
            return "sendPhoto", payload

        payload["text"] = self.truncate(text, TELEGRAM_TEXT_LIMIT, "text", message.kind)
        payload["disable_web_page_preview"] = True
        return "sendMessage", payload

    def deliver(self, message: Message) -> None:
        method, payload = self.build_request(message)
        self.post_json(f"{self.api_url}/{method}", payload)
