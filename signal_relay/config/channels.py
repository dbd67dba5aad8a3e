"""Configuration for outbound notification channels."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class DiscordChannelConfig:
    """Configuration for a Discord webhook channel."""
    webhook_url: Optional[str] = None
    enabled: bool = True
    primary: bool = True
    username: Optional[str] = None


@dataclass(frozen=True)
class TelegramChannelConfig:
    """Configuration for a Telegram bot channel."""
    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    enabled: bool = True
    primary: bool = False
    api_base: str = "https://api.telegram.org"
    parse_mode: Optional[str] = None


@dataclass(frozen=True)
class ChannelsConfig:
    """All configured channels."""
    discord: DiscordChannelConfig = field(default_factory=DiscordChannelConfig)
    telegram: TelegramChannelConfig = field(default_factory=TelegramChannelConfig)
    user_agent: str = "signal-relay/0.1"


def discord_is_configured(config: DiscordChannelConfig) -> bool:
    """Check whether the Discord channel can be built."""
    return config.enabled and bool(config.webhook_url)


def telegram_is_configured(config: TelegramChannelConfig) -> bool:
    """Check whether the Telegram channel can be built."""
    return config.enabled and bool(config.bot_token) and bool(config.chat_id)
