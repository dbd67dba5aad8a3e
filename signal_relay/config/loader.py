"""Configuration loader with 3-tier parameter precedence."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, is_dataclass
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml

from ..errors import ConfigError
from .channels import ChannelsConfig, DiscordChannelConfig, TelegramChannelConfig
from .defaults import (
    DispatchParams,
    EntryWindowParams,
    MessageParams,
    RelayConfig,
    RetentionParams,
    SessionParams,
    StoreParams,
    SuppressionParams,
    get_default_config,
)
from .validation import ConfigValidator

logger = structlog.get_logger(__name__)

# Environment variable -> (section path, field)
ENV_OVERRIDES: dict[str, tuple[tuple[str, ...], str]] = {
    "DISCORD_WEBHOOK_URL": (("channels", "discord"), "webhook_url"),
    "TELEGRAM_BOT_TOKEN": (("channels", "telegram"), "bot_token"),
    "TELEGRAM_CHAT_ID": (("channels", "telegram"), "chat_id"),
    "RELAY_DB_PATH": (("store",), "db_path"),
    "RELAY_TIMEZONE": (("session",), "timezone"),
}

_SECTION_TYPES: dict[str, type] = {
    "session": SessionParams,
    "entry_window": EntryWindowParams,
    "suppression": SuppressionParams,
    "retention": RetentionParams,
    "dispatch": DispatchParams,
    "messages": MessageParams,
    "store": StoreParams,
}


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with 3-tier precedence."""

    config_dir: Path
    defaults: RelayConfig

    @classmethod
    def create(cls, config_dir: Optional[Path] = None) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent / "config"

        return cls(
            config_dir=Path(config_dir),
            defaults=get_default_config(),
        )

    def load_file_config(self) -> dict[str, Any]:
        """Load overrides from ``relay.yaml`` in the config directory."""
        config_file = self.config_dir / "relay.yaml"

        if not config_file.exists():
            return {}

        with open(config_file) as f:
            file_config = yaml.safe_load(f)

        return file_config or {}

    def load_env_config(self, environ: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
        """Collect secret and deployment overrides from the environment."""
        environ = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}

        for var, (path, field_name) in ENV_OVERRIDES.items():
            value = environ.get(var)
            if not value:
                continue
            section = overrides
            for part in path:
                section = section.setdefault(part, {})
            section[field_name] = value

        return overrides

    def merge_config(
        self,
        overrides: Optional[dict[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Explicit overrides and environment variables (highest priority)
        2. ``relay.yaml`` file overrides
        3. Global defaults (lowest priority)
        """
        config = self._dataclass_to_dict(self.defaults)

        config = self._deep_merge(config, self.load_file_config())
        config = self._deep_merge(config, self.load_env_config(environ))

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def load(
        self,
        overrides: Optional[dict[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> RelayConfig:
        """
        Load, validate and build the relay configuration.

        Raises:
            ConfigError: If the merged configuration fails validation
        """
        merged = self.merge_config(overrides, environ)

        errors = ConfigValidator.validate_config(merged)
        if errors:
            error_msgs = [f"{err.field}: {err.message} (got: {err.value})" for err in errors]
            logger.error("Configuration validation failed", errors=error_msgs)
            raise ConfigError("Invalid relay configuration", errors=errors)

        return self._build_config(merged)

    def _build_config(self, merged: dict[str, Any]) -> RelayConfig:
        sections = {
            name: self._build_section(section_type, merged.get(name, {}))
            for name, section_type in _SECTION_TYPES.items()
        }

        channels = merged.get("channels", {})
        sections["channels"] = ChannelsConfig(
            discord=self._build_section(DiscordChannelConfig, channels.get("discord", {})),
            telegram=self._build_section(TelegramChannelConfig, channels.get("telegram", {})),
            user_agent=channels.get("user_agent", ChannelsConfig().user_agent),
        )

        return RelayConfig(**sections)

    @staticmethod
    def _build_section(section_type: type, values: dict[str, Any]) -> Any:
        known = {f.name for f in fields(section_type)}
        unknown = set(values) - known
        if unknown:
            logger.warning(
                "Ignoring unknown configuration keys",
                section=section_type.__name__,
                keys=sorted(unknown)
            )
        return section_type(**{k: v for k, v in values.items() if k in known})

    def _dataclass_to_dict(self, obj: Any) -> dict[str, Any]:
        """Convert nested dataclasses to dictionary."""
        if is_dataclass(obj):
            result = {}
            for f in fields(obj):
                value = getattr(obj, f.name)
                if is_dataclass(value):
                    result[f.name] = self._dataclass_to_dict(value)
                else:
                    result[f.name] = value
            return result
        return obj  # type: ignore[no-any-return]

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result


def load_config(
    config_dir: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None
) -> RelayConfig:
    """Load relay configuration from the default locations."""
    return ConfigLoader.create(config_dir).load(overrides)
