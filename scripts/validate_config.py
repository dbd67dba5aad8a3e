#!/usr/bin/env python3
"""Configuration validation script."""

import sys
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from signal_relay.config.channels import discord_is_configured, telegram_is_configured
from signal_relay.config.loader import ConfigLoader
from signal_relay.config.validation import ConfigValidator


def main():
    """Main validation function."""
    print("🔍 Validating signal relay configuration...")

    loader = ConfigLoader.create()
    merged = loader.merge_config()
    errors = ConfigValidator.validate_config(merged)

    if errors:
        print(f"❌ Found {len(errors)} validation errors:")
        for error in errors:
            print(f"  • {error.field}: {error.message} (value: {error.value})")
        return 1

    config = loader.load()
    print("✅ Configuration is valid")
    print(f"  • Session time zone: {config.session.timezone}")
    print(f"  • Bias cutoff: {config.session.bias_cutoff}")
    print(f"  • Entry window: {'enabled' if config.entry_window.enabled else 'disabled'}")
    print(f"  • Store: {config.store.db_path}")

    channels = {
        "discord": discord_is_configured(config.channels.discord),
        "telegram": telegram_is_configured(config.channels.telegram),
    }
    for name, configured in channels.items():
        print(f"  • Channel {name}: {'configured' if configured else 'not configured'}")

    if not any(channels.values()):
        print("⚠️  No notification channels configured; alerts will be dropped")

    return 0


if __name__ == "__main__":
    sys.exit(main())
