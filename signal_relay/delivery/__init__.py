"""
Notification delivery.

Channels (Discord, Telegram) with per-channel retry and backoff, the
multi-channel dispatcher, and message templates.
"""
