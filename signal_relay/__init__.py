"""
Signal Relay - TradingView webhook relay with single-trade lifecycle tracking

Ingests charting-platform trade signals, tracks the lifecycle of the single
active trade, suppresses duplicate signals and forwards notifications to
Discord and Telegram. Scheduled sweeps settle trades at market close, release
queued bias alerts and report daily and weekly performance.
"""

__version__ = "0.1.0"
__author__ = "Signal Relay Team"
