"""Human-readable notification templates."""

from datetime import datetime
from typing import Any, Optional

from ..config.defaults import MessageParams, SessionParams
from ..signals.models import Direction, Signal
from ..state.models import ArchiveRecord, Trade
from ..utils.numbers import format_points, format_price
from ..utils.time import format_signal_time, from_epoch_ms
from .base import Message

COLOR_GREEN = 0x2ECC71
COLOR_RED = 0xE74C3C
COLOR_AMBER = 0xF1C40F


def _fmt(value: Optional[float]) -> str:
    return format_price(value, missing="N/A")


def _time(ts: Optional[datetime], session: SessionParams) -> str:
    return format_signal_time(ts, session.timezone, session.timezone_label)


def entry_message(signal: Signal, trade: Trade, session: SessionParams,
                  params: MessageParams) -> Message:
    is_long = trade.direction == Direction.LONG
    action = "Buy" if is_long else "Sell"
    text = "\n".join([
        f"**{action} {params.instrument_label} Now**",
        f"Trade ID: {trade.trade_id}",
        signal.symbol_line,
        f"Time: {_time(signal.time, session)}",
        f"Entry: {_fmt(trade.entry)}",
        f"SL: {_fmt(trade.stop)}",
        f"TP1: {_fmt(trade.tp1)}",
        f"TP2: {_fmt(trade.tp2)}",
    ])
    image = params.buy_image_url if is_long else params.sell_image_url
    return Message(text=text, image_url=image, kind="entry")


def partial_message(signal: Signal, session: SessionParams) -> Message:
    text = "\n".join([
        "**Trade Update: TP1 HIT / BE**",
        f"Trade ID: {signal.trade_id}",
        signal.symbol_line,
        f"Time: {_time(signal.time, session)}",
        f"Price: {_fmt(signal.price)}",
        "TP1 Smashed! 🔥 SL moved to entry. 50% Partials secured. 💰",
    ])
    return Message(text=text, kind="partial")


def close_message(signal: Signal, archive: ArchiveRecord, session: SessionParams) -> Message:
    if archive.exit_type.is_target_hit:
        headline = "**Trade Update: TP2 HIT**"
        footer = "TP2 Smashed! 🔥🔥 Trade fully closed. 💰"
    elif archive.win:
        headline = "**Trade Update: SL HIT (Breakeven)**"
        footer = "Stopped at entry after partials. Trade closed. ✅"
    else:
        headline = "**Trade Update: SL HIT**"
        footer = "Trade invalidated. 🛑"

    text = "\n".join([
        headline,
        f"Trade ID: {signal.trade_id}",
        signal.symbol_line,
        f"Time: {_time(signal.time, session)}",
        f"Price: {_fmt(signal.price)}",
        f"Points: {format_points(archive.points)}",
        footer,
    ])
    return Message(text=text, kind="close")


def bias_message(alert: dict[str, Any], session: SessionParams, flip: bool = False) -> Message:
    """Render a bias alert from its stored payload (see BiasScheduler.alert_payload)."""
    signal_time = from_epoch_ms(alert["time"]) if alert.get("time") else None
    symbol = alert.get("symbol") or "UNKNOWN"
    timeframe = alert.get("timeframe")
    headline = "**⚠️ Bias Flip**" if flip else "**Opening Bias**"
    text = "\n".join([
        headline,
        f"{symbol} {timeframe}m" if timeframe else symbol,
        f"Time: {_time(signal_time, session)}",
        alert.get("profile") or "No profile provided.",
    ])
    return Message(text=text, kind="bias_flip" if flip else "bias")


def market_close_header(count: int) -> str:
    return f"**Hard Stop - Market Close 🔔**\n{count} active trade(s) will be closed at market close."


def trade_embed(trade: Trade, session: SessionParams) -> dict[str, Any]:
    return {
        "title": f"Trade {trade.trade_id}",
        "color": COLOR_AMBER,
        "fields": [
            {"name": "Type", "value": trade.direction.value, "inline": True},
            {"name": "Symbol", "value": trade.symbol, "inline": True},
            {"name": "Entry", "value": _fmt(trade.entry), "inline": True},
            {"name": "Started", "value": _time(from_epoch_ms(trade.start_time), session), "inline": False},
        ],
    }


def summary_message(title: str, summary: Any, kind: str = "summary") -> Message:
    """Render a PerformanceSummary (see sweeps.summary)."""
    if summary.total == 0:
        return Message(text=f"**{title}**\nNo closed trades.", kind=kind)

    lines = [
        f"**{title}**",
        f"Trades: {summary.total}",
        f"Wins: {summary.wins} | Losses: {summary.losses}",
        f"Win rate: {summary.win_rate:.0%}",
        f"Total points: {format_points(summary.total_points)}",
    ]
    if summary.best is not None:
        lines.append(f"Best: {summary.best.trade.trade_id} ({format_points(summary.best.points)})")
    if summary.worst is not None and summary.total > 1:
        lines.append(f"Worst: {summary.worst.trade.trade_id} ({format_points(summary.worst.points)})")

    embed = {
        "title": title,
        "color": COLOR_GREEN if summary.total_points >= 0 else COLOR_RED,
        "fields": [
            {
                "name": f"{record.trade.trade_id} {record.trade.direction.value}",
                "value": f"{record.exit_type.value} {format_points(record.points)} {'✅' if record.win else '❌'}",
                "inline": True,
            }
            for record in summary.records[:25]
        ],
    }
    return Message(text="\n".join(lines), embeds=(embed,), kind=kind)
