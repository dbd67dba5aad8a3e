"""
Webhook payload parsing.

Turns the charting platform's JSON alert into a Signal. Field-shape problems
that make a signal unusable (unknown type, malformed trade id) come back as
rejections; numeric fields that fail to parse are kept as None so the trade
engine can reject them with the received values attached.
"""

import math
import time
from typing import Any, Optional, Union

import orjson

from ..errors import ParseError, Rejection, RejectionReason, validation
from ..utils.time import parse_signal_time
from .models import (
    TYPE_ALIASES,
    BiasType,
    Direction,
    ExitType,
    Signal,
    SignalCategory,
    SummaryPeriod,
)

_EMPTY_MARKERS = {"", "null", "undefined", "n/a", "nan"}


def parse_json_payload(raw_data: Union[str, bytes]) -> dict[str, Any]:
    """
    Parse raw webhook body into a dictionary.

    Raises:
        ParseError: If the body is not a JSON object
    """
    try:
        payload = orjson.loads(raw_data)
    except orjson.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ParseError("Payload must be a JSON object", raw_data=str(raw_data)[:200])

    return payload


def scrub(value: Any) -> str:
    """Normalize a payload value to a trimmed string, mapping null-ish values to ''."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    text = str(value).strip()
    if text.lower() in _EMPTY_MARKERS:
        return ""
    return text


def to_number(value: Any) -> Optional[float]:
    """Parse a finite number, or return None."""
    cleaned = scrub(value)
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def is_valid_trade_id(trade_id: str) -> bool:
    """Trade ids are positive integers, or generated ``TRADE_<ms>`` ids."""
    if trade_id.startswith("TRADE_"):
        return True
    try:
        return int(trade_id) > 0
    except ValueError:
        return False


def _classify(type_code: str) -> Optional[dict[str, Any]]:
    """Map a signal type code to its category and qualifiers."""
    type_code = TYPE_ALIASES.get(type_code, type_code)

    for bias in BiasType:
        if type_code == bias.value:
            return {"category": SignalCategory.BIAS, "bias_type": bias}

    for period in SummaryPeriod:
        if type_code == period.value:
            return {"category": SignalCategory.SUMMARY, "summary_period": period}

    side, _, action = type_code.partition("_")
    try:
        direction = Direction(side)
    except ValueError:
        return None

    if action == "ENTRY":
        return {"category": SignalCategory.ENTRY, "direction": direction}

    try:
        exit_type = ExitType(action)
    except ValueError:
        return None

    return {"category": SignalCategory.EXIT, "direction": direction, "exit_type": exit_type}


def parse_signal(payload: dict[str, Any], now_ms: Optional[int] = None) -> Union[Signal, Rejection]:
    """
    Build a Signal from a decoded webhook payload.

    Args:
        payload: Decoded JSON object
        now_ms: Receipt time in epoch milliseconds, used for generated trade ids

    Returns:
        Signal, or a validation Rejection for unknown types and malformed trade ids
    """
    type_code = scrub(payload.get("type")).upper()
    classification = _classify(type_code) if type_code else None

    if classification is None:
        return validation(
            RejectionReason.UNKNOWN_SIGNAL_TYPE,
            "Unknown signal type",
            type=type_code or "UNKNOWN",
        )

    if now_ms is None:
        now_ms = int(time.time() * 1000)

    trade_id = scrub(payload.get("tradeId")) or f"TRADE_{now_ms}"
    if not is_valid_trade_id(trade_id):
        return validation(
            RejectionReason.INVALID_TRADE_ID,
            "Invalid trade ID format",
            tradeId=trade_id,
        )

    raw_keys = ("entry", "sl", "tp1", "tp2", "price")
    raw_values = {key: payload.get(key) for key in raw_keys if key in payload}

    return Signal(
        type_code=TYPE_ALIASES.get(type_code, type_code),
        trade_id=trade_id,
        symbol=scrub(payload.get("symbol")) or "UNKNOWN",
        timeframe=scrub(payload.get("tf")),
        time=parse_signal_time(payload.get("time")),
        entry=to_number(payload.get("entry")),
        stop=to_number(payload.get("sl")),
        tp1=to_number(payload.get("tp1")),
        tp2=to_number(payload.get("tp2")),
        price=to_number(payload.get("price")),
        profile=scrub(payload.get("profile") or payload.get("message") or payload.get("bias")),
        raw_values=raw_values,
        **classification,
    )
