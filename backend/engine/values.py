"""
Type classifier and value converter.
Maps native column types onto the {number, date, text} taxonomy and converts raw
driver values into that taxonomy. Everything here is a pure function.
"""
from __future__ import annotations
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from constants import (
    DATE_TYPE_TOKENS,
    DEFAULT_CURRENCY_CODE,
    NUMBER_TYPE_TOKENS,
    TYPE_DATE,
    TYPE_NUMBER,
    TYPE_TEXT,
)
from engine.models import CurrencyProperties, NumberProperties, TypeProperties

_INTEGER_TOKENS = ("int", "bit")
_MAX_BIT_BYTES = 8


def classify(native_type: Optional[str]) -> str:
    t = (native_type or "").lower()
    if any(tok in t for tok in NUMBER_TYPE_TOKENS):
        return TYPE_NUMBER
    if any(tok in t for tok in DATE_TYPE_TOKENS):
        return TYPE_DATE
    return TYPE_TEXT


def type_properties(native_type: Optional[str], category: str) -> Optional[TypeProperties]:
    """Formatting hints for a column. Only numeric columns carry any."""
    if category != TYPE_NUMBER:
        return None
    t = (native_type or "").lower()
    if "money" in t:
        return CurrencyProperties(formatter="FLOAT_2", currency_code=DEFAULT_CURRENCY_CODE)
    if any(tok in t for tok in _INTEGER_TOKENS):
        return NumberProperties(formatter="INT")
    return NumberProperties(formatter="FLOAT_2")


def convert(value: Any, category: str) -> Any:
    if category == TYPE_NUMBER:
        return to_number(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


def to_number(value: Any) -> float:
    """Always returns a finite number; anything absent or unparsable becomes 0."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float, Decimal)):
        return _finite(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        parsed = _parse_text(raw.decode("ascii", errors="ignore"))
        if parsed is not None:
            return parsed
        # BIT(n) columns come back as big-endian byte strings
        if 0 < len(raw) <= _MAX_BIT_BYTES:
            return float(int.from_bytes(raw, "big"))
        return 0
    if isinstance(value, str):
        parsed = _parse_text(value)
        return 0 if parsed is None else parsed
    return 0


def _parse_text(text: str) -> Optional[float]:
    s = text.strip()
    if not s:
        return None
    try:
        number = float(Decimal(s))
    except (InvalidOperation, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _finite(value: Any) -> float:
    try:
        number = float(value)
    except (OverflowError, ValueError):
        return 0
    return number if math.isfinite(number) else 0
