"""
Value Parsers - normalize raw scalar input (counts, durations, dates) into
canonical numeric / ISO forms.

Every parser is total. Missing input (None, empty string) comes back as None,
input that was provided but cannot be read comes back as UNPARSABLE. The two
are never collapsed into each other or into zero.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Union


class Unparsable(Enum):
    TOKEN = "unparsable"

    def __repr__(self) -> str:
        return "UNPARSABLE"


UNPARSABLE = Unparsable.TOKEN

ParsedInt = Union[int, None, Unparsable]


class DateOrder(str, Enum):
    """How to read an all-numeric date whose day and month are both <= 12."""
    MONTH_FIRST = "MONTH_FIRST"
    DAY_FIRST = "DAY_FIRST"


_SEPARATORS = re.compile(r"[,\s]")
_DIGITS = re.compile(r"[0-9]+")
_CLOCK = re.compile(r"([0-9]+):([0-9]{1,2})(?::([0-9]{1,2}))?")
_DATE_SPLIT = re.compile(r"[/\-.]")
_TEXT_DATE_FORMATS = ("%B %d, %Y", "%b %d, %Y", "%B %d %Y", "%b %d %Y", "%d %B %Y", "%d %b %Y")

_SUFFIXES = {"k": 1_000, "m": 1_000_000}

# Largest value a BIGINT column holds.
MAX_STORABLE_INT = 2**63 - 1


def _to_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        try:
            number = Decimal(str(value))
        except InvalidOperation:
            return None
    elif isinstance(value, str):
        try:
            number = Decimal(value)
        except InvalidOperation:
            return None
    else:
        return None
    return number if number.is_finite() else None


def _round(number: Decimal) -> ParsedInt:
    if number > MAX_STORABLE_INT:
        return UNPARSABLE
    try:
        return int(number.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return UNPARSABLE


def _bounded(number: int) -> ParsedInt:
    return number if 0 <= number <= MAX_STORABLE_INT else UNPARSABLE


def parse_count(value: Any) -> ParsedInt:
    """
    Parse a metric count: 1200, "1,200", "1.2k", "3M".

    Negative values are unparsable since counts cannot go below zero.
    """
    if value is None:
        return None
    if isinstance(value, str):
        cleaned = _SEPARATORS.sub("", value).lower()
        if not cleaned:
            return None
        multiplier = _SUFFIXES.get(cleaned[-1], 1)
        if multiplier != 1:
            cleaned = cleaned[:-1]
        number = _to_decimal(cleaned)
        if number is not None and abs(number) <= MAX_STORABLE_INT:
            number *= multiplier
    else:
        number = _to_decimal(value)

    if number is None or number < 0:
        return UNPARSABLE
    return _round(number)


def parse_duration(value: Any) -> ParsedInt:
    """Parse raw seconds, MM:SS or HH:MM:SS into whole seconds."""
    if value is None:
        return None
    if isinstance(value, bool):
        return UNPARSABLE
    if isinstance(value, int):
        return _bounded(value)
    if isinstance(value, float):
        return _bounded(int(value)) if value.is_integer() else UNPARSABLE
    if not isinstance(value, str):
        return UNPARSABLE

    cleaned = value.strip()
    if not cleaned:
        return None
    if _DIGITS.fullmatch(cleaned):
        return _bounded(int(cleaned))

    m = _CLOCK.fullmatch(cleaned)
    if not m:
        return UNPARSABLE
    first, second, third = m.group(1), int(m.group(2)), m.group(3)
    if third is None:
        # MM:SS
        if second >= 60:
            return UNPARSABLE
        return _bounded(int(first) * 60 + second)
    # HH:MM:SS
    if second >= 60 or int(third) >= 60:
        return UNPARSABLE
    return _bounded(int(first) * 3600 + second * 60 + int(third))


def parse_watch_time(value: Any) -> ParsedInt:
    """Watch time in seconds, rounded to the nearest whole second."""
    if value is None:
        return None
    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return None
        if ":" in cleaned:
            return parse_duration(cleaned)
        number = _to_decimal(cleaned.rstrip("sS").strip())
    else:
        number = _to_decimal(value)
    if number is None or number < 0:
        return UNPARSABLE
    return _round(number)


def parse_date(value: Any, order: DateOrder = DateOrder.MONTH_FIRST) -> str | None:
    """
    Normalize a date to YYYY-MM-DD.

    ISO and spelled-out dates are read directly. All-numeric dates split on
    "/", "-" or "." use the heuristic: a part > 31 is the year; otherwise the
    year comes last and `order` decides between MM/DD and DD/MM when both
    readings are possible. Returns the input string unchanged when nothing
    matches.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        return str(value)

    cleaned = value.strip()
    if not cleaned:
        return None

    native = _parse_native_date(cleaned)
    if native is not None:
        return native.isoformat()

    parts = _DATE_SPLIT.split(cleaned)
    if len(parts) != 3 or not all(_DIGITS.fullmatch(p) for p in parts):
        return value
    a, b, c = (int(p) for p in parts)

    if a > 31:
        year, month, day = a, b, c
    elif b > 31:
        return value
    else:
        year = c
        month, day = _order_day_month(a, b, order)

    if year < 100:
        year += 2000
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return value


def _order_day_month(first: int, second: int, order: DateOrder) -> tuple[int, int]:
    if order == DateOrder.DAY_FIRST:
        if second <= 12:
            return second, first
        return first, second
    if first <= 12:
        return first, second
    return second, first


def _parse_native_date(text: str) -> date | None:
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _TEXT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def is_iso_date(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return len(value) == 10


def parse_text(value: Any) -> str | None | Unparsable:
    if value is None:
        return None
    if isinstance(value, bool):
        return UNPARSABLE
    if isinstance(value, (int, float)):
        return str(value)
    if not isinstance(value, str):
        return UNPARSABLE
    cleaned = value.strip()
    return cleaned or None


_TRUE_WORDS = {"true", "yes", "y", "1", "x", "posted"}
_FALSE_WORDS = {"false", "no", "n", "0", "not posted"}


def parse_bool(value: Any) -> bool | None | Unparsable:
    """Yes/no flags from checkboxes, spreadsheet cells or oracle output."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value) if value in (0, 1) else UNPARSABLE
    if not isinstance(value, str):
        return UNPARSABLE
    cleaned = value.strip().lower()
    if not cleaned:
        return None
    if cleaned in _TRUE_WORDS:
        return True
    if cleaned in _FALSE_WORDS:
        return False
    return UNPARSABLE


def normalize_hashtags(value: Any) -> list[str] | None | Unparsable:
    """Hashtags as an ordered, de-duplicated list of "#tag" strings."""
    if value is None:
        return None
    if isinstance(value, str):
        items = re.split(r"[,\s]+", value)
    elif isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if not isinstance(item, str):
                return UNPARSABLE
            items.extend(re.split(r"[,\s]+", item))
    else:
        return UNPARSABLE

    tags: list[str] = []
    for item in items:
        tag = item.strip().lstrip("#")
        if tag and f"#{tag}" not in tags:
            tags.append(f"#{tag}")
    return tags or None


PLATFORM_ALIASES = {
    "youtube": "youtube",
    "yt": "youtube",
    "tiktok": "tiktok",
    "tt": "tiktok",
    "tik tok": "tiktok",
    "instagram": "instagram",
    "ig": "instagram",
    "insta": "instagram",
    "reels": "instagram",
    "ig reels": "instagram",
    "instagram reels": "instagram",
    "shorts": "shorts",
    "youtube shorts": "shorts",
    "yt shorts": "shorts",
    "facebook": "facebook",
    "fb": "facebook",
    "clapper": "clapper",
}


def normalize_platform(platform: Any) -> str | None:
    if not isinstance(platform, str):
        return None
    p = " ".join(platform.lower().split())
    if not p:
        return None
    return PLATFORM_ALIASES.get(p, p)
