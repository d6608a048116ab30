from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any, Optional

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Status keys are lowercase: str.upper() maps Georgian Mkhedruli to Mtavruli.
COMPLETED_STATUSES = {
    "completed",
    "დასრულებული",
}

IN_SERVICE_STATUSES = {
    "in service",
    "already in service",
    "სერვისშია",
    "უკვე სერვისში",
}

CANCELLED_STATUSES = {
    "cancelled",
    "გაუქმებული",
}

PRELIMINARY_ASSESSMENT_STATUSES = {
    "წინასწარი შეფასება",
}

IN_SERVICE_STATUS_CODE = 7

PLATE_SEPARATOR_PATTERN = re.compile(r"[\s\-.]")
NON_ALPHANUMERIC_PATTERN = re.compile(r"[^A-Z0-9]")
WHITESPACE_PATTERN = re.compile(r"\s+")
NON_DIGIT_PATTERN = re.compile(r"\D")
PHONE_LIKE_PATTERN = re.compile(r"^[\d\s+\-.()]+$")

# Values above this are treated as epoch milliseconds.
_EPOCH_MILLIS_THRESHOLD = 10_000_000_000


def normalize_plate(value: Optional[str]) -> str:
    if not value:
        return ""
    plate = str(value).upper()
    plate = PLATE_SEPARATOR_PATTERN.sub("", plate)
    return NON_ALPHANUMERIC_PATTERN.sub("", plate)


def normalize_text(value: Optional[str]) -> str:
    if not value:
        return ""
    return WHITESPACE_PATTERN.sub(" ", str(value).lower().strip())


def normalize_phone(value: Optional[str]) -> str:
    if not value:
        return ""
    return NON_DIGIT_PATTERN.sub("", str(value))


def is_phone_like(value: Optional[str]) -> bool:
    if not value:
        return False
    text = str(value)
    return bool(PHONE_LIKE_PATTERN.match(text)) and any(ch.isdigit() for ch in text)


def normalize_status(value: Optional[str]) -> str:
    """Canonical status key used for category lookups."""
    return normalize_text(value)


def coerce_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return ""
    return str(value).strip()


def coerce_price(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.replace(",", "").strip()
    try:
        price = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(price) or math.isinf(price) or price < 0:
        return 0.0
    return price


def coerce_status_code(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool) or value == "":
        return None
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number) or not number.is_integer():
        return None
    return int(number)


def _from_epoch(number: float) -> datetime:
    if abs(number) >= _EPOCH_MILLIS_THRESHOLD:
        number = number / 1000.0
    try:
        return datetime.fromtimestamp(number, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return EPOCH


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def coerce_timestamp(value: Any) -> datetime:
    """Parse the timestamp shapes both stores emit; unparsable values become the epoch."""

    if value is None or isinstance(value, bool):
        return EPOCH
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, (int, float)):
        if math.isnan(value) or math.isinf(value):
            return EPOCH
        return _from_epoch(float(value))

    # Document store timestamp objects
    to_datetime = getattr(value, "to_datetime", None)
    if callable(to_datetime):
        try:
            return coerce_timestamp(to_datetime())
        except (TypeError, ValueError):
            return EPOCH
    as_timestamp = getattr(value, "timestamp", None)
    if callable(as_timestamp):
        try:
            return _from_epoch(float(as_timestamp()))
        except (TypeError, ValueError):
            return EPOCH

    text = coerce_text(value)
    if not text:
        return EPOCH
    if re.fullmatch(r"-?\d+(?:\.\d+)?", text):
        return _from_epoch(float(text))
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return _as_utc(datetime.fromisoformat(text))
    except ValueError:
        pass
    for pattern in ("%Y-%m-%d %H:%M:%S", "%d/%m/%Y", "%d.%m.%Y"):
        try:
            return _as_utc(datetime.strptime(text, pattern))
        except ValueError:
            continue
    return EPOCH
