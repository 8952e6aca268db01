# finance_tracker/recurrence.py
"""
Repeat rules and next-trigger computation for recurring transactions.

A recurring transaction stores only the single next occurrence
(`next_trigger_at`). It is computed eagerly whenever the governing date or
rule is written and is never patched incrementally: every change re-runs
`compute_next` from the current date and rule. Nothing in this package
fires due occurrences; an external worker can read them through
`TransactionStore.list_recurring(due_before=...)`.
"""
from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional, Tuple, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from .errors import (
    InvalidDayOfMonth,
    InvalidFrequency,
    InvalidMonthKey,
    InvalidWeekday,
    ValidationError,
)
from .schemas import RepeatRule

FREQUENCIES = ("daily", "weekly", "monthly")

_MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")

# --------- Helpers: dates ---------

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any, field: str) -> datetime:
    """Parse an ISO-8601 date or timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "must be an ISO-8601 date string")
    try:
        return ensure_utc(date_parser.isoparse(value.strip()))
    except (ValueError, OverflowError):
        raise ValidationError(field, "must be an ISO-8601 date string")


def format_timestamp(value: datetime) -> str:
    # Fixed width so that string order in SQLite equals chronological order;
    # %Y is not zero-padded below year 1000 on every platform
    value = ensure_utc(value)
    return f"{value.year:04d}-{value:%m-%dT%H:%M:%S.%f}Z"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return ensure_utc(date_parser.isoparse(value))


def parse_month_key(month_key: Optional[str]) -> Tuple[datetime, Optional[datetime]]:
    """Return the UTC range [first-of-month, first-of-next-month).

    The end is None for December 9999, which has no next month.
    """
    match = _MONTH_KEY_RE.match(month_key or "")
    if not match:
        raise InvalidMonthKey(month_key)
    year, month = int(match.group(1)), int(match.group(2))
    if year < 1 or not 1 <= month <= 12:
        raise InvalidMonthKey(month_key)
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    if (year, month) == (9999, 12):
        return start, None
    return start, start + relativedelta(months=1)


def month_key_of(value: datetime) -> str:
    value = ensure_utc(value)
    return f"{value.year:04d}-{value.month:02d}"


def to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return value == 1 or value in ("true", "1")


def sunday_based_weekday(value: datetime) -> int:
    # Python: Monday=0..Sunday=6; repeat rules: Sunday=0..Saturday=6
    return (value.weekday() + 1) % 7

# --------- Repeat rule validation ---------

def _coerce_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and re.fullmatch(r"\s*-?\d+\s*", value):
        return int(value)
    return None


def normalize(raw: Union[RepeatRule, Mapping[str, Any], None]) -> RepeatRule:
    """Validate a raw repeat rule and return the normalized value.

    Optional anchors that are absent stay absent; `compute_next` fills them
    in from the base date. Normalizing an already-normalized rule returns an
    equal rule.
    """
    if isinstance(raw, RepeatRule):
        raw = raw.to_payload()
    if not isinstance(raw, Mapping):
        raise ValidationError("repeatRule", "must be an object")

    freq = raw.get("freq")
    if freq not in FREQUENCIES:
        raise InvalidFrequency(freq)

    day_of_month = None
    if raw.get("dayOfMonth") is not None:
        day_of_month = _coerce_int(raw["dayOfMonth"])
        if day_of_month is None or not 1 <= day_of_month <= 31:
            raise InvalidDayOfMonth(raw["dayOfMonth"])

    weekday = None
    if raw.get("weekday") is not None:
        weekday = _coerce_int(raw["weekday"])
        if weekday is None or not 0 <= weekday <= 6:
            raise InvalidWeekday(raw["weekday"])

    return RepeatRule(freq=freq, day_of_month=day_of_month, weekday=weekday)

# --------- Core ---------

def compute_next(base: datetime, rule: RepeatRule) -> datetime:
    """Next occurrence strictly after `base`; keeps time of day and tzinfo."""
    if rule.freq == "daily":
        return base + timedelta(days=1)

    if rule.freq == "weekly":
        if rule.weekday is None:
            return base + timedelta(days=7)
        diff = (rule.weekday - sunday_based_weekday(base) + 7) % 7
        return base + timedelta(days=diff or 7)

    # monthly: relativedelta clamps an absolute day to the month's last day
    target_day = rule.day_of_month if rule.day_of_month is not None else base.day
    return base + relativedelta(months=1, day=target_day)
