"""
Error taxonomy shared by the store, the evaluator and the HTTP layer.

The API maps these onto status codes in ``main.py``; nothing below knows
about HTTP.
"""
from __future__ import annotations

from typing import Optional


class FinanceError(Exception):
    """Base class for every error raised on purpose by this package."""


class ValidationError(FinanceError, ValueError):
    """A request field is missing or malformed."""

    def __init__(self, field: str, constraint: str) -> None:
        self.field = field
        self.constraint = constraint
        super().__init__(f"{field}: {constraint}")


class InvalidFrequency(ValidationError):
    def __init__(self, value: object = None) -> None:
        super().__init__("repeatRule.freq", "must be daily, weekly or monthly")
        self.value = value


class InvalidDayOfMonth(ValidationError):
    def __init__(self, value: object = None) -> None:
        super().__init__("repeatRule.dayOfMonth", "must be an integer between 1 and 31")
        self.value = value


class InvalidWeekday(ValidationError):
    def __init__(self, value: object = None) -> None:
        super().__init__("repeatRule.weekday", "must be an integer between 0 (Sunday) and 6")
        self.value = value


class InvalidMonthKey(FinanceError):
    def __init__(self, value: Optional[str] = None) -> None:
        self.value = value
        super().__init__("month param must be YYYY-MM")


class NotFound(FinanceError):
    """Record absent or owned by someone else; the two are indistinguishable."""

    def __init__(self, what: str = "Transaction") -> None:
        self.what = what
        super().__init__(f"{what} not found")


class UpstreamFailure(FinanceError):
    """The store or the notification capability could not be reached."""
