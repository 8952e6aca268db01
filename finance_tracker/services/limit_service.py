"""
Per-category monthly spending limits and the threshold evaluator.

`evaluate` classifies the month-to-date spend of the category a new expense
was booked in. It only produces the event; delivering it to the user is
someone else's job (the API returns it and logs it).
"""
from __future__ import annotations

import logging
import math
import sqlite3
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .. import recurrence
from ..errors import NotFound, ValidationError
from ..schemas import CategoryLimit, Transaction

logger = logging.getLogger(__name__)

WARNING_RATIO = 0.8
EXCEEDED_RATIO = 1.0


@dataclass(frozen=True)
class LimitWarning:
    category: str
    month_total: float
    monthly_limit: float
    percentage: int
    kind: str = "limit_warning"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "category": self.category,
            "monthTotal": self.month_total,
            "monthlyLimit": self.monthly_limit,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class LimitExceeded:
    category: str
    month_total: float
    monthly_limit: float
    kind: str = "limit_exceeded"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "category": self.category,
            "monthTotal": self.month_total,
            "monthlyLimit": self.monthly_limit,
        }


ThresholdEvent = Union[LimitWarning, LimitExceeded]


def _same_category(a: str, b: str) -> bool:
    return a.strip().casefold() == b.strip().casefold()


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def evaluate(
    new_expense: Transaction,
    limits: Iterable[CategoryLimit],
    month_transactions: Iterable[Transaction],
) -> Optional[ThresholdEvent]:
    """Classify month-to-date spend in the new expense's category.

    `month_transactions` is the set for the expense's month; the new
    expense is counted once whether or not the set already contains it.
    """
    if new_expense.type != "expense":
        return None

    limit = next((l for l in limits if _same_category(l.category, new_expense.category)), None)
    if limit is None or limit.monthly_limit <= 0:
        return None

    month_key = recurrence.month_key_of(new_expense.date)
    relevant = [
        tx for tx in month_transactions
        if tx.type == "expense"
        and recurrence.month_key_of(tx.date) == month_key
        and _same_category(tx.category, new_expense.category)
    ]
    if all(tx.id != new_expense.id for tx in relevant):
        relevant.append(new_expense)

    month_total = sum(abs(tx.amount) for tx in relevant)
    if month_total <= 0:
        return None

    ratio = month_total / limit.monthly_limit
    if ratio >= EXCEEDED_RATIO:
        return LimitExceeded(limit.category, month_total, limit.monthly_limit)
    if ratio >= WARNING_RATIO:
        return LimitWarning(limit.category, month_total, limit.monthly_limit, _round_half_up(ratio * 100))
    return None


def check_monthly_limit(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("monthlyLimit", "must be a positive number")
    try:
        value = float(value)
    except OverflowError:
        raise ValidationError("monthlyLimit", "is out of range")
    if not math.isfinite(value) or value <= 0:
        raise ValidationError("monthlyLimit", "must be a positive number")
    return value


def _row_to_limit(row: sqlite3.Row) -> CategoryLimit:
    return CategoryLimit(
        id=row["id"],
        user_id=row["user_id"],
        category=row["category"],
        monthly_limit=row["monthly_limit"],
        created_at=recurrence.parse_timestamp(row["created_at"]),
        updated_at=recurrence.parse_timestamp(row["updated_at"]),
    )


class CategoryLimitStore:
    """Owner-scoped CRUD over `category_limits`, upserting by category."""

    def __init__(self, conn: sqlite3.Connection, clock: Callable = recurrence.utcnow) -> None:
        self._conn = conn
        self._clock = clock

    def list(self, user_id: str) -> List[CategoryLimit]:
        rows = self._conn.execute(
            "SELECT * FROM category_limits WHERE user_id = ? ORDER BY updated_at DESC, id DESC",
            (user_id,),
        ).fetchall()
        return [_row_to_limit(row) for row in rows]

    def upsert(self, user_id: str, category: Any, monthly_limit: Any) -> CategoryLimit:
        if not isinstance(category, str) or not category.strip():
            raise ValidationError("category", "is required")
        category = category.strip()
        amount = check_monthly_limit(monthly_limit)
        now = recurrence.format_timestamp(self._clock())
        self._conn.execute(
            "INSERT INTO category_limits (user_id, category, monthly_limit, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT (user_id, category) DO UPDATE SET "
            "monthly_limit = excluded.monthly_limit, updated_at = excluded.updated_at",
            (user_id, category, amount, now, now),
        )
        self._conn.commit()
        row = self._conn.execute(
            "SELECT * FROM category_limits WHERE user_id = ? AND category = ?",
            (user_id, category),
        ).fetchone()
        logger.info("Saved limit user=%s category=%s monthly_limit=%s", user_id, category, amount)
        return _row_to_limit(row)

    def delete(self, user_id: str, limit_id: int) -> None:
        cur = self._conn.execute(
            "DELETE FROM category_limits WHERE id = ? AND user_id = ?", (limit_id, user_id)
        )
        self._conn.commit()
        if cur.rowcount == 0:
            raise NotFound("Limit")
        logger.info("Deleted limit id=%s user=%s", limit_id, user_id)
