"""
Owner-scoped persistence for transactions, recurring ones included.

Every query filters on `user_id`; a record owned by someone else behaves
exactly like a missing one. `next_trigger_at` is only ever derived here,
through `recurrence.compute_next`, except for the explicit caller override
accepted by `create`.
"""
from __future__ import annotations

import logging
import math
import sqlite3
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from .. import recurrence
from ..errors import NotFound, ValidationError
from ..schemas import RepeatRule, Transaction

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = ("income", "expense")

UPDATABLE_FIELDS = (
    "amount",
    "category",
    "note",
    "type",
    "date",
    "repeat_rule",
    "notify",
    "recalculate_next_trigger",
)

# --------- Field checks ---------

def check_type(value: Any) -> str:
    if value not in TRANSACTION_TYPES:
        raise ValidationError("type", "must be income or expense")
    return value


def check_category(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("category", "is required")
    return value.strip()


def check_amount(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("amount", "must be a number")
    try:
        value = float(value)
    except OverflowError:
        raise ValidationError("amount", "is out of range")
    if not math.isfinite(value) or value < 0:
        raise ValidationError("amount", "must be a non-negative number")
    return value


def clean_note(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("note", "must be a string")
    return value.strip() or None


def _next_trigger(tx_date: datetime, rule: RepeatRule) -> datetime:
    try:
        return recurrence.compute_next(tx_date, rule)
    except (ValueError, OverflowError):
        raise ValidationError("date", "next occurrence out of range")


def _present(payload: Mapping[str, Any], key: str) -> bool:
    return payload.get(key) not in (None, "")


def row_to_transaction(row: sqlite3.Row) -> Transaction:
    rule = None
    if row["freq"]:
        rule = RepeatRule(freq=row["freq"], day_of_month=row["day_of_month"], weekday=row["weekday"])
    return Transaction(
        id=row["id"],
        user_id=row["user_id"],
        type=row["type"],
        category=row["category"],
        amount=row["amount"],
        note=row["note"],
        date=recurrence.parse_timestamp(row["date"]),
        is_recurring=bool(row["is_recurring"]),
        repeat_rule=rule,
        notify=bool(row["notify"]),
        next_trigger_at=recurrence.parse_timestamp(row["next_trigger_at"]),
        created_at=recurrence.parse_timestamp(row["created_at"]),
        updated_at=recurrence.parse_timestamp(row["updated_at"]),
    )


class TransactionStore:
    """CRUD and queries over the `transactions` table for one connection."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        clock: Callable[[], datetime] = recurrence.utcnow,
    ) -> None:
        self._conn = conn
        self._clock = clock

    def create(self, user_id: str, payload: Mapping[str, Any]) -> Transaction:
        """Validate and insert a transaction.

        `payload` uses snake_case keys. A recurring transaction gets its
        `next_trigger_at` from `compute_next(date, rule)` unless the caller
        supplies one, in which case it only has to parse.
        """
        tx_type = check_type(payload.get("type"))
        category = check_category(payload.get("category"))
        amount = check_amount(payload.get("amount"))
        note = clean_note(payload.get("note"))

        if _present(payload, "date"):
            tx_date = recurrence.parse_datetime(payload["date"], "date")
        else:
            tx_date = self._clock()

        rule: Optional[RepeatRule] = None
        if payload.get("repeat_rule") is not None:
            rule = recurrence.normalize(payload["repeat_rule"])

        is_recurring = recurrence.to_boolean(payload.get("is_recurring"))
        if is_recurring and rule is None:
            raise ValidationError("repeatRule", "is required when isRecurring is true")

        override: Optional[datetime] = None
        if _present(payload, "next_trigger_at"):
            override = recurrence.parse_datetime(payload["next_trigger_at"], "nextTriggerAt")

        next_trigger: Optional[datetime] = None
        if is_recurring:
            next_trigger = override if override is not None else _next_trigger(tx_date, rule)
        else:
            rule = None

        now = recurrence.format_timestamp(self._clock())
        cur = self._conn.execute(
            "INSERT INTO transactions (user_id, type, category, amount, note, date, is_recurring, "
            "freq, day_of_month, weekday, notify, next_trigger_at, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                user_id,
                tx_type,
                category,
                amount,
                note,
                recurrence.format_timestamp(tx_date),
                1 if is_recurring else 0,
                rule.freq if rule else None,
                rule.day_of_month if rule else None,
                rule.weekday if rule else None,
                1 if recurrence.to_boolean(payload.get("notify")) else 0,
                recurrence.format_timestamp(next_trigger) if next_trigger else None,
                now,
                now,
            ),
        )
        self._conn.commit()
        new_id = cur.lastrowid
        logger.info(
            "Created transaction id=%s user=%s type=%s recurring=%s next_trigger_at=%s",
            new_id, user_id, tx_type, is_recurring, next_trigger,
        )
        return self.get(user_id, new_id)

    def get(self, user_id: str, tx_id: int) -> Transaction:
        row = self._conn.execute(
            "SELECT * FROM transactions WHERE id = ? AND user_id = ?",
            (tx_id, user_id),
        ).fetchone()
        if not row:
            raise NotFound("Transaction")
        return row_to_transaction(row)

    def update(self, user_id: str, tx_id: int, patch: Mapping[str, Any]) -> Transaction:
        """Apply a partial update.

        Only keys present in `patch` are touched; an explicit `None` clears
        `note` and is rejected for required fields. A new `date` or
        `repeat_rule`, or a truthy `recalculate_next_trigger`, recomputes
        `next_trigger_at` from the resulting date and rule.
        """
        current = self.get(user_id, tx_id)
        fields = {k: v for k, v in patch.items() if k in UPDATABLE_FIELDS}
        if not fields:
            raise ValidationError("body", "no fields to update")

        updates: Dict[str, Any] = {}
        if "amount" in fields:
            updates["amount"] = check_amount(fields["amount"])
        if "category" in fields:
            updates["category"] = check_category(fields["category"])
        if "note" in fields:
            updates["note"] = clean_note(fields["note"])
        if "type" in fields:
            updates["type"] = check_type(fields["type"])
        if "notify" in fields:
            updates["notify"] = 1 if recurrence.to_boolean(fields["notify"]) else 0

        tx_date = current.date
        rule = current.repeat_rule
        recompute = recurrence.to_boolean(fields.get("recalculate_next_trigger"))

        if "date" in fields:
            tx_date = recurrence.parse_datetime(fields["date"], "date")
            updates["date"] = recurrence.format_timestamp(tx_date)
            recompute = True

        if "repeat_rule" in fields:
            if not current.is_recurring:
                raise ValidationError("repeatRule", "only recurring transactions carry a repeat rule")
            if fields["repeat_rule"] is None:
                raise ValidationError("repeatRule", "is required for recurring transactions")
            rule = recurrence.normalize(fields["repeat_rule"])
            updates["freq"] = rule.freq
            updates["day_of_month"] = rule.day_of_month
            updates["weekday"] = rule.weekday
            recompute = True

        if recompute and current.is_recurring and rule is not None:
            next_trigger = _next_trigger(tx_date, rule)
            updates["next_trigger_at"] = recurrence.format_timestamp(next_trigger)

        updates["updated_at"] = recurrence.format_timestamp(self._clock())
        set_clause = ", ".join([f"{k} = ?" for k in updates.keys()])
        params = list(updates.values()) + [tx_id, user_id]
        self._conn.execute(
            f"UPDATE transactions SET {set_clause} WHERE id = ? AND user_id = ?", params
        )
        self._conn.commit()
        logger.info(
            "Updated transaction id=%s user=%s fields=%s next_trigger_at=%s",
            tx_id, user_id, sorted(fields), updates.get("next_trigger_at", "unchanged"),
        )
        return self.get(user_id, tx_id)

    def delete(self, user_id: str, tx_id: int) -> Transaction:
        """Hard delete; returns the record as it was."""
        existing = self.get(user_id, tx_id)
        self._conn.execute(
            "DELETE FROM transactions WHERE id = ? AND user_id = ?", (tx_id, user_id)
        )
        self._conn.commit()
        logger.info("Deleted transaction id=%s user=%s", tx_id, user_id)
        return existing

    def list_recurring(self, user_id: str, due_before: Optional[datetime] = None) -> List[Transaction]:
        query = "SELECT * FROM transactions WHERE user_id = ? AND is_recurring = 1"
        params: List[Any] = [user_id]
        if due_before is not None:
            query += " AND next_trigger_at <= ?"
            params.append(recurrence.format_timestamp(due_before))
        query += " ORDER BY next_trigger_at ASC, created_at DESC, id DESC"
        rows = self._conn.execute(query, params).fetchall()
        return [row_to_transaction(row) for row in rows]

    def list_by_month(self, user_id: str, month_key: Optional[str]) -> List[Transaction]:
        start, end = recurrence.parse_month_key(month_key)
        query = "SELECT * FROM transactions WHERE user_id = ? AND date >= ?"
        params: List[Any] = [user_id, recurrence.format_timestamp(start)]
        if end is not None:
            query += " AND date < ?"
            params.append(recurrence.format_timestamp(end))
        query += " ORDER BY date DESC, id DESC"
        rows = self._conn.execute(query, params).fetchall()
        return [row_to_transaction(row) for row in rows]

    def list_all(self, user_id: str) -> List[Transaction]:
        rows = self._conn.execute(
            "SELECT * FROM transactions WHERE user_id = ? ORDER BY date DESC, id DESC",
            (user_id,),
        ).fetchall()
        return [row_to_transaction(row) for row in rows]
