"""
Bridge between transactions and the notification capability.

A reminder fires at REMINDER_HOUR (10:00 by default) local time on the
requested day. When that instant has already passed it moves to the same
hour of the next day, once; it is never pushed further. Handles for
recurring transactions are kept in an explicit keyed store so they can be
cancelled later.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, tzinfo
from typing import Any, Callable, Dict, Optional

from dateutil import tz

from ..core import config
from ..schemas import Transaction

logger = logging.getLogger(__name__)


def local_zone() -> tzinfo:
    if config.REMINDER_TIMEZONE:
        zone = tz.gettz(config.REMINDER_TIMEZONE)
        if zone is not None:
            return zone
        logger.warning("Unknown REMINDER_TIMEZONE %r; using the server zone", config.REMINDER_TIMEZONE)
    return tz.tzlocal()


class SqliteHandleStore:
    """Keyed store recurring transaction id -> notification handle."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get(self, key: str) -> Optional[str]:
        row = self._conn.execute(
            "SELECT handle FROM reminder_handles WHERE transaction_id = ?", (key,)
        ).fetchone()
        return row[0] if row else None

    def set(self, key: str, handle: str) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO reminder_handles (transaction_id, handle) VALUES (?, ?)",
            (key, handle),
        )
        self._conn.commit()

    def delete(self, key: str) -> None:
        self._conn.execute("DELETE FROM reminder_handles WHERE transaction_id = ?", (key,))
        self._conn.commit()


class ReminderBridge:
    def __init__(
        self,
        notifier: Any,
        handles: Any,
        clock: Optional[Callable[[], datetime]] = None,
        reminder_hour: int = config.REMINDER_HOUR,
        zone: Optional[tzinfo] = None,
    ) -> None:
        self._notifier = notifier
        self._handles = handles
        self._zone = zone or local_zone()
        self._clock = clock or (lambda: datetime.now(self._zone))
        self._hour = reminder_hour

    def alert_time(self, date: datetime) -> datetime:
        if date.tzinfo is None:
            local = date.replace(tzinfo=self._zone)
        else:
            local = date.astimezone(self._zone)
        when = local.replace(hour=self._hour, minute=0, second=0, microsecond=0)
        if when <= self._clock():
            when = when + timedelta(days=1)
        return when

    def schedule_reminder(
        self,
        user_id: str,
        kind: str,
        date: datetime,
        title: str,
        body: str,
        recurring_id: Optional[Any] = None,
    ) -> str:
        """Schedule a one-shot alert and return its handle.

        With `recurring_id`, any previous alert for that transaction is
        cancelled and the new handle is remembered under its id.
        """
        when = self.alert_time(date)
        content: Dict[str, Any] = {
            "title": title,
            "body": body,
            "data": {"type": kind, "userId": user_id},
        }
        if recurring_id is not None:
            self.cancel_reminder(recurring_id)
            content["data"]["transactionId"] = str(recurring_id)
        handle = self._notifier.schedule_one_shot(when, content)
        if recurring_id is not None:
            self._handles.set(str(recurring_id), handle)
        logger.info("Reminder %s for user=%s scheduled at %s", handle, user_id, when.isoformat())
        return handle

    def cancel_reminder(self, recurring_id: Any) -> None:
        key = str(recurring_id)
        handle = self._handles.get(key)
        if not handle:
            return
        self._notifier.cancel(handle)
        self._handles.delete(key)
        logger.info("Reminder %s for transaction %s cancelled", handle, key)

    # --------- Transaction lifecycle ---------

    def remind_transaction(self, tx: Transaction) -> Optional[str]:
        if not tx.notify:
            return None
        if tx.type == "income":
            title, body = "Income reminder", f"Record income: {tx.category}"
        else:
            title, body = "Expense reminder", f"Record expense: {tx.category}"
        if tx.is_recurring and tx.next_trigger_at is not None:
            return self.schedule_reminder(
                tx.user_id, tx.type, tx.next_trigger_at, title, body, recurring_id=tx.id
            )
        return self.schedule_reminder(tx.user_id, tx.type, tx.date, title, body)

    def sync_transaction(self, before: Transaction, after: Transaction) -> None:
        """Keep a recurring transaction's reminder in line with an update."""
        if not after.is_recurring:
            return
        if not after.notify:
            if before.notify:
                self.cancel_reminder(after.id)
            return
        if not before.notify or before.next_trigger_at != after.next_trigger_at:
            self.remind_transaction(after)

    def forget_transaction(self, tx: Transaction) -> None:
        if tx.is_recurring:
            self.cancel_reminder(tx.id)
