"""Dependencies and helpers shared by the API routers."""
import logging
import sqlite3
from typing import Any, Callable, Optional

from fastapi import Depends, Request

from .. import recurrence
from ..db import get_db_conn
from ..schemas import Transaction
from ..services import limit_service
from ..services.limit_service import CategoryLimitStore
from ..services.reminder_service import ReminderBridge, SqliteHandleStore
from ..services.transaction_store import TransactionStore

logger = logging.getLogger(__name__)


def get_transaction_store(
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> TransactionStore:
    return TransactionStore(db_conn)


def get_limit_store(
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> CategoryLimitStore:
    return CategoryLimitStore(db_conn)


def get_reminder_bridge(
    request: Request,
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> ReminderBridge:
    return ReminderBridge(request.app.state.notifier, SqliteHandleStore(db_conn))


def best_effort(func: Callable[..., Any], *args: Any) -> Optional[Any]:
    """Run a reminder side effect; a failure is logged, never raised.

    The transaction write has already been committed when this runs and
    must stand regardless of what happens to its reminder.
    """
    try:
        return func(*args)
    except Exception:
        logger.warning("Reminder side effect %s failed; write kept", getattr(func, "__name__", func), exc_info=True)
        return None


def evaluate_limits(
    tx: Transaction,
    store: TransactionStore,
    limits: CategoryLimitStore,
) -> Optional[limit_service.ThresholdEvent]:
    """Classify the month's spend for a freshly created expense."""
    if tx.type != "expense":
        return None
    month_transactions = store.list_by_month(tx.user_id, recurrence.month_key_of(tx.date))
    event = limit_service.evaluate(tx, limits.list(tx.user_id), month_transactions)
    if event is not None:
        logger.info(
            "Limit %s for user=%s category=%s total=%.2f limit=%.2f",
            event.kind, tx.user_id, event.category, event.month_total, event.monthly_limit,
        )
    return event
