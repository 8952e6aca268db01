from typing import Optional
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from .. import schemas
from ..auth import get_current_user_id
from ..services.limit_service import CategoryLimitStore
from ..services.reminder_service import ReminderBridge
from ..services.transaction_store import TransactionStore
from .deps import (
    best_effort,
    evaluate_limits,
    get_limit_store,
    get_reminder_bridge,
    get_transaction_store,
)

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


@router.post("")
async def api_create_transaction(
    tr: schemas.TransactionCreate,
    user_id: str = Depends(get_current_user_id),
    store: TransactionStore = Depends(get_transaction_store),
    limits: CategoryLimitStore = Depends(get_limit_store),
    reminders: ReminderBridge = Depends(get_reminder_bridge),
) -> JSONResponse:
    """Create a transaction; recurring ones get their next trigger computed.

    A caller-supplied `nextTriggerAt` is accepted verbatim once it parses.
    """
    tx = store.create(user_id, tr.model_dump(exclude_unset=True))
    content = {"ok": True, "data": tx.to_payload()}

    alert = evaluate_limits(tx, store, limits)
    if alert is not None:
        content["alert"] = alert.to_payload()

    best_effort(reminders.remind_transaction, tx)
    return JSONResponse(status_code=201, content=content)


@router.get("")
async def api_get_transactions(
    month: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    store: TransactionStore = Depends(get_transaction_store),
) -> JSONResponse:
    """List the caller's transactions, newest first, optionally for one month."""
    if month:
        items = store.list_by_month(user_id, month)
    else:
        items = store.list_all(user_id)
    return JSONResponse(content={"ok": True, "data": [tx.to_payload() for tx in items]})


@router.patch("/{tx_id}")
async def api_update_transaction(
    tx_id: int,
    update: schemas.TransactionUpdate,
    user_id: str = Depends(get_current_user_id),
    store: TransactionStore = Depends(get_transaction_store),
) -> JSONResponse:
    """Update amount, category or note."""
    tx = store.update(user_id, tx_id, update.model_dump(exclude_unset=True))
    return JSONResponse(content={"ok": True, "data": tx.to_payload()})


@router.delete("/{tx_id}")
async def api_delete_transaction(
    tx_id: int,
    user_id: str = Depends(get_current_user_id),
    store: TransactionStore = Depends(get_transaction_store),
    reminders: ReminderBridge = Depends(get_reminder_bridge),
) -> JSONResponse:
    """Delete a transaction and cancel its recurring reminder, if any."""
    deleted = store.delete(user_id, tx_id)
    best_effort(reminders.forget_transaction, deleted)
    return JSONResponse(content={"ok": True})
