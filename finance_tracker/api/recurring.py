from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from .. import recurrence, schemas
from ..auth import get_current_user_id
from ..errors import NotFound, ValidationError
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

router = APIRouter(prefix="/api/recurring", tags=["recurring"])


def _get_recurring(store: TransactionStore, user_id: str, tx_id: int) -> schemas.Transaction:
    tx = store.get(user_id, tx_id)
    if not tx.is_recurring:
        raise NotFound("Recurring transaction")
    return tx


@router.post("")
async def api_create_recurring(
    rec: schemas.RecurringCreate,
    user_id: str = Depends(get_current_user_id),
    store: TransactionStore = Depends(get_transaction_store),
    limits: CategoryLimitStore = Depends(get_limit_store),
    reminders: ReminderBridge = Depends(get_reminder_bridge),
) -> JSONResponse:
    """Create a recurring transaction; the next trigger is always computed."""
    payload = rec.model_dump(exclude_unset=True)
    if payload.get("repeat_rule") is None:
        raise ValidationError("repeatRule", "is required")
    payload["is_recurring"] = True

    tx = store.create(user_id, payload)
    content = {"ok": True, "data": tx.to_payload()}

    alert = evaluate_limits(tx, store, limits)
    if alert is not None:
        content["alert"] = alert.to_payload()

    best_effort(reminders.remind_transaction, tx)
    return JSONResponse(status_code=201, content=content)


@router.get("")
async def api_get_recurring(
    due: bool = False,
    user_id: str = Depends(get_current_user_id),
    store: TransactionStore = Depends(get_transaction_store),
) -> JSONResponse:
    """Recurring transactions, soonest next trigger first.

    `due=true` keeps only those whose next trigger is not in the future.
    """
    due_before = recurrence.utcnow() if due else None
    items = store.list_recurring(user_id, due_before=due_before)
    return JSONResponse(content={"ok": True, "data": [tx.to_payload() for tx in items]})


@router.patch("/{tx_id}")
async def api_update_recurring(
    tx_id: int,
    update: schemas.RecurringUpdate,
    user_id: str = Depends(get_current_user_id),
    store: TransactionStore = Depends(get_transaction_store),
    reminders: ReminderBridge = Depends(get_reminder_bridge),
) -> JSONResponse:
    before = _get_recurring(store, user_id, tx_id)
    after = store.update(user_id, tx_id, update.model_dump(exclude_unset=True))
    best_effort(reminders.sync_transaction, before, after)
    return JSONResponse(content={"ok": True, "data": after.to_payload()})


@router.delete("/{tx_id}")
async def api_delete_recurring(
    tx_id: int,
    user_id: str = Depends(get_current_user_id),
    store: TransactionStore = Depends(get_transaction_store),
    reminders: ReminderBridge = Depends(get_reminder_bridge),
) -> JSONResponse:
    _get_recurring(store, user_id, tx_id)
    deleted = store.delete(user_id, tx_id)
    best_effort(reminders.forget_transaction, deleted)
    return JSONResponse(content={"ok": True})
