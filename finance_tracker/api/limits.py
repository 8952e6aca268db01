from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from .. import schemas
from ..auth import get_current_user_id
from ..services.limit_service import CategoryLimitStore
from .deps import get_limit_store

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("/limits")
async def api_get_limits(
    user_id: str = Depends(get_current_user_id),
    limits: CategoryLimitStore = Depends(get_limit_store),
) -> JSONResponse:
    """Category limits, most recently changed first."""
    items = limits.list(user_id)
    return JSONResponse(content={"ok": True, "data": [item.to_payload() for item in items]})


@router.post("/limits")
async def api_save_limit(
    body: schemas.CategoryLimitUpsert,
    user_id: str = Depends(get_current_user_id),
    limits: CategoryLimitStore = Depends(get_limit_store),
) -> JSONResponse:
    """Set the monthly limit of a category, replacing any existing one."""
    saved = limits.upsert(user_id, body.category, body.monthly_limit)
    return JSONResponse(content={"ok": True, "data": saved.to_payload()})


@router.delete("/limits/{limit_id}")
async def api_delete_limit(
    limit_id: int,
    user_id: str = Depends(get_current_user_id),
    limits: CategoryLimitStore = Depends(get_limit_store),
) -> JSONResponse:
    limits.delete(user_id, limit_id)
    return JSONResponse(content={"ok": True})
