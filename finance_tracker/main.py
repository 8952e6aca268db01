# --- imports ---
import logging
import sqlite3

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import db
from .core import config
from .errors import InvalidMonthKey, NotFound, UpstreamFailure, ValidationError
from .services.logging_service import configure_logging
from .services.notification_service import SchedulerNotifier

logger = logging.getLogger(__name__)

# --- create app ---
app = FastAPI(title="Finance Tracker", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- error envelope: {"ok": false, "error": ...} ---
@app.exception_handler(ValidationError)
async def _on_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"ok": False, "error": str(exc), "field": exc.field})


@app.exception_handler(InvalidMonthKey)
async def _on_invalid_month(request: Request, exc: InvalidMonthKey) -> JSONResponse:
    return JSONResponse(status_code=400, content={"ok": False, "error": str(exc)})


@app.exception_handler(NotFound)
async def _on_not_found(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"ok": False, "error": str(exc)})


@app.exception_handler(UpstreamFailure)
async def _on_upstream_failure(request: Request, exc: UpstreamFailure) -> JSONResponse:
    logger.error("Upstream failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=502, content={"ok": False, "error": "Upstream service unavailable"})


@app.exception_handler(sqlite3.Error)
async def _on_storage_error(request: Request, exc: sqlite3.Error) -> JSONResponse:
    logger.exception("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"ok": False, "error": "Storage failure"})


@app.exception_handler(RequestValidationError)
async def _on_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(loc) or "body"
    message = first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content={"ok": False, "error": f"{field}: {message}", "field": field})


@app.exception_handler(StarletteHTTPException)
async def _on_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# --- include routers ---
from .api.transactions import router as transactions_api
from .api.recurring import router as recurring_api
from .api.limits import router as limits_api

app.include_router(transactions_api)
app.include_router(recurring_api)
app.include_router(limits_api)


@app.get("/health")
async def health():
    return {"ok": True, "status": "healthy"}


# --- lifecycle: logging, DB schema, notification scheduler ---
@app.on_event("startup")
async def _on_startup() -> None:
    configure_logging(config.LOG_DIR)
    db.initialise_database()
    if getattr(app.state, "notifier", None) is None:
        app.state.notifier = SchedulerNotifier()
    app.state.notifier.start()
    logger.info("Finance Tracker started with database %s", db.get_db_path())


@app.on_event("shutdown")
async def _on_shutdown() -> None:
    notifier = getattr(app.state, "notifier", None)
    if notifier is not None:
        try:
            notifier.stop()
        except Exception:
            logger.exception("Notifier shutdown error")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
