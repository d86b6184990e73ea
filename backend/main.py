"""
A2U Payment Engine — FastAPI Application

Operator API around the payment lifecycle controller: app-to-user payments
from the app wallet, with crash recovery via reconciliation on startup.
"""
import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from routes import health, payments

# ── Logging ─────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────

def log_startup_reconcile(task: asyncio.Task) -> None:
    """Done-callback for the startup reconciliation task."""
    if task.cancelled():
        logger.warning("Startup reconciliation cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Startup reconciliation failed: {exc}", exc_info=exc)
        return
    report = task.result()
    logger.info(
        f"Startup reconciliation finished: completed={len(report.completed)} "
        f"cancelled={len(report.cancelled)} unresolved={len(report.unresolved)}"
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create DB tables, build the controller, reconcile. Shutdown: close clients."""
    # Ensure data/ directory exists for SQLite
    os.makedirs("data", exist_ok=True)

    settings.validate_production_settings()

    from database import async_session, init_db
    await init_db()
    logger.info("Database initialized")

    from deps import build_controller
    controller = build_controller(settings, async_session)
    app.state.settings = settings
    app.state.controller = controller

    reconcile_task = None
    if settings.reconcile_on_startup:
        reconcile_task = asyncio.create_task(controller.reconcile())
        reconcile_task.add_done_callback(log_startup_reconcile)
        logger.info("Startup reconciliation scheduled")

    yield  # app runs here

    if reconcile_task is not None and not reconcile_task.done():
        reconcile_task.cancel()
        try:
            await reconcile_task
        except asyncio.CancelledError:
            pass

    await controller.sequencer.chain.aclose()
    await controller.payments.aclose()

    from services.async_executor import shutdown_executor
    shutdown_executor()

    logger.info("Shutting down")


# ── App Factory ─────────────────────────────────────────────────────

app = FastAPI(
    title="A2U Payment Engine API",
    description="App-to-user payments with single-in-flight submission per source account",
    version="1.0.0",
    lifespan=lifespan,
)
app.state.settings = settings

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routes ──────────────────────────────────────────────────────────

app.include_router(health.router)
app.include_router(payments.router)


# ── Exception Handler ───────────────────────────────────────────────


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """
    Catch-all for unhandled exceptions.

    Never return raw exception details to clients; the full traceback is
    logged server-side.
    """
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {
                "code": "internal_server_error",
                "message": "Internal server error",
            },
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """
    Standardize HTTPException responses for API consumers.

    Keeps the original HTTP status code, but wraps the payload.
    """
    if hasattr(exc, "message") and hasattr(exc, "details"):
        # DomainError with structured error info
        error_code = exc.__class__.__name__.replace("Error", "").lower()
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": {
                    "code": error_code,
                    "message": exc.message,
                    "details": exc.details,
                },
            },
        )

    detail = exc.detail
    message = detail if isinstance(detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {
                "code": "http_error",
                "message": message,
                "details": detail if not isinstance(detail, str) else None,
            },
        },
    )


# ── Entrypoint ──────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
