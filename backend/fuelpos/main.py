"""
FuelPOS — FastAPI Application Entry Point

Aggregates all routers, configures middleware, initializes the database and
the QR payment session manager on startup.
"""
import time
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from fuelpos.config import get_settings
from fuelpos.database import init_db, SessionLocal
from fuelpos.routes import auth_router, fuel_router, transactions_router, payments_router, admin_router
from fuelpos.services.payment_session import PaymentSessionManager
from fuelpos.services.status_client import build_status_client
from fuelpos.services.transaction_recorder import TransactionRecorder
from fuelpos.utils.logger import get_logger

settings = get_settings()
logger = get_logger("server")

# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Point-of-sale API for a fuel station: employee PIN login, fuel catalog, "
        "cash/card sales, PromptPay and Thai QR30 payment sessions, and the audit trail."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# ─── Startup / Shutdown ──────────────────────────────────────────────
BOOT_TIME = time.time()


@app.on_event("startup")
def on_startup():
    """Initialize database tables and the payment services."""
    init_db()

    recorder = TransactionRecorder(SessionLocal, receipt_prefix=settings.RECEIPT_PREFIX)
    app.state.recorder = recorder
    app.state.payments = PaymentSessionManager(
        build_status_client(settings),
        recorder,
        timeout=settings.QR_TIMEOUT_SECONDS,
        poll_interval=settings.QR_POLL_INTERVAL_SECONDS,
        tick_interval=settings.QR_COUNTDOWN_TICK_SECONDS,
        history=settings.QR_SESSION_HISTORY,
    )

    logger.info(
        "%s v%s started at %s (database: %s, debug: %s, QR timeout: %ss)",
        settings.APP_NAME, settings.APP_VERSION, datetime.now().isoformat(),
        settings.DATABASE_URL, settings.DEBUG, settings.QR_TIMEOUT_SECONDS,
    )


@app.on_event("shutdown")
async def on_shutdown():
    """Stop pending payment sessions and release the status gateway client."""
    payments = getattr(app.state, "payments", None)
    if payments is None:
        return
    await payments.close()
    aclose = getattr(payments.status_client, "aclose", None)
    if aclose is not None:
        await aclose()


# ─── Middleware ──────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with timing."""
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 1)

    if request.url.path.startswith("/api"):
        logger.info("%s %s -> %s (%sms)", request.method, request.url.path, response.status_code, duration)

    return response


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(auth_router)
app.include_router(fuel_router)
app.include_router(transactions_router)
app.include_router(payments_router)
app.include_router(admin_router)


@app.get("/health", tags=["Health"])
def deep_health():
    """Health check including database and payment session status."""
    from sqlalchemy import text
    db_ok = False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except Exception as exc:
        logger.warning("Health check database probe failed: %s", exc)
    finally:
        db.close()

    payments = getattr(app.state, "payments", None)
    return {
        "status": "healthy" if db_ok else "degraded",
        "database": "connected" if db_ok else "disconnected",
        "active_payment_sessions": len(payments.store.active_ids()) if payments else 0,
        "bank_gateway": "http" if settings.BANK_STATUS_URL else "simulated",
        "uptime_seconds": round(time.time() - BOOT_TIME, 1),
        "version": settings.APP_VERSION,
    }
