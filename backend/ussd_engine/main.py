"""
USSD Menu Session Engine — FastAPI Application Entry Point

Aggregates the gateway and stats routers, configures middleware and
logging, initializes the database and the session sweeper on startup.
"""
import time
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from ussd_engine.config import get_settings
from ussd_engine.database import SessionLocal, init_db
from ussd_engine.routes import admin_router, ussd_router
from ussd_engine.schemas.schemas import HealthResponse
from ussd_engine.services.session_sweeper import SessionSweeper
from ussd_engine.services.ussd_service import get_ussd_service
from ussd_engine.utils.log_config import configure_logging

settings = get_settings()
configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = structlog.get_logger(__name__)

# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "USSD menu engine for beneficiaries: weekly tracking, goals, emergency "
        "contacts and language preference over a keypad session, plus session "
        "statistics for administrators."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# ─── Startup / Shutdown ─────────────────────────────────────────────
BOOT_TIME = time.time()
_sweeper: Optional[SessionSweeper] = None


@app.on_event("startup")
def on_startup():
    """Initialize database tables, start the sweeper and log boot info."""
    global _sweeper
    init_db()

    if settings.SWEEP_INTERVAL_SECONDS > 0:
        _sweeper = SessionSweeper(
            get_ussd_service().resolver,
            SessionLocal,
            interval_s=settings.SWEEP_INTERVAL_SECONDS,
        )
        _sweeper.start()

    logger.info(
        "app_started",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        database=settings.DATABASE_URL,
        gateways=settings.GATEWAY_BACKEND,
        timeout_s=settings.USSD_TIMEOUT_SECONDS,
        debug=settings.DEBUG,
    )


@app.on_event("shutdown")
def on_shutdown():
    global _sweeper
    if _sweeper:
        _sweeper.stop()
        _sweeper = None


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
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=duration,
        )

    return response


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(ussd_router)
app.include_router(admin_router)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def deep_health():
    """Health check including the database connection."""
    db_ok = False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except Exception as e:
        logger.warning("health_db_unavailable", error=str(e))
    finally:
        db.close()

    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        version=settings.APP_VERSION,
        uptime_seconds=round(time.time() - BOOT_TIME, 1),
        database="connected" if db_ok else "disconnected",
        gateways=settings.GATEWAY_BACKEND,
    )
