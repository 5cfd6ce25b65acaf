# crowdwatch/main.py
"""
FastAPI application entry point.
Includes CORS, request timing, typed error handlers, all routers and the /ws channel.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from crowdwatch.routers import scans, areas, events, alerts, tenants, health, realtime
from crowdwatch.database import create_tables, SessionLocal
from crowdwatch.config import settings
from crowdwatch.dependencies import get_broadcaster
from crowdwatch.errors import CrowdWatchError
from crowdwatch.services.tenant_service import seed_defaults
from crowdwatch.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="CrowdWatch API",
    description="Live crowd monitoring for event venues — scans, occupancy, alerts, real-time updates.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (dashboard origins from ALLOWED_ORIGINS) ────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Response time ────────────────────────────────────────────────────────────
SLOW_REQUEST_MS = settings.STORE_TIMEOUT_SECONDS * 1000 / 2


@app.middleware("http")
async def time_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    response.headers["X-Response-Time-ms"] = str(elapsed_ms)
    if elapsed_ms > SLOW_REQUEST_MS:
        logger.warning(f"Slow request: {request.method} {request.url.path} took {elapsed_ms}ms")
    else:
        logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({elapsed_ms}ms)")
    return response


# ── Error Handlers ───────────────────────────────────────────────────────────
@app.exception_handler(CrowdWatchError)
async def crowdwatch_error_handler(request: Request, exc: CrowdWatchError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(scans.router,   prefix="/api", tags=["Scans"])
app.include_router(areas.router,   prefix="/api", tags=["Areas"])
app.include_router(events.router,  prefix="/api", tags=["Events"])
app.include_router(alerts.router,  prefix="/api", tags=["Alerts"])
app.include_router(tenants.router, prefix="/api", tags=["Tenants"])
app.include_router(health.router,  prefix="/api", tags=["Health"])
app.include_router(realtime.router, tags=["Real-time"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 CrowdWatch starting up...")
    create_tables()
    logger.info("✅ Database tables ready")

    db = SessionLocal()
    try:
        seed_defaults(db, settings.DEFAULT_TENANT_EMAIL, settings.DEFAULT_TENANT_NAME,
                      sample_areas=settings.SEED_SAMPLE_AREAS)
    finally:
        db.close()

    logger.info(f"⚙️  Rapid inflow: {settings.RAPID_INFLOW_COUNT} entries / {settings.RAPID_INFLOW_SECONDS}s")
    logger.info(f"🌐 CORS origins: {settings.CORS_ORIGINS}")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs, real-time channel at /ws")


@app.on_event("shutdown")
async def shutdown():
    closed = get_broadcaster().close_all()
    logger.info(f"🛑 CrowdWatch shutting down ({closed} real-time subscribers closed)")
