# callwave/main.py
"""
FastAPI application.

Voice campaigns are launched as batch-calling jobs, polled until they finish
and updated from signed webhooks. The WhatsApp pharmacy bot shares the app.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from callwave.core.config import (
    ALLOWED_ORIGINS, ELEVENLABS_WEBHOOK_SECRET, JWT_SECRET_KEY, LOG_LEVEL,
    GEMINI_API_KEY, YCLOUD_API_KEY, MAX_POLLS, POLL_INTERVAL_SECONDS
)
from callwave.core.logging_config import setup_logging
from callwave.db.session import init_db, test_db_connection
from callwave.api.v1.router import api_router
from callwave.services import init_services, get_batch_poller, get_voice_client

setup_logging("callwave", LOG_LEVEL)

log = logging.getLogger("callwave")
log.info("="*80)
log.info("🚀 Application starting")
log.info("="*80)

# Initialize database
try:
    init_db()
    if test_db_connection():
        log.info("✅ Database initialized")
except Exception as e:
    log.error(f"❌ Database error: {e}")

# FastAPI app
app = FastAPI(
    title="Callwave - Voice Campaign API",
    description="Batch voice campaigns over a conversational voice API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# ────────────────────────────────────────────
# CORS Configuration
# ────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)

# Voice client, poller and pharmacy bot
init_services()
if get_voice_client().configured:
    log.info(f"✅ Voice client initialized (poll every {POLL_INTERVAL_SECONDS}s, max {MAX_POLLS} polls)")
else:
    log.warning("⚠️  ELEVENLABS_API_KEY not configured")

if not ELEVENLABS_WEBHOOK_SECRET:
    log.warning("⚠️  ELEVENLABS_WEBHOOK_SECRET not configured, voice webhooks will be rejected")

# Include API routes
app.include_router(api_router, prefix="/api")


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    if exc.status_code >= 500:
        log.error(f"❌ {request.method} {request.url.path}: {exc.status_code} {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


# ────────────────────────────────────────────
# Public routes
# ────────────────────────────────────────────

@app.get("/healthz", tags=["System"])
def health():
    """Health check endpoint"""
    db_ok = test_db_connection()

    return {
        "status": "ok" if db_ok else "degraded",
        "database_ok": db_ok,
        "voice_api_ok": get_voice_client().configured,
        "webhook_secret_ok": bool(ELEVENLABS_WEBHOOK_SECRET),
        "gemini_ok": bool(GEMINI_API_KEY),
        "ycloud_ok": bool(YCLOUD_API_KEY),
        "jwt_enabled": bool(JWT_SECRET_KEY),
        "active_polls": get_batch_poller().active_count
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("callwave.main:app", host="0.0.0.0", port=8000, reload=True)
