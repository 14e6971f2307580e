# fixflow/main.py
"""
fixflow FastAPI application.

HTTP surface for the chat transport: start a troubleshooting session for a
tenant issue, feed replies into it and read session and deflection data.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
import logging
import os
import secrets

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from fixflow.core.config import settings, validate_required_settings
from fixflow.core.exceptions import FixFlowError, ValidationError
from fixflow.core.logging_config import setup_logging
from fixflow.core.orchestrator import TroubleshootingOrchestrator, get_orchestrator, init_orchestrator
from fixflow.core.rate_limit_config import get_rate_limit_message, get_rate_limits, get_real_ip
from fixflow.core.response_interpreter import detect_media
from fixflow.models.session_state import EngineResult

setup_logging()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan event handler for startup/shutdown"""
    logger.info("=" * 60)
    logger.info(f"{settings.APP_NAME} API starting...")
    logger.info("=" * 60)

    # Warn but don't fail
    if not validate_required_settings():
        logger.warning("Some environment variables are missing - services may be degraded")

    orchestrator = init_orchestrator()
    logger.info("Orchestrator initialized (services lazy-loaded)")
    logger.info(f"Listening on port {os.getenv('PORT', '8000')}")

    yield

    logger.info(f"{settings.APP_NAME} API shutting down...")
    await orchestrator.shutdown()


app = FastAPI(
    title="fixflow API",
    description="Guided troubleshooting sessions for tenant repair issues",
    version=VERSION,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None
)

# =============================================================================
# API KEY AUTHENTICATION
# =============================================================================

API_KEY_NAME = "X-API-Key"
api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)


def get_api_key() -> str:
    """API key from settings, or a throwaway key for development"""
    api_key = settings.API_KEY
    if not api_key:
        api_key = secrets.token_urlsafe(32)
        logger.warning("No API_KEY set. Generated temporary key.")
        logger.warning("Set API_KEY environment variable for production!")
        logger.warning(f"Temporary key (first 8 chars): {api_key[:8]}...")
    else:
        logger.info("API key configured from environment")
    return api_key


VALID_API_KEY = get_api_key()


async def verify_api_key(api_key: Optional[str] = Depends(api_key_header)):
    """Verify API key for protected endpoints"""
    if api_key is None:
        logger.warning("Request without API key")
        raise HTTPException(
            status_code=401,
            detail="Missing API Key. Include 'X-API-Key' header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )
    if not secrets.compare_digest(api_key, VALID_API_KEY):
        logger.warning("Invalid API key attempt detected")
        raise HTTPException(
            status_code=401,
            detail="Invalid API Key",
            headers={"WWW-Authenticate": "ApiKey"},
        )
    return api_key


def get_safe_error_message(error: Exception, context: str = "") -> str:
    """Return a message that doesn't expose internal details"""
    logger.error(f"Error in {context}: {type(error).__name__}: {error}")

    if isinstance(error, HTTPException):
        return error.detail
    if isinstance(error, ValidationError):
        return error.message

    error_messages = {
        "ConnectionError": "Connection problem. Please try again later.",
        "TimeoutError": "The request took too long. Please try again.",
    }
    return error_messages.get(type(error).__name__, "Something went wrong. Please try again later.")


# =============================================================================
# RATE LIMITING
# =============================================================================

limiter = Limiter(key_func=get_real_ip)
RATE_LIMITS = get_rate_limits(settings.RATE_LIMIT_TIER)


def custom_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Rate limit response with a readable message"""
    endpoint = "reply" if request.url.path.endswith("/reply") else "start" if request.url.path.endswith("/start") else "default"
    response = PlainTextResponse(content=get_rate_limit_message(endpoint), status_code=429)
    response.headers["Retry-After"] = "60"
    response.headers["X-RateLimit-Limit"] = str(getattr(exc, "limit", "N/A"))
    return response


app.add_exception_handler(RateLimitExceeded, custom_rate_limit_handler)
app.state.limiter = limiter

# =============================================================================
# MIDDLEWARE
# =============================================================================


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log incoming requests, except health checks"""
    if request.url.path not in ("/", "/health"):
        logger.info(f"Request: {request.method} {request.url.path}")
    return await call_next(request)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses"""
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    if "Server" in response.headers:
        del response.headers["Server"]

    return response


allowed_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
if settings.ENV == "development":
    allowed_origins += ["http://localhost:3000", "http://127.0.0.1:3000"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# =============================================================================
# API MODELS
# =============================================================================


class StartRequest(BaseModel):
    issue_id: Optional[str] = None
    category: Optional[str] = None
    description: str = ""


class Attachment(BaseModel):
    type: str
    url: str


class ReplyRequest(BaseModel):
    message: str = ""
    media_urls: List[str] = Field(default_factory=list)
    # Raw transport attachments; the first image or video is used as media
    attachments: List[Attachment] = Field(default_factory=list)


# =============================================================================
# ROUTES
# =============================================================================


@app.get("/", status_code=200)
def read_root():
    """Health check endpoint"""
    return {"status": "ok", "version": VERSION, "service": settings.APP_NAME}


@app.get("/health", status_code=200)
def health():
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.get("/flows", dependencies=[Depends(verify_api_key)])
def list_flows(orchestrator: TroubleshootingOrchestrator = Depends(get_orchestrator)) -> List[Dict[str, Any]]:
    return orchestrator.list_flows()


@app.post("/troubleshooting/start", response_model=EngineResult, dependencies=[Depends(verify_api_key)])
@limiter.limit(RATE_LIMITS["start"])
async def start_troubleshooting(
    request: Request,
    req: StartRequest,
    orchestrator: TroubleshootingOrchestrator = Depends(get_orchestrator)
):
    """Pick a flow for the issue and return the first message"""
    try:
        return await orchestrator.start_troubleshooting(req.issue_id, req.category, req.description)
    except Exception as e:
        raise HTTPException(status_code=500, detail=get_safe_error_message(e, "start_troubleshooting"))


@app.post("/troubleshooting/{session_id}/reply", response_model=EngineResult, dependencies=[Depends(verify_api_key)])
@limiter.limit(RATE_LIMITS["reply"])
async def reply(
    request: Request,
    session_id: str,
    req: ReplyRequest,
    orchestrator: TroubleshootingOrchestrator = Depends(get_orchestrator)
):
    """Feed one tenant message into a session"""
    media_urls = list(req.media_urls)
    if not media_urls and req.attachments:
        media = detect_media([a.model_dump() for a in req.attachments])
        if media is not None:
            media_urls = [media.url]

    try:
        return await orchestrator.continue_troubleshooting(session_id, req.message, media_urls)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=get_safe_error_message(e, "reply"))
    except Exception as e:
        raise HTTPException(status_code=500, detail=get_safe_error_message(e, "reply"))


@app.get("/troubleshooting/{session_id}", dependencies=[Depends(verify_api_key)])
@limiter.limit(RATE_LIMITS["read"])
async def get_session_info(
    request: Request,
    session_id: str,
    orchestrator: TroubleshootingOrchestrator = Depends(get_orchestrator)
):
    try:
        info = await orchestrator.get_session_info(session_id)
    except FixFlowError as e:
        raise HTTPException(status_code=500, detail=get_safe_error_message(e, "session_info"))

    if info is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return info


@app.get("/metrics/deflection", dependencies=[Depends(verify_api_key)])
async def deflection_metrics(orchestrator: TroubleshootingOrchestrator = Depends(get_orchestrator)):
    try:
        return await orchestrator.get_deflection_summary()
    except Exception as e:
        raise HTTPException(status_code=500, detail=get_safe_error_message(e, "deflection_metrics"))


@app.get("/metrics/deflection/flows", dependencies=[Depends(verify_api_key)])
async def flow_performance(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    days: int = Query(30, ge=1, le=365),
    orchestrator: TroubleshootingOrchestrator = Depends(get_orchestrator)
):
    """Outcome counts and top escalation reasons per flow"""
    try:
        return await orchestrator.get_flow_performance(start_date, end_date, days)
    except Exception as e:
        raise HTTPException(status_code=500, detail=get_safe_error_message(e, "flow_performance"))


@app.get("/metrics/deflection/trends", dependencies=[Depends(verify_api_key)])
async def deflection_trends(
    period: Literal["daily", "weekly", "monthly"] = "daily",
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    days: int = Query(30, ge=1, le=365),
    orchestrator: TroubleshootingOrchestrator = Depends(get_orchestrator)
):
    """Deflection rate per day, week or month"""
    try:
        return await orchestrator.get_deflection_trends(period, start_date, end_date, days)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=get_safe_error_message(e, "deflection_trends"))
    except Exception as e:
        raise HTTPException(status_code=500, detail=get_safe_error_message(e, "deflection_trends"))


@app.get("/health/services", dependencies=[Depends(verify_api_key)])
async def services_health(orchestrator: TroubleshootingOrchestrator = Depends(get_orchestrator)):
    """Detailed health of the engine and its services"""
    try:
        return await orchestrator.health_check()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return {"overall": "unhealthy", "error": str(e)}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    logger.info(f"Starting server on port {port}...")
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
