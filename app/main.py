"""Main FastAPI application for the EduKid learning service."""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, Request, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.middleware.sessions import SessionMiddleware
from app.routers import auth, learning
from app.db.init_db import init_db
from app.db.database import get_db
from app.logging_config import setup_logging, get_logger
from app.rate_limit import limiter
from app.config import settings
from app.constants import DEFAULT_RATE_LIMIT

# Set up logging on module import
log_level = settings.LOG_LEVEL if settings.LOG_LEVEL else None
setup_logging(log_level)
logger = get_logger(__name__)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and seed demo content on startup."""
    logger.info("Application startup initiated")
    try:
        init_db()
        logger.info("Database initialization completed successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        raise

    yield

    logger.info("Application shutdown complete")


app = FastAPI(
    title="EduKid Learning API",
    description="""
    Quiz backend for primary-school learners.

    ## Features

    - **Adaptive Questions**: Question difficulty follows the student's mastery of a topic
    - **Mastery Tracking**: One score per student and topic, updated after every answer
    - **Learning Events**: Every answer is logged with correctness and time taken
    - **Sessions**: Cookie-based login for students, teachers and parents

    ## Play Flow

    1. **Sign in**: POST `/api/auth/login`
    2. **Pick a topic**: GET `/api/topics`
    3. **Get a question**: GET `/api/learning/next-question?topicId=...`
    4. **Answer**: POST `/api/learning/answer` and repeat from step 3

    ## Learning Algorithm

    - Target difficulty = floor(mastery * 5) + 1, clamped to 1..5
    - A question is picked at random from that difficulty, or from the whole topic if none match
    - By default mastery becomes 1.0 after a correct answer and 0.0 after a wrong one
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_tags=[
        {
            "name": "auth",
            "description": "Login, logout and current user"
        },
        {
            "name": "learning",
            "description": "Topics, adaptive questions and answer grading"
        },
        {
            "name": "health",
            "description": "Service health and readiness checks"
        }
    ]
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

logger.info(f"Rate limiting enabled: default {DEFAULT_RATE_LIMIT} per IP")

# Signed session cookie, refreshed on every response
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY,
    max_age=settings.SESSION_MAX_AGE,
    same_site=settings.COOKIE_SAMESITE,
    https_only=settings.COOKIE_SECURE
)

# Include routers
app.include_router(auth.router)
app.include_router(learning.router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed requests as 400 with the offending fields."""
    logger.debug(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"detail": "Validation error", "errors": jsonable_errors(exc)}
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


@app.get("/health", tags=["health"])
async def health_check(db: Session = Depends(get_db)):
    """Health check with database verification.

    Returns:
        200 OK: Service is healthy and database is accessible
        503 Service Unavailable: Database connection failed
    """
    timestamp = _utc_timestamp()

    try:
        db.execute(text("SELECT 1"))
        logger.debug("Health check passed")

        return {
            "status": "healthy",
            "database": "connected",
            "timestamp": timestamp,
            "environment": settings.ENVIRONMENT
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}", exc_info=True)

        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(e),
                "timestamp": timestamp
            }
        )


@app.get("/readiness", tags=["health"])
async def readiness_check(db: Session = Depends(get_db)):
    """Readiness check for container orchestration."""
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ready", "timestamp": _utc_timestamp()}
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "error": str(e)}
        )
