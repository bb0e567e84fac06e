"""Main FastAPI application for the CertLab gamification and analytics API."""
from contextlib import asynccontextmanager
from datetime import datetime
from fastapi import FastAPI, Depends
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.orm import Session
from certlab.routers import analytics, quiz, user
from certlab.db.init_db import init_db
from certlab.db.database import get_db
from certlab.logging_config import setup_logging, get_logger
from certlab.config import settings
from certlab.rate_limit import limiter

# Set up logging on module import
log_level = settings.LOG_LEVEL if settings.LOG_LEVEL else None
setup_logging(log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and seed the badge catalog on startup."""
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
    title="CertLab Progress API",
    description="""
    Gamification and learning analytics for certification exam practice.

    ## Features

    - **Points & Levels**: Every completed quiz earns points; levels follow a
      triangular threshold curve derived from total points
    - **Streaks & Badges**: Daily study streaks and an achievement catalog
    - **Analytics**: Learning curve, exam readiness, forecasts, study
      efficiency, skill gaps, burnout risk, peak times and retention

    ## Identity

    Requests carry `X-User-Id` (required) and `X-Tenant-Id` (optional)
    headers set by the authentication layer in front of this service.

    ## Quiz Flow

    1. **Start Quiz**: POST to `/api/quiz/start`
    2. **Complete Quiz**: POST to `/api/quiz/{quiz_id}/complete` with the number of correct answers
    3. **View Progress**: GET `/api/user/stats` and `/api/analytics`
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_tags=[
        {
            "name": "quiz",
            "description": "Quiz lifecycle and point awards"
        },
        {
            "name": "user",
            "description": "Level, streak and badge progress"
        },
        {
            "name": "analytics",
            "description": "Performance analytics and insights"
        },
        {
            "name": "health",
            "description": "Service health and readiness checks"
        }
    ]
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

logger.info("Rate limiting enabled: default 100 requests/minute per user")

# Include routers
app.include_router(quiz.router)
app.include_router(user.router)
app.include_router(analytics.router)


@app.get("/health", tags=["health"])
async def health_check(db: Session = Depends(get_db)):
    """Health check with database verification.

    Returns:
        200 OK: Service is healthy and database is accessible
        503 Service Unavailable: Database connection failed

    Example Response (Healthy):
        {
            "status": "healthy",
            "database": "connected",
            "timestamp": "2025-11-29T10:30:00.000000Z",
            "environment": "production"
        }
    """
    timestamp = datetime.utcnow().isoformat() + "Z"

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
    """Readiness check for container orchestration.

    Returns:
        200 OK: Service is ready
        503 Service Unavailable: Service is not ready
    """
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ready", "timestamp": datetime.utcnow().isoformat() + "Z"}
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "error": str(e)}
        )
