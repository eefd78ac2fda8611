import asyncio
from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware
from app.core.database import session_manager, aget_db
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.endpoints.auth import router as auth_router
from app.api.endpoints.users import router as users_router
from app.api.endpoints.tasks import router as tasks_router
from app.api.endpoints.teams import router as teams_router
from app.api.endpoints.projects import router as projects_router
from app.api.endpoints.invitations import router as invitations_router
from app.api.endpoints.notifications import router as notifications_router
from app.api.endpoints.achievements import router as achievements_router, seed_achievements
from app.api.endpoints.upload import router as upload_router
from app.utils.schedulers.overdue_sweep import overdue_sweep_scheduler

from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
import logging
from contextlib import asynccontextmanager
from app.core.config import settings
from app.core.errors import APIError, code_for_status
from app.core.limiter import limiter
from app.utils.response import error_response, success_response

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

scheduler_tasks = []

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Async context manager for app lifespan events"""

    try:
        logger.info("🚀 Starting Taskly application...")

        logger.info("🔌 Initializing database connection pool...")
        await session_manager.init()
        logger.info("✅ Database connection pool ready")

        if settings.SEED_ACHIEVEMENTS:
            async with session_manager.get_session() as db:
                await seed_achievements(db)

        if settings.OVERDUE_SWEEP_ENABLED:
            logger.info("📅 Starting Overdue Sweep Scheduler...")
            task = asyncio.create_task(overdue_sweep_scheduler())
            scheduler_tasks.append(task)
            logger.info("✅ Overdue Sweep Scheduler started")

    except Exception as e:
        logger.critical(f"🔥 Application startup failed: {str(e)}")
        raise

    try:
        logger.info("🏁 Taskly application startup complete")
        yield
    finally:
        try:
            logger.info("🛑 Beginning application shutdown...")

            # Cancel all scheduler tasks
            for task in scheduler_tasks:
                if not task.done():
                    logger.info("⏹️ Stopping scheduler...")
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        logger.info("✅ Scheduler stopped")
            scheduler_tasks.clear()

            logger.info("🔌 Closing database connections...")
            await session_manager.close()
            logger.info("✅ Database connections closed cleanly")
        except Exception as e:
            logger.error(f"⚠️ Error during shutdown: {str(e)}")
            raise
        finally:
            logger.info("👋 Application shutdown complete")


app = FastAPI(
    title="Taskly API",
    description="API for Taskly - tasks, projects and team collaboration",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET_KEY,
    max_age=3600,
    same_site="none" if settings.ENVIRONMENT == "production" else "lax",
    https_only=True if settings.ENVIRONMENT == "production" else False
)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"Request: {request.method} {request.url}")
    response = await call_next(request)
    logger.info(f"Response status: {response.status_code}")
    return response


# CORS Configuration
allow_all_origins = "*" in settings.CORS_ORIGINS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[] if allow_all_origins else settings.CORS_ORIGINS,
    allow_origin_regex=".*" if allow_all_origins else None,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -----------------------------
# Exception handlers
# -----------------------------
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc, APIError):
        return error_response(exc.status_code, exc.message, exc.code, exc.details)
    return error_response(exc.status_code, str(exc.detail), code_for_status(exc.status_code))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logging.error(f"Validation Error: {exc.errors()}")
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path")),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return error_response(400, "Validation failed", "VALIDATION_ERROR", details)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return error_response(409, "Resource already exists", "DUPLICATE_KEY")


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return error_response(429, "Too many requests, please try again later", "RATE_LIMITED")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(500, "Internal server error", "INTERNAL_ERROR")


@app.get("/api/health", tags=["Health Check"])
async def health_check(db: AsyncSession = Depends(aget_db)):
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("❌ Health check failed")
        return error_response(503, "Database unavailable", "HEALTH_CHECK_FAILED")
    return success_response({
        "status": "healthy",
        "service": "Taskly API",
        "database": "connected",
        "schedulers_running": len([t for t in scheduler_tasks if not t.done()])
    })


app.include_router(auth_router, prefix="/api", tags=["Authentication"])
app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(tasks_router, prefix="/api", tags=["Tasks"])
app.include_router(teams_router, prefix="/api", tags=["Teams"])
app.include_router(projects_router, prefix="/api", tags=["Projects"])
app.include_router(invitations_router, prefix="/api", tags=["Invitations"])
app.include_router(notifications_router, prefix="/api", tags=["Notifications"])
app.include_router(achievements_router, prefix="/api", tags=["Achievements"])
app.include_router(upload_router, prefix="/api", tags=["Upload"])

logger.info(f"✅ Loaded {len(app.routes)} routes")
