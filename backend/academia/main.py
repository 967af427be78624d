from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from academia.core.config import settings
from academia.core.database import get_session_local, init_db, close_db
from academia.core.exceptions import register_exception_handlers
from academia.core.logging_config import logger
from academia.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
)
from academia.core.rate_limiter import limiter, rate_limit_exceeded_handler
from academia.api.v1.router import api_router
from academia.services.user_service import UserService
from slowapi.errors import RateLimitExceeded

PLACEHOLDER_SECRETS = {"", "CHANGE_ME", "change-me-in-production"}


async def validate_critical_config():
    """Validate critical configuration at startup - fail fast if missing"""
    errors = []
    warnings = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is not set")

    if settings.is_production:
        if settings.SECRET_KEY in PLACEHOLDER_SECRETS:
            errors.append("SECRET_KEY is not set or using default value")
        if settings.JWT_SECRET_KEY in PLACEHOLDER_SECRETS:
            errors.append("JWT_SECRET_KEY is not set or using default value")
        if settings.DEBUG:
            warnings.append("DEBUG is enabled in production")
    elif settings.JWT_SECRET_KEY in PLACEHOLDER_SECRETS:
        warnings.append("JWT_SECRET_KEY is using the default value")

    if not settings.RATE_LIMIT_ENABLED:
        warnings.append("Rate limiting disabled")

    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(errors)}")

    for warn in warnings:
        logger.warning(f"[Startup] WARNING: {warn}")

    logger.info("[Startup] Critical configuration validated")
    return True


async def ensure_bootstrap_admin():
    """Create the first admin from BOOTSTRAP_ADMIN_* settings if none exists"""
    session_factory = get_session_local()
    async with session_factory() as session:
        admin = await UserService(session).ensure_bootstrap_admin(
            settings.BOOTSTRAP_ADMIN_USER_ID,
            settings.BOOTSTRAP_ADMIN_EMAIL,
            settings.BOOTSTRAP_ADMIN_PASSWORD,
        )
    if admin is None and not settings.BOOTSTRAP_ADMIN_PASSWORD:
        logger.info("[Startup] BOOTSTRAP_ADMIN_PASSWORD not set, skipping admin seed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"API Version: {settings.API_VERSION}")
    logger.info("=" * 60)

    await validate_critical_config()
    await init_db()
    await ensure_bootstrap_admin()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Role-based academic records: departments, subjects, grades and CGPA",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False
)

# Add rate limiter state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Domain errors -> {"success": false, "error": {...}} with the class's status
register_exception_handlers(app)

# Add middleware (order matters - last added runs first)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware, max_size=5 * 1024 * 1024)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.log_error_with_context(exc, context=f"{request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {
                "code": "INTERNAL_ERROR",
                "message": str(exc) if settings.DEBUG else "An error occurred",
                "details": {},
            },
        }
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness probe"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }


app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "academia.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )
