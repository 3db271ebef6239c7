"""
FastAPI application initialization and configuration.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import redis.asyncio as redis

from core.config import settings
from database.engine import init_db, close_db
from api.routes import health
from api.routes.v1 import (
    applications,
    exports,
    organization,
    permissions,
    shortlist,
)

# Import middleware components
from core.middleware import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    StructuredLoggingMiddleware,
    setup_logging,
    RateLimitMiddleware,
    default_rules,
    AuthenticationMiddleware,
)

# Setup structured logging (do this first, before anything else)
setup_logging(
    log_level=settings.log_level,
    json_logs=settings.json_logs,
)

logger = logging.getLogger(__name__)

rate_limit_redis = (
    redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    if settings.rate_limit_enabled and settings.redis_url
    else None
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.app_name} in {settings.app_env} environment")
    await init_db()

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")
    if rate_limit_redis is not None:
        await rate_limit_redis.aclose()
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Recruiting back end with role-based access and AI candidate shortlisting",
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Setup error handlers (before middleware)
setup_error_handlers(app)

# Add middleware (order matters - the last one added runs first)
# 1. Rate limiting (innermost - keys on the user id set by authentication)
if rate_limit_redis is not None:
    app.add_middleware(
        RateLimitMiddleware,
        rules=default_rules(
            per_minute=settings.rate_limit_per_minute,
            ai_per_minute=settings.ai_rate_limit_per_minute,
            api_prefix=settings.api_prefix,
        ),
        key_prefix=f"{settings.app_name}:ratelimit",
        redis_client=rate_limit_redis,
    )

# 2. Authentication middleware (validates Bearer JWTs)
app.add_middleware(
    AuthenticationMiddleware,
    jwt_secret=settings.jwt_secret_key,
    jwt_algorithm=settings.jwt_algorithm,
    jwt_audience=settings.jwt_audience,
)

# 3. Structured logging middleware (logs all requests/responses)
app.add_middleware(
    StructuredLoggingMiddleware,
    log_request_body=settings.log_request_body,
    max_body_size=settings.log_max_body_size,
)

# 4. Error handling middleware (catches anything the handlers did not)
app.add_middleware(
    ErrorHandlingMiddleware,
    debug=settings.debug,
)

# 5. CORS middleware (outermost - answers preflight requests)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health check routes
app.include_router(health.router, tags=["Health"])

# API routes
for router in (
    shortlist.router,
    organization.router,
    applications.router,
    permissions.router,
    exports.router,
):
    app.include_router(router, prefix=settings.api_prefix)
