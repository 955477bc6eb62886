"""FastAPI application entry point."""

import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.engine import Engine

from clinicroute.core.config import Settings, settings as default_settings
from clinicroute.core.exceptions import request_validation_handler, unhandled_exception_handler
from clinicroute.core.rate_limit import limiter
from clinicroute.core.request_context import REQUEST_ID_HEADER, RequestContextMiddleware
from clinicroute.core.structured_logging import configure_logging
from clinicroute.db.session import create_db_engine, create_session_factory
from clinicroute.routers import audit, auth, cases, clinics, documents, health, reports, users

logger = logging.getLogger(__name__)


def _init_sentry(settings: Settings) -> None:
    """Optional production error tracking."""
    if not settings.SENTRY_DSN or settings.ENV == "dev":
        return
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,  # Patient data must not leave the service
    )
    logger.info("Sentry initialized for error tracking")


def create_app(settings: Settings | None = None, engine: Engine | None = None) -> FastAPI:
    """
    Build the application.

    The engine and session factory live on app.state and reach services
    only through the get_db dependency.
    """
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)
    _init_sentry(settings)

    app = FastAPI(
        title="ClinicRoute API",
        description="Referral tracking and insurer authorisation for UK clinics",
        version=settings.VERSION,
        docs_url="/docs" if settings.ENV == "dev" else None,
        redoc_url="/redoc" if settings.ENV == "dev" else None,
    )

    app.state.engine = engine or create_db_engine(
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )
    app.state.session_factory = create_session_factory(app.state.engine)

    # =========================================================================
    # Middleware (outermost last): request context -> CORS -> rate limits
    # =========================================================================

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # =========================================================================
    # Routers
    # =========================================================================

    prefix = settings.API_PREFIX.rstrip("/")
    app.include_router(health.router, prefix=f"{prefix}/health", tags=["health"])
    app.include_router(auth.router, prefix=f"{prefix}/auth", tags=["auth"])
    app.include_router(cases.router, prefix=f"{prefix}/cases", tags=["cases"])
    app.include_router(documents.router, prefix=f"{prefix}/documents", tags=["documents"])
    app.include_router(reports.router, prefix=f"{prefix}/reports", tags=["reports"])
    app.include_router(audit.router, prefix=f"{prefix}/audit", tags=["audit"])
    app.include_router(users.router, prefix=f"{prefix}/users", tags=["users"])
    app.include_router(clinics.router, prefix=prefix, tags=["clinics"])

    return app


app = create_app()
