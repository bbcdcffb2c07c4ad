"""FastAPI application factory."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from .config import Settings, get_settings
from .database import Base, build_engine, build_session_factory
from .errors import error_response, register_exception_handlers
from .routers import auth_router, time_requests_router, usage_router, users_router
from .security import FirebaseIdentityVerifier, IdentityVerifier

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    identity_verifier: IdentityVerifier | None = None,
) -> FastAPI:
    """Build the API. Tables are created on startup."""
    settings = settings or get_settings()
    engine = build_engine(settings.DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Base.metadata.create_all(bind=engine)
        logger.info("SlowDown backend started (env=%s)", settings.ENVIRONMENT)
        yield
        engine.dispose()
        logger.info("SlowDown backend stopped")

    app = FastAPI(title="SlowDown API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.identity_verifier = identity_verifier or FirebaseIdentityVerifier(settings)

    register_exception_handlers(app)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s - %d (%.0fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(usage_router)
    app.include_router(time_requests_router)

    @app.get("/health")
    def health():
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.error("Database health check failed: %s", e)
            return error_response(500, "Server is unhealthy: database disconnected")
        return {"success": True, "message": "Server is healthy", "database": "connected"}

    return app
