"""
Inkwell API — entry point.

Startup sequence (for backends not injected into create_app):
  1. Configure OTel tracing (→ Jaeger via OTLP), when enabled
  2. Initialise the DB engine and create tables if not present
  3. Connect the session store (Redis, or the in-memory fallback)
  4. Initialise upload storage (local directory or MinIO bucket)
  5. Expose Prometheus /metrics endpoint
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from prometheus_client import make_asgi_app
from starlette.exceptions import HTTPException as StarletteHTTPException

from inkwell.config import Settings, settings as default_settings
from inkwell.database import create_engine_from_settings, create_sessionmaker, init_db
from inkwell.errors import ConstraintViolation, StorageError, UploadRejected
from inkwell.routers import auth, comments, posts, taxonomy, uploads, users
from inkwell.sessions import SessionStore, init_session_store
from inkwell.storage import SqlStorage, Storage
from inkwell.telemetry import instrument_app, setup_tracing
from inkwell.uploads import FileStorage, init_file_storage

logging.basicConfig(
    level=default_settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, **extra})


def register_exception_handlers(app: FastAPI) -> None:
    """Every failure leaves the API as JSON with a human-readable message."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        response = _error(exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        return _error(400, "Invalid data", errors=errors)

    @app.exception_handler(UploadRejected)
    async def upload_rejected_handler(request: Request, exc: UploadRejected):
        return _error(400, str(exc))

    @app.exception_handler(ConstraintViolation)
    async def constraint_violation_handler(request: Request, exc: ConstraintViolation):
        logger.info("Constraint violation on %s %s: %s", request.method, request.url.path, exc)
        return _error(409, "Request conflicts with existing data")

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(
            "Storage error on %s %s", request.method, request.url.path, exc_info=exc
        )
        return _error(500, "Internal server error")


def create_app(
    settings: Settings = default_settings,
    *,
    storage: Optional[Storage] = None,
    session_store: Optional[SessionStore] = None,
    file_storage: Optional[FileStorage] = None,
) -> FastAPI:
    """Build the application; injected backends are used as-is and never closed."""

    if settings.tracing_enabled:
        # Set up tracing before requests flow so all spans are exported
        setup_tracing(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage startup and shutdown of the backends we own."""
        logger.info("Starting Inkwell API (env=%s)", settings.environment)
        engine = None
        owned_sessions = None

        if app.state.storage is None:
            engine = create_engine_from_settings(settings)
            await init_db(engine)
            app.state.storage = SqlStorage(create_sessionmaker(engine))
        if app.state.session_store is None:
            owned_sessions = await init_session_store(settings)
            app.state.session_store = owned_sessions
        if app.state.file_storage is None:
            app.state.file_storage = init_file_storage(settings)

        logger.info("All services connected. API ready.")
        yield

        logger.info("Shutting down...")
        if owned_sessions is not None:
            await owned_sessions.close()
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title="Inkwell API",
        description="Multi-author blogging: posts, tags, comments, claps and follows.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.storage = storage
    app.state.session_store = session_store
    app.state.file_storage = file_storage

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # ── Routers ────────────────────────────────────────────────────────────
    app.include_router(auth.router, prefix="/auth", tags=["Auth"])
    app.include_router(posts.router, prefix="/posts", tags=["Posts"])
    app.include_router(comments.router, prefix="/comments", tags=["Comments"])
    app.include_router(users.router, prefix="/users", tags=["Users"])
    app.include_router(taxonomy.router, tags=["Taxonomy"])
    app.include_router(uploads.router, tags=["Uploads"])

    # ── Uploaded media ─────────────────────────────────────────────────────
    if settings.upload_backend == "s3":
        app.include_router(uploads.media_router, prefix=settings.upload_url_prefix, tags=["Uploads"])
    else:
        app.mount(
            settings.upload_url_prefix,
            StaticFiles(directory=settings.upload_dir, check_dir=False),
            name="uploads",
        )

    # ── Prometheus metrics endpoint ────────────────────────────────────────
    app.mount("/metrics", make_asgi_app())

    if settings.tracing_enabled:
        instrument_app(app)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "service": settings.service_name}

    return app


app = create_app()
