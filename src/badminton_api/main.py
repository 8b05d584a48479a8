"""
FastAPI Application for the Badminton Analyzer.

Run with: uvicorn badminton_api.main:create_app --factory --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from badminton_domain.errors import AnalyzerError
from badminton_domain.ports import IAnalysisEngine
from .config import Settings, load_settings, setup_logging
from .context import AppContext
from .models import ErrorResponse
from .routes import system_router, videos_router, webhooks_router


logger = logging.getLogger(__name__)

# API metadata
API_TITLE = "Badminton Analyzer API"
API_DESCRIPTION = """
## Badminton Video Analysis

Upload a match or training video and receive feedback on:

- **Technique**: backswing, follow-through, contact point, racket path
- **Footwork**: movement efficiency, recovery speed, court coverage
- **Strategy**: shot selection and patterns

### Workflow

1. **Upload** a video using `POST /api/upload-video`
2. **Poll** using `GET /api/analysis/{videoId}` until status is `completed` or `failed`
"""
API_VERSION = "1.0.0"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def register_exception_handlers(app: FastAPI):
    """Map errors to {success: false, error} bodies without internal detail."""

    @app.exception_handler(AnalyzerError)
    async def analyzer_error_handler(request: Request, exc: AnalyzerError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %r", request.method, request.url.path, exc, exc_info=exc)
        else:
            logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
        return _error(exc.status_code, exc.public_message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info("%s %s invalid request: %s", request.method, request.url.path, exc.errors())
        return _error(400, "Invalid request")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error")


def create_app(settings: Optional[Settings] = None, engine: Optional[IAnalysisEngine] = None) -> FastAPI:
    """
    Build the application and its context.

    Args:
        settings: Configuration (defaults to load_settings())
        engine: Analysis engine override (defaults to the configured one)
    """
    settings = settings or load_settings()
    setup_logging(settings.log_level)
    context = AppContext.build(settings, engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting up...")
        await context.startup()
        logger.info("Ready to accept requests on port %d", settings.port)
        yield
        logger.info("Shutting down...")
        await context.shutdown()

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials="*" not in settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(system_router, prefix="/api")
    app.include_router(videos_router, prefix="/api")
    app.include_router(webhooks_router)
    app.mount("/uploads", StaticFiles(directory=str(context.storage.upload_dir)), name="uploads")

    @app.get("/", response_class=PlainTextResponse, tags=["root"])
    async def root():
        return "Badminton Analyzer API is running!"

    @app.get("/health", tags=["health"])
    async def health_check():
        return {
            "status": "healthy",
            "engine": context.engine.name,
            "analyses": context.storage.status_counts(),
            "tracker": context.tracker.stats(),
        }

    return app


def run_server(settings: Optional[Settings] = None, reload: bool = False):
    """
    Run the API server with uvicorn.

    Args:
        settings: Configuration; host and port are taken from it
        reload: Enable auto-reload for development
    """
    import uvicorn

    settings = settings or load_settings()

    print(f"\n{'='*60}")
    print(f"  {API_TITLE} v{API_VERSION}")
    print(f"{'='*60}")
    print(f"  Server:   http://{settings.host}:{settings.port}")
    print(f"  Swagger:  http://localhost:{settings.port}/docs")
    print(f"  Engine:   {settings.analysis_engine}")
    print(f"{'='*60}\n")

    # Reload needs an import string, so the worker rebuilds settings from the environment
    app = "badminton_api.main:create_app" if reload else create_app(settings)
    uvicorn.run(
        app,
        factory=reload,
        host=settings.host,
        port=settings.port,
        reload=reload,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run_server(reload=True)
