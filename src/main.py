"""School accounting dashboard FastAPI application."""
import logging
import os
from contextlib import asynccontextmanager
from datetime import timedelta

# macOS: so WeasyPrint finds pango/glib when generating PDFs (only if not already set)
if os.name == "posix" and os.environ.get("DYLD_LIBRARY_PATH") in (None, ""):
    _brew_lib = "/opt/homebrew/opt/glib/lib:/opt/homebrew/opt/pango/lib:/opt/homebrew/lib"
    if os.path.exists("/opt/homebrew/opt/glib/lib"):
        os.environ["DYLD_LIBRARY_PATH"] = _brew_lib

import httpx
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from src.core.backend import AccountingBackendClient
from src.core.config import settings
from src.core.exceptions import AppException
from src.core.exceptions.handlers import (
    app_exception_handler,
    http_exception_handler,
    transport_error_handler,
    validation_exception_handler,
)
from src.modules.dashboard.router import router as dashboard_router
from src.modules.invoices.drafts import DraftStore
from src.modules.invoices.router import router as invoices_router
from src.modules.students.router import router as students_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup: tests may install their own backend client beforehand
    owns_backend = getattr(app.state, "backend", None) is None
    if owns_backend:
        app.state.backend = AccountingBackendClient()
    logger.info("Accounting backend: %s", settings.backend_base_url)
    yield
    # Shutdown
    if owns_backend:
        await app.state.backend.aclose()
        app.state.backend = None


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(
        title="School Accounting Dashboard",
        description="Students, invoices and credit fulfillment on top of the accounting backend",
        version="0.1.0",
        debug=settings.debug,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        lifespan=lifespan,
    )
    app.state.backend = None
    app.state.drafts = DraftStore(ttl=timedelta(minutes=settings.draft_ttl_minutes))

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(httpx.HTTPError, transport_error_handler)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    # Routers
    app.include_router(students_router, prefix="/api/v1")
    app.include_router(invoices_router, prefix="/api/v1")
    app.include_router(dashboard_router, prefix="/api/v1")

    return app


app = create_app()
