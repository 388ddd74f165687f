"""
==============================================================================
Product Verification Scanner - Application Entry Point
==============================================================================

    ┌──────────────┐   REST  /api/v1/...   ┌──────────────────────┐
    │   Operator   │ ────────────────────▶ │  Controllers         │
    │   browser    │                       │  (auth, products,    │
    │              │   WS    /ws/scan      │   scanners, history) │
    │              │ ◀───────────────────▶ │  ScanWebSocketHandler│
    └──────────────┘                       └──────────┬───────────┘
                                                      │
                                           ┌──────────▼───────────┐
                                           │ Services / SQLAlchemy│
                                           └──────────────────────┘

Usage:
------
    # Development
    uvicorn productscan.main:app --reload

    # Production
    uvicorn productscan.main:app --host 0.0.0.0 --port 8000

==============================================================================
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from productscan import __version__
from productscan.config import Settings, get_settings
from productscan.core.exceptions import register_exception_handlers
from productscan.db import DatabaseManager, init_db
from productscan.api.router import api_router
from productscan.services.product_service import ProductService
from productscan.websockets import scanner_router


# ============================================================================
# LOGGING SETUP
# ============================================================================

def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )


settings = get_settings()
configure_logging(settings)

logger = logging.getLogger(__name__)


# ============================================================================
# APPLICATION FACTORY
# ============================================================================

class Application:
    """
    Builds the FastAPI app and owns its lifecycle.

    Tests pass initialize_database=False and provide their own engine
    through dependency overrides.
    """

    def __init__(self, initialize_database: bool = True):
        self._settings = get_settings()
        self._initialize_database = initialize_database
        self._app = self._create_app()

    def _create_app(self) -> FastAPI:
        app = FastAPI(
            title=self._settings.app_name,
            version=__version__,
            description="Product verification by barcode/QR scan or manual entry",
            lifespan=self._lifespan,
        )

        app.add_middleware(
            CORSMiddleware,
            allow_origins=self._settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        register_exception_handlers(app)

        app.include_router(api_router)
        app.include_router(scanner_router)

        @app.get("/")
        async def root():
            """Where to find the docs and the scan socket."""
            return {
                "name": self._settings.app_name,
                "version": __version__,
                "docs": app.docs_url,
                "websocket": "/ws/scan",
            }

        return app

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        logger.info("=" * 60)
        logger.info(f"🚀 Starting {self._settings.app_name} v{__version__}")

        if self._initialize_database:
            init_db()
            self._report_catalogue()

        logger.info(
            f"📷 Capture: {self._settings.capture_backend} backend, "
            f"{self._settings.capture_fps} fps, "
            f"{self._settings.detection_box_size}px box"
        )
        logger.info(f"📍 Listening on http://{self._settings.host}:{self._settings.port}")
        logger.info("=" * 60)

        yield

        logger.info("🛑 Shutting down...")
        if self._initialize_database:
            DatabaseManager().dispose()
        logger.info("✅ Shutdown complete")

    def _report_catalogue(self) -> None:
        with DatabaseManager().session_scope() as session:
            count = ProductService(session).count()

        if count:
            logger.info(f"✅ {count} products available for verification")
        else:
            logger.warning(f"⚠️ No products loaded; check {self._settings.products_path}")

    @property
    def app(self) -> FastAPI:
        return self._app


# ============================================================================
# APPLICATION INSTANCE
# ============================================================================

app = Application().app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "productscan.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info"
    )
