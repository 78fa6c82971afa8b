# storefront/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI
from sqlalchemy.engine import Engine

from storefront.core.config import Settings, get_settings
from storefront.database import create_db_and_tables, engine as default_engine
from storefront.services.shopping_session import SessionRegistry
from storefront.services.stock_lookup import StockLookup, build_stock_lookup

# Import models so SQLModel metadata is populated before create_all()
from storefront.models import storage as _storage_models  # noqa: F401
from storefront.models import shareable_cart as _shareable_cart_models  # noqa: F401

# Routers
from storefront.routers.cart import router as cart_router
from storefront.routers.favourites import router as favourites_router
from storefront.routers.shared_carts import router as shared_carts_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")

# --- CORS configuration ---
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]


def create_app(
    settings: Settings | None = None,
    engine: Engine | None = None,
    stock_lookup: StockLookup | None = None,
    start_stock_refresh: bool = True,
) -> FastAPI:
    """
    Build the API. Tests pass their own engine / stock lookup.
    """
    settings = settings or get_settings()
    engine = engine or default_engine
    stock_lookup = stock_lookup or build_stock_lookup(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        Startup:
          - Verify DB connectivity and create tables.

        Shutdown:
          - Stop stock refresh tasks and flush pending cart/favourites writes.
        """
        logger.info("🔄 Startup: Connecting to storage database...")
        try:
            create_db_and_tables(engine)
            logger.info("✅ Startup: DB connection OK, tables verified.")
        except Exception as e:
            logger.error(f"❌ Startup: DB connection FAILED: {e}")
            raise
        yield
        await app.state.registry.close_all()
        logger.info("👋 Shutdown: pending writes flushed.")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.registry = SessionRegistry(
        engine,
        stock_lookup,
        settings,
        start_refresh=start_stock_refresh,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Versioned API prefix, e.g. /api/v1
    app.include_router(cart_router, prefix=settings.API_V1_STR)
    app.include_router(favourites_router, prefix=settings.API_V1_STR)
    app.include_router(shared_carts_router, prefix=settings.API_V1_STR)

    @app.get("/")
    def root():
        """Health check endpoint."""
        return {"status": "ok", "service": "best-brightness-storefront"}

    return app


app = create_app()
