import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import health, wallets
from .config import settings
from .core.cipher import AddressCipher
from .core.scheduler import SyncScheduler
from .core.store import JsonFileSnapshotBackend, WalletStore
from .core.sync import WalletSyncCore
from .logging_config import setup_logging
from .providers import CoingeckoProvider, default_adapters

logger = logging.getLogger(__name__)


def build_core() -> WalletSyncCore:
    """Wire the production core from settings."""
    return WalletSyncCore(
        store=WalletStore(JsonFileSnapshotBackend(settings.snapshot_path)),
        cipher=AddressCipher.from_settings(),
        adapters=default_adapters(),
        oracle=CoingeckoProvider(),
    )


def create_app(
    core: Optional[WalletSyncCore] = None,
    *,
    start_scheduler: Optional[bool] = None,
) -> FastAPI:
    run_scheduler = settings.scheduler_enabled if start_scheduler is None else start_scheduler

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        sync_core = core or build_core()
        await sync_core.store.load()
        scheduler = SyncScheduler(sync_core)
        app.state.core = sync_core
        app.state.scheduler = scheduler
        if run_scheduler:
            await scheduler.start()
        logger.info("Wallet sync started with %d tracked wallets", len(sync_core.store))
        try:
            yield
        finally:
            await scheduler.stop()
            await sync_core.aclose()
            logger.info("Wallet sync stopped")

    app = FastAPI(
        title="Wallet Sync API",
        description="Multi-chain wallet balance tracker",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(wallets.router, tags=["Wallets"])

    @app.get("/")
    async def root():
        """Root endpoint with basic info"""
        return {
            "name": "Wallet Sync API",
            "version": "0.1.0",
            "docs": "/docs",
            "health": "/healthz",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "walletsync.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
