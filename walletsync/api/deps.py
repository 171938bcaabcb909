from fastapi import HTTPException, Request

from ..core.scheduler import SyncScheduler
from ..core.sync import WalletSyncCore


def get_core(request: Request) -> WalletSyncCore:
    core = getattr(request.app.state, "core", None)
    if core is None:
        raise HTTPException(status_code=503, detail="Wallet sync core is not ready")
    return core


def get_scheduler(request: Request) -> SyncScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Sync scheduler is not ready")
    return scheduler
