from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..core.sync import WalletSyncCore
from .deps import get_core

router = APIRouter()

_OK_STATUSES = {"healthy", "configured", "unavailable"}


@router.get("/healthz")
async def health_check(core: WalletSyncCore = Depends(get_core)) -> Dict[str, Any]:
    """Health check endpoint that verifies provider status"""

    provider_status: Dict[str, Dict[str, Any]] = {}
    for network, adapter in sorted(core.adapters.items()):
        provider_status[network] = await adapter.health_check()
    provider_status[core.oracle.name] = await core.oracle.health_check()

    all_healthy = all(status["status"] in _OK_STATUSES for status in provider_status.values())

    available_providers = sum(
        1 for status in provider_status.values()
        if status["status"] in ("healthy", "configured")
    )

    return {
        "status": "healthy" if all_healthy and available_providers > 0 else "degraded",
        "providers": provider_status,
        "available_providers": available_providers,
        "total_providers": len(provider_status),
        "wallets": len(core.list_wallets()),
    }
