from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..core.errors import ChainError, ErrorCategory, InvalidAddressError, WalletSyncError
from ..core.scheduler import SyncScheduler
from ..core.sync import WalletSyncCore
from ..types import PortfolioSummary, WalletView
from .deps import get_core, get_scheduler

router = APIRouter()

_STATUS_BY_CATEGORY = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.CAPACITY: 409,
    ErrorCategory.CONFLICT: 409,
    ErrorCategory.CORRUPTED: 422,
    ErrorCategory.NETWORK: 502,
    ErrorCategory.RPC: 502,
    ErrorCategory.TIMEOUT: 502,
    ErrorCategory.ORACLE: 502,
}


class AddWalletRequest(BaseModel):
    address: str = Field(description="Plaintext wallet address")
    network: str = Field(default="ethereum", description="Blockchain network")
    display_name: Optional[str] = Field(default=None, description="Optional label")


class RenameWalletRequest(BaseModel):
    display_name: Optional[str] = Field(default=None, description="New label; empty clears it")


class RemoveWalletResponse(BaseModel):
    removed: bool


def _error_body(exc: WalletSyncError) -> Dict[str, Any]:
    return {
        "category": exc.category.value,
        "message": exc.message,
        "recoverable": exc.recoverable,
    }


def _http_error(exc: WalletSyncError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_BY_CATEGORY.get(exc.category, 500),
        detail=_error_body(exc),
    )


@router.get("/wallets", response_model=List[WalletView])
async def list_wallets(core: WalletSyncCore = Depends(get_core)):
    return [WalletView.from_record(r) for r in core.list_wallets()]


@router.post("/wallets", response_model=WalletView, status_code=201)
async def add_wallet(req: AddWalletRequest, core: WalletSyncCore = Depends(get_core)):
    try:
        record = await core.add_wallet(req.address, req.network, req.display_name)
    except (ChainError, InvalidAddressError) as exc:
        # Still tracked means only the first refresh failed; the scheduler retries it.
        added = core.get_wallet(req.address)
        if added is None:
            raise _http_error(exc)
        return JSONResponse(
            status_code=202,
            content=jsonable_encoder(
                {"wallet": WalletView.from_record(added), "error": _error_body(exc)}
            ),
        )
    except WalletSyncError as exc:
        raise _http_error(exc)
    return WalletView.from_record(record)


@router.post("/wallets/refresh")
async def refresh_all_wallets(core: WalletSyncCore = Depends(get_core)) -> Dict[str, Any]:
    report = await core.refresh_all()
    return report.summary()


@router.get("/wallets/{address}", response_model=WalletView)
async def get_wallet(address: str, core: WalletSyncCore = Depends(get_core)):
    record = core.get_wallet(address)
    if record is None:
        raise HTTPException(status_code=404, detail="Wallet not found")
    return WalletView.from_record(record)


@router.patch("/wallets/{address}", response_model=WalletView)
async def rename_wallet(
    address: str,
    req: RenameWalletRequest,
    core: WalletSyncCore = Depends(get_core),
):
    try:
        record = await core.rename_wallet(address, req.display_name)
    except WalletSyncError as exc:
        raise _http_error(exc)
    return WalletView.from_record(record)


@router.delete("/wallets/{address}", response_model=RemoveWalletResponse)
async def remove_wallet(address: str, core: WalletSyncCore = Depends(get_core)):
    return RemoveWalletResponse(removed=await core.remove_wallet(address))


@router.post("/wallets/{address}/refresh", response_model=WalletView)
async def refresh_wallet(address: str, core: WalletSyncCore = Depends(get_core)):
    try:
        record = await core.refresh_one(address)
    except WalletSyncError as exc:
        raise _http_error(exc)
    return WalletView.from_record(record)


@router.get("/portfolio/summary", response_model=PortfolioSummary)
async def portfolio_summary(core: WalletSyncCore = Depends(get_core)):
    return core.portfolio_summary()


@router.get("/scheduler")
async def scheduler_status(scheduler: SyncScheduler = Depends(get_scheduler)) -> Dict[str, Any]:
    return scheduler.status()
