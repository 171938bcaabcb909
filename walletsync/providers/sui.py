"""Sui balance adapter over the fullnode JSON-RPC API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..config import settings
from ..core.errors import InvalidAddressError
from ..services.address import is_valid_sui_address
from ..types import ChainBalance
from .base import JsonRpcAdapter, format_units

logger = logging.getLogger(__name__)

SUI_COIN_TYPE = "0x2::sui::SUI"
MIST_DECIMALS = 9


class SuiAdapter(JsonRpcAdapter):
    """Fetch every coin balance owned by a Sui address."""

    name = "sui-rpc"
    network = "sui"
    timeout_s = 10

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        *,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            rpc_url or settings.sui_rpc_url,
            timeout_s=timeout_s if timeout_s is not None else settings.chain_timeout_seconds,
            transport=transport,
        )
        self._coin_metadata: Dict[str, Optional[Dict[str, Any]]] = {
            SUI_COIN_TYPE: {"symbol": "SUI", "name": "Sui", "decimals": MIST_DECIMALS},
        }

    async def fetch_balances(self, address: str) -> List[ChainBalance]:
        if not is_valid_sui_address(address):
            raise InvalidAddressError(self.network)

        balances: List[ChainBalance] = []
        async with self._client() as client:
            entries = await self._rpc_call("suix_getAllBalances", [address], client=client) or []
            held: List[Tuple[str, int]] = []
            with self._parsing("suix_getAllBalances"):
                for entry in entries:
                    coin_type = entry.get("coinType")
                    if not coin_type:
                        continue
                    held.append((str(coin_type), int(entry.get("totalBalance", 0))))

            for coin_type, raw in held:
                metadata = await self._metadata_for(client, coin_type)
                if metadata is None:
                    continue
                balances.append(
                    ChainBalance(
                        symbol=metadata["symbol"],
                        display_name=metadata["name"],
                        balance=format_units(raw, metadata["decimals"]),
                    )
                )

        # Keep SUI first so the native asset leads the token list.
        balances.sort(key=lambda b: b.symbol != "SUI")
        return balances

    async def _metadata_for(self, client: httpx.AsyncClient, coin_type: str) -> Optional[Dict[str, Any]]:
        if coin_type in self._coin_metadata:
            return self._coin_metadata[coin_type]

        info = await self._rpc_call("suix_getCoinMetadata", [coin_type], client=client)
        metadata: Optional[Dict[str, Any]] = None
        if isinstance(info, dict) and info.get("symbol"):
            try:
                decimals = int(info.get("decimals"))
            except (TypeError, ValueError):
                decimals = -1
            if decimals >= 0:
                metadata = {
                    "symbol": str(info["symbol"]).upper(),
                    "name": str(info.get("name") or info["symbol"]),
                    "decimals": decimals,
                }
        if metadata is None:
            # Without usable decimals the balance cannot be scaled.
            logger.debug("No usable coin metadata for %s", coin_type)
        self._coin_metadata[coin_type] = metadata
        return metadata
