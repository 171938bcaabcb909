import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..config import settings
from ..core.errors import InvalidAddressError
from ..services.address import is_valid_address_for_network
from ..types import ChainBalance
from .base import JsonRpcAdapter, format_units

logger = logging.getLogger(__name__)

ETH_DECIMALS = 18


class EthereumAdapter(JsonRpcAdapter):
    """Ethereum balances over JSON-RPC.

    Native ETH comes from ``eth_getBalance`` on any endpoint. When an Alchemy
    key is configured, ERC-20 balances are added through Alchemy's token API.
    """

    name = "ethereum-rpc"
    network = "ethereum"
    timeout_s = 10

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        *,
        alchemy_api_key: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.alchemy_api_key = settings.alchemy_api_key if alchemy_api_key is None else alchemy_api_key
        if self.alchemy_api_key:
            self.name = "alchemy"
            rpc_url = f"https://eth-mainnet.g.alchemy.com/v2/{self.alchemy_api_key}"
        super().__init__(
            rpc_url or settings.ethereum_rpc_url,
            timeout_s=timeout_s if timeout_s is not None else settings.chain_timeout_seconds,
            transport=transport,
        )
        self._metadata_cache: Dict[str, Dict[str, Any]] = {}

    @property
    def supports_tokens(self) -> bool:
        return bool(self.alchemy_api_key)

    async def fetch_balances(self, address: str) -> List[ChainBalance]:
        if not is_valid_address_for_network(address, self.network):
            raise InvalidAddressError(self.network)

        async with self._client() as client:
            balance_hex = await self._rpc_call("eth_getBalance", [address, "latest"], client=client)
            with self._parsing("eth_getBalance"):
                balances = [
                    ChainBalance(
                        symbol="ETH",
                        display_name="Ethereum",
                        balance=format_units(int(balance_hex or "0x0", 16), ETH_DECIMALS),
                    )
                ]
            if self.supports_tokens:
                balances.extend(await self._fetch_token_balances(client, address))
        return balances

    async def _fetch_token_balances(self, client: httpx.AsyncClient, address: str) -> List[ChainBalance]:
        """Get all non-zero ERC-20 token balances for address"""
        result = await self._rpc_call("alchemy_getTokenBalances", [address], client=client)

        held: List[Tuple[str, int]] = []
        with self._parsing("alchemy_getTokenBalances"):
            for token_data in (result or {}).get("tokenBalances", []):
                raw = int(token_data.get("tokenBalance") or "0x0", 16)
                if raw <= 0:
                    continue
                held.append((str(token_data.get("contractAddress", "")).lower(), raw))

        tokens: List[ChainBalance] = []
        for contract, raw in held:
            metadata = await self._token_metadata(client, contract)
            if metadata is None:
                continue
            with self._parsing("alchemy_getTokenMetadata"):
                tokens.append(
                    ChainBalance(
                        symbol=metadata["symbol"],
                        display_name=metadata["name"],
                        balance=format_units(raw, metadata["decimals"]),
                    )
                )
        return tokens

    async def _token_metadata(self, client: httpx.AsyncClient, contract: str) -> Optional[Dict[str, Any]]:
        cached = self._metadata_cache.get(contract)
        if cached is not None:
            return cached

        info = await self._rpc_call("alchemy_getTokenMetadata", [contract], client=client)
        if not isinstance(info, dict):
            info = {}
        symbol = info.get("symbol")
        decimals = info.get("decimals")
        if not isinstance(symbol, str) or not symbol.strip() or decimals is None:
            # Without a symbol or decimals the amount cannot be priced or scaled.
            logger.debug("Skipping token %s with incomplete metadata", contract)
            return None
        try:
            decimals = int(decimals)
        except (TypeError, ValueError):
            return None
        if decimals < 0:
            return None

        symbol = symbol.strip()
        metadata = {
            "symbol": symbol.upper(),
            "name": str(info.get("name") or symbol).strip(),
            "decimals": decimals,
        }
        self._metadata_cache[contract] = metadata
        return metadata
