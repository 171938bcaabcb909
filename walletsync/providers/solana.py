"""Solana balance adapter over the public JSON-RPC API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..config import settings
from ..core.errors import InvalidAddressError, RpcError
from ..services.address import is_valid_solana_address
from ..types import ChainBalance
from .base import JsonRpcAdapter, format_units

logger = logging.getLogger(__name__)

LAMPORTS_DECIMALS = 9
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

# SPL mints we can name and price. Other mints are skipped.
KNOWN_MINTS: Dict[str, Tuple[str, str]] = {
    "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v": ("USDC", "USD Coin"),
    "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB": ("USDT", "Tether USD"),
    "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN": ("JUP", "Jupiter"),
    "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263": ("BONK", "Bonk"),
}


class SolanaAdapter(JsonRpcAdapter):
    """Fetch SOL and known SPL token balances."""

    name = "solana-rpc"
    network = "solana"
    timeout_s = 10

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        *,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            rpc_url or settings.solana_rpc_url,
            timeout_s=timeout_s if timeout_s is not None else settings.chain_timeout_seconds,
            transport=transport,
        )

    async def fetch_balances(self, address: str) -> List[ChainBalance]:
        if not is_valid_solana_address(address):
            raise InvalidAddressError(self.network)

        async with self._client() as client:
            native = await self._rpc_call("getBalance", [address], client=client)
            lamports = _context_value(native)
            if not isinstance(lamports, int):
                raise RpcError(-32600, "getBalance returned no lamport value", network=self.network)

            accounts = await self._rpc_call(
                "getTokenAccountsByOwner",
                [address, {"programId": TOKEN_PROGRAM_ID}, {"encoding": "jsonParsed"}],
                client=client,
            )

        balances = [
            ChainBalance(
                symbol="SOL",
                display_name="Solana",
                balance=format_units(lamports, LAMPORTS_DECIMALS),
            )
        ]
        with self._parsing("getTokenAccountsByOwner"):
            balances.extend(self._parse_token_accounts(_context_value(accounts) or []))
        return balances

    def _parse_token_accounts(self, accounts: List[Dict[str, Any]]) -> List[ChainBalance]:
        # A wallet may hold several token accounts for one mint; amounts are summed.
        totals: Dict[str, Tuple[int, int]] = {}
        for entry in accounts:
            info = (
                ((entry.get("account") or {}).get("data") or {}).get("parsed") or {}
            ).get("info") or {}
            mint = info.get("mint")
            amount_info = info.get("tokenAmount") or {}
            if mint not in KNOWN_MINTS:
                if mint:
                    logger.debug("Skipping unknown SPL mint %s", mint)
                continue
            try:
                raw = int(amount_info.get("amount", 0))
                decimals = int(amount_info.get("decimals", 0))
            except (TypeError, ValueError):
                continue
            previous, _ = totals.get(mint, (0, decimals))
            totals[mint] = (previous + raw, decimals)

        balances: List[ChainBalance] = []
        for mint, (raw, decimals) in totals.items():
            if raw <= 0:
                continue
            symbol, display_name = KNOWN_MINTS[mint]
            balances.append(
                ChainBalance(
                    symbol=symbol,
                    display_name=display_name,
                    balance=format_units(raw, decimals),
                )
            )
        return balances


def _context_value(result: Any) -> Any:
    """Solana wraps most results as ``{"context": ..., "value": ...}``."""
    if isinstance(result, dict) and "value" in result:
        return result["value"]
    return result
