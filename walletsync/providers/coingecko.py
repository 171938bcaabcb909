import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Optional

import httpx

from ..cache import TTLCache
from ..config import settings
from ..core.errors import OracleUnavailableError
from ..types import PriceQuote
from .base import PriceOracle

logger = logging.getLogger(__name__)

SYMBOL_TO_COINGECKO_ID: Dict[str, str] = {
    "ETH": "ethereum",
    "BTC": "bitcoin",
    "USDT": "tether",
    "USDC": "usd-coin",
    "BNB": "binancecoin",
    "MATIC": "matic-network",
    "SOL": "solana",
    "AVAX": "avalanche-2",
    "DOGE": "dogecoin",
    "XRP": "ripple",
    "ADA": "cardano",
    "SUI": "sui",
    "JUP": "jupiter-exchange-solana",
    "BONK": "bonk",
    "DAI": "dai",
    "WETH": "weth",
    "WBTC": "wrapped-bitcoin",
    "LINK": "chainlink",
    "UNI": "uniswap",
}


class CoingeckoProvider(PriceOracle):
    """Coingecko API provider for token prices"""

    name = "coingecko"
    timeout_s = 10

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        cache_ttl_seconds: Optional[int] = None,
        symbol_ids: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = settings.coingecko_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.coingecko_base_url).rstrip("/")
        self.timeout_s = timeout_s if timeout_s is not None else settings.oracle_timeout_seconds
        self.symbol_ids = dict(symbol_ids or SYMBOL_TO_COINGECKO_ID)
        self._cache = TTLCache(default_ttl=cache_ttl_seconds or settings.price_cache_ttl_seconds)
        self._last_known: Dict[str, PriceQuote] = {}
        self._transport = transport

    def _build_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {"accept": "application/json"}
        if self.api_key:
            headers["X-CG-Demo-API-Key"] = self.api_key
        return headers

    async def ready(self) -> bool:
        return bool(self.base_url)  # API key is optional for basic tier

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "Provider disabled"}

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(
                    f"{self.base_url}/ping",
                    headers=self._build_headers(),
                    timeout=self.timeout_s,
                )
                response.raise_for_status()
                return {"status": "healthy", "latency_ms": int(response.elapsed.total_seconds() * 1000)}
        except httpx.HTTPError as e:
            return {"status": "error", "reason": str(e)}

    async def get_prices(self, symbols: Iterable[str]) -> Dict[str, PriceQuote]:
        wanted = {s.upper() for s in symbols}
        if not wanted:
            return {}

        quotes: Dict[str, PriceQuote] = await self._cache.get_many(wanted)
        missing = {s for s in wanted - quotes.keys() if s in self.symbol_ids}
        if not missing:
            return quotes

        try:
            fresh = await self._fetch_quotes(missing)
        except (httpx.HTTPError, ValueError) as exc:
            fallback = {s: self._last_known[s] for s in missing if s in self._last_known}
            if not quotes and not fallback:
                raise OracleUnavailableError(f"Coingecko request failed: {exc}") from exc
            logger.warning(
                "Coingecko request failed, serving %d last known quotes: %s",
                len(fallback),
                exc,
            )
            quotes.update(fallback)
            return quotes

        await self._cache.set_many(fresh)
        self._last_known.update(fresh)
        quotes.update(fresh)
        return quotes

    async def _fetch_quotes(self, symbols: Iterable[str]) -> Dict[str, PriceQuote]:
        ids = {self.symbol_ids[s]: s for s in symbols}
        params = {
            "ids": ",".join(sorted(ids)),
            "vs_currencies": "usd",
            "include_market_cap": "false",
            "include_24hr_vol": "false",
            "include_24hr_change": "true",
        }

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.get(
                f"{self.base_url}/simple/price",
                headers=self._build_headers(),
                params=params,
                timeout=self.timeout_s,
            )
            response.raise_for_status()
            data = response.json()

        if not isinstance(data, dict):
            raise ValueError("unexpected Coingecko response shape")

        quotes: Dict[str, PriceQuote] = {}
        for coin_id, symbol in ids.items():
            entry = data.get(coin_id)
            if not isinstance(entry, dict):
                continue
            price = _to_decimal(entry.get("usd"))
            if price is None:
                continue
            change = _to_decimal(entry.get("usd_24h_change")) or Decimal("0")
            quotes[symbol] = PriceQuote(price_usd=price, change_24h_percent=change)
        return quotes


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None
