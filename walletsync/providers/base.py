from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, List, Optional

import httpx

from ..core.errors import (
    FetchTimeoutError,
    InvalidAddressError,
    NetworkUnavailableError,
    RpcError,
)
from ..types import ChainBalance, PriceQuote

# JSON-RPC 2.0 "invalid params"; chains answer with it for malformed addresses
INVALID_PARAMS = -32602
INVALID_REQUEST = -32600
SERVER_ERROR = -32000


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: float = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass

    async def aclose(self) -> None:
        return None


class ChainAdapter(Provider):
    """Fetches native and token balances for one network."""

    network: str

    @abstractmethod
    async def fetch_balances(self, address: str) -> List[ChainBalance]:
        """Return balances in human-readable units for a plaintext address."""
        pass


class PriceOracle(Provider):
    """Provider for USD token prices"""

    @abstractmethod
    async def get_prices(self, symbols: Iterable[str]) -> Dict[str, PriceQuote]:
        """Best-effort quotes; symbols without a price are absent from the result."""
        pass


def format_units(raw: int, decimals: int) -> str:
    """Render an on-chain integer amount as a plain decimal string.

    Always keeps at least one fractional digit: ``format_units(2 * 10**18, 18) == "2.0"``.
    """

    scaled = Decimal(f"{int(raw)}e-{int(decimals)}")
    text = format(scaled, "f")
    if "." not in text:
        return f"{text}.0"
    text = text.rstrip("0")
    if text.endswith("."):
        text += "0"
    return text


class JsonRpcAdapter(ChainAdapter):
    """ChainAdapter speaking JSON-RPC 2.0 over HTTP."""

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        if timeout_s is not None:
            self.timeout_s = timeout_s
        self._transport = transport
        self._ids = itertools.count(1)

    async def ready(self) -> bool:
        return bool(self.rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "RPC endpoint not configured"}
        # Avoid hitting the endpoint on every health check – report configured state.
        return {"status": "configured", "network": self.network}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport)

    async def _rpc_call(
        self,
        method: str,
        params: List[Any],
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }
        if client is None:
            async with self._client() as owned:
                return await self._post(owned, method, payload)
        return await self._post(client, method, payload)

    async def _post(self, client: httpx.AsyncClient, method: str, payload: Dict[str, Any]) -> Any:
        try:
            response = await client.post(
                self.rpc_url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            raise FetchTimeoutError(f"{method} timed out after {self.timeout_s}s", network=self.network) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 429 or status >= 500:
                raise NetworkUnavailableError(
                    f"{self.name} returned HTTP {status} for {method}",
                    network=self.network,
                ) from exc
            raise RpcError(status, exc.response.reason_phrase or "HTTP error", network=self.network) from exc
        except httpx.TransportError as exc:
            raise NetworkUnavailableError(f"{self.name} unreachable: {exc}", network=self.network) from exc
        except ValueError as exc:
            raise RpcError(-32700, "response was not valid JSON", network=self.network) from exc

        if not isinstance(data, dict):
            raise RpcError(INVALID_REQUEST, "unexpected response shape", network=self.network)

        error = data.get("error")
        if error:
            code = _error_code(error)
            message = str(error.get("message", error)) if isinstance(error, dict) else str(error)
            if code == INVALID_PARAMS:
                raise InvalidAddressError(self.network, f"{self.network} rejected address: {message}")
            raise RpcError(code, message, network=self.network)

        return data.get("result")

    @contextmanager
    def _parsing(self, method: str) -> Iterator[None]:
        """Report a result that does not have the documented shape as an RPC error."""
        try:
            yield
        except (AttributeError, KeyError, TypeError, ValueError, ArithmeticError) as exc:
            raise RpcError(
                INVALID_REQUEST,
                f"unexpected {method} response shape: {exc}",
                network=self.network,
            ) from exc


def _error_code(error: Any) -> int:
    if not isinstance(error, dict):
        return SERVER_ERROR
    try:
        return int(error.get("code", SERVER_ERROR))
    except (TypeError, ValueError):
        return SERVER_ERROR
