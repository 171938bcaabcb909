"""
Wallet Sync Core

Composes the cipher, store, chain adapters and price oracle behind the
operations the dashboard calls: add, remove, rename, get, list and refresh.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

import structlog

from ..config import settings
from ..providers.base import ChainAdapter, PriceOracle
from ..services.address import (
    is_supported_network,
    is_valid_address_for_network,
    normalize_address,
    normalize_network,
)
from ..types import ChainBalance, PortfolioSummary, PriceQuote, TokenBalance, WalletRecord
from .cipher import AddressCipher
from .errors import (
    ChainError,
    DecryptionError,
    ErrorCategory,
    FetchTimeoutError,
    InvalidAddressError,
    OracleUnavailableError,
    UnsupportedNetworkError,
    WalletCorruptedError,
    WalletNotFoundError,
    categorize,
)
from .store import WalletStore

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(slots=True)
class RefreshFailure:
    wallet_id: str
    network: str
    category: ErrorCategory
    message: str


@dataclass(slots=True)
class RefreshReport:
    refreshed: List[str] = field(default_factory=list)
    failures: List[RefreshFailure] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> dict[str, Any]:
        return {
            "refreshed": len(self.refreshed),
            "failed": len(self.failures),
            "failures": [
                {
                    "wallet_id": f.wallet_id,
                    "network": f.network,
                    "category": f.category.value,
                    "message": f.message,
                }
                for f in self.failures
            ],
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WalletSyncCore:
    """Orchestrates wallet registration and balance refresh."""

    def __init__(
        self,
        *,
        store: WalletStore,
        cipher: AddressCipher,
        adapters: Mapping[str, ChainAdapter],
        oracle: PriceOracle,
        max_wallets: Optional[int] = None,
        supported_networks: Optional[Iterable[str]] = None,
        chain_timeout_seconds: Optional[float] = None,
        oracle_timeout_seconds: Optional[float] = None,
        max_concurrent_refreshes: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.cipher = cipher
        self.adapters: Dict[str, ChainAdapter] = dict(adapters)
        self.oracle = oracle
        self.max_wallets = max_wallets or settings.max_wallets
        self.supported_networks: Set[str] = set(supported_networks or settings.supported_networks)
        self.chain_timeout = chain_timeout_seconds or settings.chain_timeout_seconds
        self.oracle_timeout = oracle_timeout_seconds or settings.oracle_timeout_seconds
        self.max_concurrent_refreshes = max_concurrent_refreshes or settings.max_concurrent_refreshes
        self._clock = clock
        self._wallet_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._refresh_all_lock = asyncio.Lock()

    # ---------------------------
    # Registration
    # ---------------------------
    async def add_wallet(
        self,
        address: str,
        network: str,
        display_name: Optional[str] = None,
    ) -> WalletRecord:
        """Track a new wallet and populate it with an initial refresh.

        If the initial refresh fails the wallet stays tracked (empty tokens,
        ``last_updated`` unset) and the refresh error is raised.
        """
        canonical = normalize_network(network)
        if not is_supported_network(canonical, self.supported_networks) or canonical not in self.adapters:
            raise UnsupportedNetworkError(network)

        plain = normalize_address(address, canonical)
        if not is_valid_address_for_network(plain, canonical):
            raise InvalidAddressError(canonical)

        record = WalletRecord(
            id=self.cipher.fingerprint(plain),
            address=self.cipher.encrypt(plain),
            network=canonical,
            display_name=_clean_name(display_name),
            created_at=self._clock(),
        )
        await self.store.insert(record, self.max_wallets)
        logger.info("Wallet %s added on %s", record.id, canonical)

        return await self.refresh_one(plain)

    async def remove_wallet(self, address: str) -> bool:
        wallet_id = self._wallet_id(address)
        removed = await self.store.delete(wallet_id)
        if removed:
            self._wallet_locks.pop(wallet_id, None)
            logger.info("Wallet %s removed", wallet_id)
        return removed

    async def rename_wallet(self, address: str, name: Optional[str]) -> WalletRecord:
        wallet_id = self._wallet_id(address)
        label = _clean_name(name)
        updated = await self.store.replace(wallet_id, lambda current: current.evolve(display_name=label))
        if updated is None:
            raise WalletNotFoundError()
        return updated

    # ---------------------------
    # Reads
    # ---------------------------
    def get_wallet(self, address: str) -> Optional[WalletRecord]:
        return self.store.get(self._wallet_id(address))

    def list_wallets(self) -> List[WalletRecord]:
        return self.store.list()

    def portfolio_summary(self) -> PortfolioSummary:
        wallets = self.store.list()
        by_network: Dict[str, Decimal] = {}
        for wallet in wallets:
            by_network[wallet.network] = by_network.get(wallet.network, ZERO) + wallet.total_value_usd
        return PortfolioSummary(
            total_value_usd=sum((w.total_value_usd for w in wallets), ZERO),
            by_network=by_network,
            wallet_count=len(wallets),
            stale_count=sum(1 for w in wallets if w.is_stale),
        )

    # ---------------------------
    # Refresh
    # ---------------------------
    async def refresh_one(self, address: str) -> WalletRecord:
        return await self._refresh_wallet(self._wallet_id(address))

    async def refresh_all(self) -> RefreshReport:
        """Refresh every tracked wallet; failures are isolated and reported."""
        async with self._refresh_all_lock:
            report = RefreshReport()
            semaphore = asyncio.Semaphore(self.max_concurrent_refreshes)

            async def _guarded(record: WalletRecord) -> None:
                async with semaphore:
                    try:
                        await self._refresh_wallet(record.id)
                    except WalletNotFoundError:
                        # Removed while the cycle was running; nothing to report.
                        return
                    except Exception as exc:  # noqa: BLE001
                        report.failures.append(
                            RefreshFailure(
                                wallet_id=record.id,
                                network=record.network,
                                category=categorize(exc),
                                message=str(exc),
                            )
                        )
                        if not isinstance(exc, (ChainError, WalletCorruptedError)):
                            logger.error("Unexpected refresh failure for %s", record.id, exc_info=True)
                        return
                    report.refreshed.append(record.id)

            await asyncio.gather(*(_guarded(r) for r in self.store.list()))
            report.completed_at = self._clock()
            return report

    async def _refresh_wallet(self, wallet_id: str) -> WalletRecord:
        # Locks exist only for tracked wallets; unknown ids never allocate one.
        if self.store.get(wallet_id) is None:
            raise WalletNotFoundError()
        async with self._wallet_locks[wallet_id]:
            record = self.store.get(wallet_id)
            if record is None:
                raise WalletNotFoundError()

            with structlog.contextvars.bound_contextvars(wallet_id=wallet_id, network=record.network):
                try:
                    plain = self.cipher.decrypt(record.address)
                except DecryptionError as exc:
                    logger.error("Wallet %s address cannot be decrypted: %s", wallet_id, exc)
                    raise WalletCorruptedError(wallet_id) from exc

                adapter = self.adapters.get(record.network)
                if adapter is None:
                    raise UnsupportedNetworkError(record.network)

                try:
                    balances = await asyncio.wait_for(adapter.fetch_balances(plain), timeout=self.chain_timeout)
                except asyncio.TimeoutError as exc:
                    error: ChainError = FetchTimeoutError(
                        f"{record.network} balance fetch timed out after {self.chain_timeout}s",
                        network=record.network,
                    )
                    await self._record_failure(wallet_id, error, record.created_at)
                    raise error from exc
                except (ChainError, InvalidAddressError) as exc:
                    await self._record_failure(wallet_id, exc, record.created_at)
                    raise

                quotes = await self._fetch_quotes({b.symbol.upper() for b in balances})

                def _commit(current: WalletRecord) -> WalletRecord:
                    # Price fallback reads the record as it is at commit time.
                    tokens = _build_tokens(balances, quotes, current)
                    now = self._clock()
                    last_updated = max(current.last_updated, now) if current.last_updated else now
                    return current.evolve(
                        tokens=tokens,
                        total_value_usd=sum((t.value_usd for t in tokens), ZERO),
                        last_updated=last_updated,
                        last_attempt_at=now,
                        last_error=None,
                    )

                updated = await self.store.replace(
                    wallet_id,
                    _commit,
                    expected_created_at=record.created_at,
                )
                if updated is None:
                    logger.info("Wallet %s removed during refresh; discarding result", wallet_id)
                    raise WalletNotFoundError("Wallet was removed during refresh")
                logger.debug("Wallet %s refreshed with %d tokens", wallet_id, len(updated.tokens))
                return updated

    async def _fetch_quotes(self, symbols: Set[str]) -> Dict[str, PriceQuote]:
        if not symbols:
            return {}
        try:
            return await asyncio.wait_for(self.oracle.get_prices(symbols), timeout=self.oracle_timeout)
        except asyncio.TimeoutError:
            logger.warning("Price oracle timed out after %ss; keeping previous prices", self.oracle_timeout)
        except OracleUnavailableError as exc:
            logger.warning("Price oracle unavailable; keeping previous prices: %s", exc)
        except Exception as exc:  # noqa: BLE001
            logger.error("Price oracle failed unexpectedly; keeping previous prices: %s", exc, exc_info=True)
        return {}

    async def _record_failure(self, wallet_id: str, exc: Exception, created_at: datetime) -> None:
        """Flag the failed attempt; tokens, value and last_updated stay as they were."""
        logger.warning("Refresh of %s failed: %s", wallet_id, exc)
        now = self._clock()
        await self.store.replace(
            wallet_id,
            lambda current: current.evolve(last_error=str(exc), last_attempt_at=now),
            expected_created_at=created_at,
        )

    # ---------------------------
    # Lifecycle
    # ---------------------------
    async def aclose(self) -> None:
        for adapter in self.adapters.values():
            await adapter.aclose()
        await self.oracle.aclose()

    def _wallet_id(self, address: str) -> str:
        return self.cipher.fingerprint(normalize_address(address))


def _build_tokens(
    balances: Iterable[ChainBalance],
    quotes: Mapping[str, PriceQuote],
    previous: WalletRecord,
) -> tuple[TokenBalance, ...]:
    """Price each balance; a missing quote keeps the previous price, else zero."""
    prior = previous.price_lookup()
    tokens: List[TokenBalance] = []
    for balance in balances:
        quote = quotes.get(balance.symbol.upper())
        if quote is None:
            old = prior.get(balance.symbol)
            quote = PriceQuote(
                price_usd=old.price_usd if old else ZERO,
                change_24h_percent=old.change_24h_percent if old else ZERO,
            )
        tokens.append(TokenBalance.priced(balance, quote))
    return tuple(tokens)


def _clean_name(name: Optional[str]) -> Optional[str]:
    if name is None:
        return None
    stripped = name.strip()
    return stripped or None
