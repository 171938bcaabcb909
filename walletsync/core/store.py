"""
Wallet Store

Single-writer in-memory map of tracked wallets with a persisted snapshot.
Mutations are serialized and replace whole records; reads are lock-free
over an immutable view swapped in after every mutation.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from pydantic import ValidationError

from ..types import WalletRecord
from .errors import CapacityExceededError, WalletExistsError

SNAPSHOT_VERSION = 1


class SnapshotBackend(Protocol):
    """Persistence collaborator for the wallet snapshot."""

    def load_snapshot(self) -> List[Dict[str, Any]]: ...

    def save_snapshot(self, records: List[Dict[str, Any]]) -> None: ...


class InMemorySnapshotBackend:
    """Keeps the serialized snapshot in memory (tests, ephemeral runs)."""

    def __init__(self, records: Optional[List[Dict[str, Any]]] = None) -> None:
        self.records: List[Dict[str, Any]] = list(records or [])
        self.saves = 0

    def load_snapshot(self) -> List[Dict[str, Any]]:
        return json.loads(json.dumps(self.records))

    def save_snapshot(self, records: List[Dict[str, Any]]) -> None:
        self.records = json.loads(json.dumps(records))
        self.saves += 1


class JsonFileSnapshotBackend:
    """Stores the snapshot as one JSON document, replaced atomically on save."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load_snapshot(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict) or payload.get("version") != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported wallet snapshot format in {self.path}")
        wallets = payload.get("wallets") or []
        if not isinstance(wallets, list):
            raise ValueError(f"Corrupt wallet snapshot in {self.path}")
        return wallets

    def save_snapshot(self, records: List[Dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps({"version": SNAPSHOT_VERSION, "wallets": records}, indent=2)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".wallets-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class WalletStore:
    """Owns every tracked WalletRecord; the only place records are replaced."""

    def __init__(
        self,
        backend: SnapshotBackend,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._backend = backend
        self.logger = logger or logging.getLogger(__name__)
        self._records: Mapping[str, WalletRecord] = MappingProxyType({})
        self._write_lock = asyncio.Lock()

    # ---------------------------
    # Reads
    # ---------------------------
    def get(self, wallet_id: str) -> Optional[WalletRecord]:
        return self._records.get(wallet_id)

    def list(self) -> List[WalletRecord]:
        return sorted(self._records.values(), key=lambda r: (r.created_at, r.id))

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, wallet_id: object) -> bool:
        return wallet_id in self._records

    # ---------------------------
    # Mutations
    # ---------------------------
    async def load(self) -> int:
        """Replace in-memory state with the persisted snapshot."""
        raw = await asyncio.to_thread(self._backend.load_snapshot)
        loaded: Dict[str, WalletRecord] = {}
        for item in raw:
            try:
                record = WalletRecord.model_validate(item)
            except ValidationError as exc:
                self.logger.warning("Skipping invalid wallet record in snapshot: %s", exc)
                continue
            loaded[record.id] = record
        async with self._write_lock:
            self._records = MappingProxyType(loaded)
        self.logger.info("Loaded %d wallets from snapshot", len(loaded))
        return len(loaded)

    async def upsert(self, record: WalletRecord) -> None:
        async with self._write_lock:
            await self._commit({**self._records, record.id: record})

    async def insert(self, record: WalletRecord, max_wallets: int) -> None:
        """Add a new record, enforcing uniqueness and capacity atomically."""
        async with self._write_lock:
            if record.id in self._records:
                raise WalletExistsError(record.id)
            if len(self._records) >= max_wallets:
                raise CapacityExceededError(max_wallets)
            await self._commit({**self._records, record.id: record})

    async def replace(
        self,
        wallet_id: str,
        build: Callable[[WalletRecord], WalletRecord],
        *,
        expected_created_at: Optional[datetime] = None,
    ) -> Optional[WalletRecord]:
        """Compare-and-replace: rebuild the current record, or do nothing if it is gone.

        With ``expected_created_at`` the replacement is also skipped when the
        wallet was removed and tracked again in the meantime.
        """
        async with self._write_lock:
            current = self._records.get(wallet_id)
            if current is None:
                return None
            if expected_created_at is not None and current.created_at != expected_created_at:
                return None
            updated = build(current)
            if updated.id != wallet_id:
                raise ValueError("a replacement record must keep its id")
            await self._commit({**self._records, wallet_id: updated})
            return updated

    async def delete(self, wallet_id: str) -> bool:
        async with self._write_lock:
            if wallet_id not in self._records:
                return False
            remaining = {k: v for k, v in self._records.items() if k != wallet_id}
            await self._commit(remaining)
            return True

    async def _commit(self, records: Dict[str, WalletRecord]) -> None:
        # Persist first: memory only moves forward once the snapshot is durable.
        serialized = [
            r.model_dump(mode="json", exclude={"is_stale"})
            for r in sorted(records.values(), key=lambda r: (r.created_at, r.id))
        ]
        await asyncio.to_thread(self._backend.save_snapshot, serialized)
        self._records = MappingProxyType(records)
