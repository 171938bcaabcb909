import pytest

from walletsync.core.cipher import AddressCipher
from walletsync.core.store import InMemorySnapshotBackend, WalletStore
from walletsync.core.sync import WalletSyncCore

from fakes import FakeAdapter, FakeOracle


@pytest.fixture(scope="session")
def cipher() -> AddressCipher:
    return AddressCipher("test-secret", salt="test-salt", iterations=1000)


@pytest.fixture
def backend() -> InMemorySnapshotBackend:
    return InMemorySnapshotBackend()


@pytest.fixture
def make_core(cipher, backend):
    def _make(adapters=None, oracle=None, **kwargs) -> WalletSyncCore:
        adapters = adapters or [FakeAdapter("ethereum")]
        return WalletSyncCore(
            store=WalletStore(backend),
            cipher=cipher,
            adapters={a.network: a for a in adapters},
            oracle=oracle or FakeOracle(),
            max_wallets=kwargs.pop("max_wallets", 10),
            supported_networks=kwargs.pop("supported_networks", {"ethereum", "solana", "sui"}),
            chain_timeout_seconds=kwargs.pop("chain_timeout_seconds", 5),
            oracle_timeout_seconds=kwargs.pop("oracle_timeout_seconds", 5),
            max_concurrent_refreshes=kwargs.pop("max_concurrent_refreshes", 4),
            **kwargs,
        )

    return _make
