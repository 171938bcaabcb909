from .base import ChainAdapter, JsonRpcAdapter, PriceOracle, Provider, format_units
from .coingecko import CoingeckoProvider
from .ethereum import EthereumAdapter
from .solana import SolanaAdapter
from .sui import SuiAdapter

__all__ = [
    "ChainAdapter",
    "CoingeckoProvider",
    "EthereumAdapter",
    "JsonRpcAdapter",
    "PriceOracle",
    "Provider",
    "SolanaAdapter",
    "SuiAdapter",
    "format_units",
    "default_adapters",
]


def default_adapters() -> dict[str, ChainAdapter]:
    """One adapter per network, configured from settings."""
    adapters: list[ChainAdapter] = [EthereumAdapter(), SolanaAdapter(), SuiAdapter()]
    return {adapter.network: adapter for adapter in adapters}
