from .wallet import (
    ChainBalance,
    PortfolioSummary,
    PriceQuote,
    TokenBalance,
    WalletRecord,
    WalletView,
)

__all__ = [
    "ChainBalance",
    "PortfolioSummary",
    "PriceQuote",
    "TokenBalance",
    "WalletRecord",
    "WalletView",
]
