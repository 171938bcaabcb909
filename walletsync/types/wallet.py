from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


class ChainBalance(BaseModel):
    """One asset balance as reported by a chain adapter, already in human units."""

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(description="Token symbol (e.g. ETH, USDC)")
    display_name: str = Field(description="Full token name")
    balance: str = Field(description="Human readable decimal balance")


class PriceQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    price_usd: Decimal = Field(description="Price per token in USD")
    change_24h_percent: Decimal = Field(default=Decimal("0"), description="24h price change in percent")


class TokenBalance(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str = Field(description="Token symbol (e.g. ETH, USDC)")
    display_name: str = Field(description="Full token name")
    balance: str = Field(description="Human readable decimal balance")
    price_usd: Decimal = Field(default=Decimal("0"), description="Price per token in USD")
    change_24h_percent: Decimal = Field(default=Decimal("0"), description="24h price change in percent")
    value_usd: Decimal = Field(default=Decimal("0"), description="balance * price_usd")

    @classmethod
    def priced(cls, balance: ChainBalance, quote: PriceQuote) -> "TokenBalance":
        return cls(
            symbol=balance.symbol,
            display_name=balance.display_name,
            balance=balance.balance,
            price_usd=quote.price_usd,
            change_24h_percent=quote.change_24h_percent,
            value_usd=Decimal(balance.balance) * quote.price_usd,
        )


class WalletRecord(BaseModel):
    """A tracked wallet.

    Records are immutable; every change produces a whole new validated record
    through ``evolve`` so ``tokens`` and ``total_value_usd`` never drift apart.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Keyed fingerprint of the plaintext address")
    address: str = Field(description="Encrypted wallet address")
    network: str = Field(description="Blockchain network")
    display_name: Optional[str] = Field(default=None, description="User assigned label")
    tokens: Tuple[TokenBalance, ...] = Field(default=(), description="Last fetched balances")
    total_value_usd: Decimal = Field(default=Decimal("0"), description="Sum of token values in USD")
    last_updated: Optional[datetime] = Field(default=None, description="Last successful refresh")
    last_attempt_at: Optional[datetime] = Field(default=None, description="Last refresh attempt")
    last_error: Optional[str] = Field(default=None, description="Error from the last failed refresh")
    created_at: datetime

    @model_validator(mode="after")
    def _total_matches_tokens(self) -> "WalletRecord":
        expected = sum((t.value_usd for t in self.tokens), Decimal("0"))
        if expected != self.total_value_usd:
            raise ValueError(
                f"total_value_usd {self.total_value_usd} does not match token sum {expected}"
            )
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_stale(self) -> bool:
        return self.last_updated is None or self.last_error is not None

    def evolve(self, **changes) -> "WalletRecord":
        """Return a validated copy with ``changes`` applied."""
        return type(self).model_validate({**dict(self), **changes})

    def price_lookup(self) -> Dict[str, TokenBalance]:
        return {t.symbol: t for t in self.tokens}


class WalletView(BaseModel):
    """Wallet as returned to clients (no ciphertext)."""

    id: str
    network: str
    display_name: Optional[str] = None
    tokens: Tuple[TokenBalance, ...] = ()
    total_value_usd: Decimal
    last_updated: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    last_error: Optional[str] = None
    is_stale: bool
    created_at: datetime

    @classmethod
    def from_record(cls, record: WalletRecord) -> "WalletView":
        return cls(**record.model_dump(exclude={"address"}))


class PortfolioSummary(BaseModel):
    total_value_usd: Decimal = Field(description="Value across all tracked wallets")
    by_network: Dict[str, Decimal] = Field(default_factory=dict, description="Value per network")
    wallet_count: int
    stale_count: int
