from pathlib import Path
from typing import Annotated, Any, Set

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Wallet tracking limits
    max_wallets: int = Field(default=10, ge=1, description="Maximum number of tracked wallets")
    supported_networks: Annotated[Set[str], NoDecode] = Field(
        default_factory=lambda: {"ethereum", "solana", "sui"},
        description="Networks a wallet may be registered on",
    )

    # Refresh Scheduling
    refresh_interval_ms: int = Field(
        default=30_000,
        ge=1_000,
        description="Period between background refresh cycles",
    )
    scheduler_enabled: bool = Field(
        default=True,
        description="Start the background refresh scheduler alongside FastAPI",
    )
    max_concurrent_refreshes: int = Field(
        default=4,
        ge=1,
        description="Maximum wallets refreshed in parallel during a refresh cycle",
    )

    # Timeouts
    chain_timeout_seconds: float = Field(default=10.0, gt=0, description="Chain RPC call timeout")
    oracle_timeout_seconds: float = Field(default=10.0, gt=0, description="Price oracle call timeout")

    # Address encryption at rest
    address_secret: str = Field(
        default="",
        description="Secret used to derive the address encryption and fingerprint keys",
        validation_alias=AliasChoices("address_secret", "WALLETSYNC_SECRET"),
    )
    address_kdf_salt: str = Field(
        default="walletsync-address-salt",
        description="Salt for the PBKDF2 key derivation",
    )
    address_kdf_iterations: int = Field(
        default=200_000,
        ge=1,
        description="PBKDF2 iteration count",
    )

    # Persistence
    snapshot_path: Path = Field(
        default=BASE_DIR / "data" / "wallets.json",
        description="Location of the persisted wallet snapshot",
    )

    # Ethereum
    ethereum_rpc_url: str = Field(
        default="https://ethereum-rpc.publicnode.com",
        description="Ethereum JSON-RPC endpoint used when no Alchemy key is configured",
    )
    alchemy_api_key: str = Field(default="", description="Alchemy API key (enables ERC-20 balances)")

    # Solana
    solana_rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com",
        description="Solana JSON-RPC endpoint",
    )

    # Sui
    sui_rpc_url: str = Field(
        default="https://fullnode.mainnet.sui.io:443",
        description="Sui JSON-RPC endpoint",
    )

    # Price oracle
    coingecko_api_key: str = Field(default="", description="Coingecko API key")
    coingecko_base_url: str = Field(
        default="https://api.coingecko.com/api/v3",
        description="Coingecko API base URL",
    )
    price_cache_ttl_seconds: int = Field(default=60, ge=1, description="Price quote cache TTL in seconds")

    @field_validator("supported_networks", mode="before")
    @classmethod
    def _split_networks(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {part.strip().lower() for part in value.split(",") if part.strip()}
        return value

    @property
    def refresh_interval_seconds(self) -> float:
        return self.refresh_interval_ms / 1000


# Global settings instance
settings = Settings()
