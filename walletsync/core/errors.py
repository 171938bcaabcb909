"""
Error Classification

Defines the error taxonomy for wallet synchronization.
Structural errors are surfaced to the caller and never retried; chain and
oracle errors are transient and leave the last known wallet state intact.
"""

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """Categories of errors for reporting and retry decisions."""

    VALIDATION = "validation"     # Bad input (network, address format)
    CAPACITY = "capacity"         # Wallet limit reached
    CONFLICT = "conflict"         # Wallet already tracked
    NOT_FOUND = "not_found"       # Unknown wallet
    CORRUPTED = "corrupted"       # Stored ciphertext unreadable
    NETWORK = "network"           # Chain endpoint unreachable
    RPC = "rpc"                   # Chain endpoint answered with an error
    TIMEOUT = "timeout"           # Chain call exceeded its deadline
    ORACLE = "oracle"             # Price oracle unavailable
    UNKNOWN = "unknown"


class WalletSyncError(Exception):
    """Base class for every error raised by the sync core."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Structural errors
class UnsupportedNetworkError(WalletSyncError):
    """Network is not in the configured allow-list."""

    category = ErrorCategory.VALIDATION

    def __init__(self, network: str):
        super().__init__(f"Unsupported network '{network}'")
        self.network = network


class InvalidAddressError(WalletSyncError):
    """Address is not valid for the wallet's network."""

    category = ErrorCategory.VALIDATION

    def __init__(self, network: str, message: Optional[str] = None):
        super().__init__(message or f"Invalid wallet address format for {network}")
        self.network = network


class CapacityExceededError(WalletSyncError):
    """Tracking another wallet would exceed the configured maximum."""

    category = ErrorCategory.CAPACITY

    def __init__(self, max_wallets: int):
        super().__init__(f"Maximum number of wallets reached ({max_wallets})")
        self.max_wallets = max_wallets


class WalletExistsError(WalletSyncError):
    """The address is already tracked."""

    category = ErrorCategory.CONFLICT

    def __init__(self, wallet_id: str):
        super().__init__("Wallet is already tracked")
        self.wallet_id = wallet_id


class WalletNotFoundError(WalletSyncError):
    category = ErrorCategory.NOT_FOUND

    def __init__(self, message: str = "Wallet not found"):
        super().__init__(message)


class WalletCorruptedError(WalletSyncError):
    """The stored address ciphertext could not be decrypted."""

    category = ErrorCategory.CORRUPTED

    def __init__(self, wallet_id: str):
        super().__init__("Stored wallet address is unreadable")
        self.wallet_id = wallet_id


class DecryptionError(Exception):
    """Ciphertext is malformed, truncated or has been tampered with."""


# Transient chain errors
class ChainError(WalletSyncError):
    """Base class for per-chain balance fetch failures."""

    recoverable = True

    def __init__(self, message: str, network: Optional[str] = None):
        super().__init__(message)
        self.network = network


class NetworkUnavailableError(ChainError):
    category = ErrorCategory.NETWORK


class RpcError(ChainError):
    """The chain endpoint returned an error payload or status."""

    category = ErrorCategory.RPC

    def __init__(self, code: int, message: str, network: Optional[str] = None):
        super().__init__(f"RPC error {code}: {message}", network=network)
        self.code = code
        self.rpc_message = message


class FetchTimeoutError(ChainError):
    category = ErrorCategory.TIMEOUT


class OracleUnavailableError(WalletSyncError):
    """Price oracle failed entirely; non-fatal for a refresh."""

    category = ErrorCategory.ORACLE
    recoverable = True


def categorize(exc: BaseException) -> ErrorCategory:
    if isinstance(exc, WalletSyncError):
        return exc.category
    return ErrorCategory.UNKNOWN
