"""Helpers for normalizing network identifiers and validating wallet addresses."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Optional

_BASE58_ALPHABET = set("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")
_HEX_ALPHABET = set("0123456789abcdefABCDEF")

_EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_EVM_HEX_LENGTH = 40
_SUI_HEX_LENGTH = 64

_NETWORK_ALIASES = {
    "eth": "ethereum",
    "ethereum": "ethereum",
    "mainnet": "ethereum",
    "sol": "solana",
    "solana": "solana",
    "sui": "sui",
}


def normalize_network(network: str | None) -> str:
    """Collapse user-provided network identifiers into canonical slugs."""

    if not network:
        return "ethereum"
    canonical = _NETWORK_ALIASES.get(network.lower().strip())
    return canonical or network.lower().strip()


def is_supported_network(network: str, supported: Iterable[str]) -> bool:
    return network in set(supported)


def is_evm_network(network: str) -> bool:
    return network == "ethereum"


@lru_cache(maxsize=128)
def is_valid_solana_address(address: str) -> bool:
    if not address:
        return False
    length = len(address)
    if length < 32 or length > 44:
        return False
    return all(ch in _BASE58_ALPHABET for ch in address)


def is_valid_sui_address(address: str) -> bool:
    if not address.startswith("0x"):
        return False
    hex_part = address[2:]
    if not hex_part or len(hex_part) > 64:
        return False
    return all(ch in _HEX_ALPHABET for ch in hex_part)


def is_valid_address_for_network(address: str, network: str) -> bool:
    if not address:
        return False
    if is_evm_network(network):
        return bool(_EVM_ADDRESS_RE.fullmatch(address))
    if network == "solana":
        return is_valid_solana_address(address)
    if network == "sui":
        return is_valid_sui_address(address)
    return False


def normalize_address(address: str, network: Optional[str] = None) -> str:
    """Canonical form used for fingerprinting.

    Hex addresses (EVM, Sui) are case-insensitive, so both are lowercased.
    Sui also accepts short forms (``0x5``), which are zero-padded to the full
    32 bytes. Without a network, a 40-digit hex address is taken as EVM and
    any other hex length as Sui. Base58 (Solana) is case-sensitive and kept
    as is.
    """

    cleaned = (address or "").strip()
    if cleaned[:2].lower() != "0x":
        return cleaned
    hex_part = cleaned[2:].lower()
    if network is None:
        network = "ethereum" if len(hex_part) == _EVM_HEX_LENGTH else "sui"
    if network == "sui" and 0 < len(hex_part) < _SUI_HEX_LENGTH:
        hex_part = hex_part.rjust(_SUI_HEX_LENGTH, "0")
    return "0x" + hex_part


__all__ = [
    "normalize_network",
    "is_supported_network",
    "is_evm_network",
    "is_valid_address_for_network",
    "is_valid_solana_address",
    "is_valid_sui_address",
    "normalize_address",
]
