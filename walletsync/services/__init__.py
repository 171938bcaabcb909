"""Service layer helpers"""

from .address import (
    is_supported_network,
    is_valid_address_for_network,
    normalize_address,
    normalize_network,
)

__all__ = [
    "is_supported_network",
    "is_valid_address_for_network",
    "normalize_address",
    "normalize_network",
]
