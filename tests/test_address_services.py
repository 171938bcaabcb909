from walletsync.services.address import (
    is_supported_network,
    is_valid_address_for_network,
    normalize_address,
    normalize_network,
)


def test_normalize_network_defaults_to_ethereum():
    assert normalize_network(None) == "ethereum"
    assert normalize_network(" Ethereum ") == "ethereum"


def test_normalize_network_aliases():
    assert normalize_network("eth") == "ethereum"
    assert normalize_network("SOL") == "solana"
    assert normalize_network("Sui") == "sui"
    assert normalize_network("avalanche") == "avalanche"


def test_supported_network_uses_allow_list():
    supported = {"ethereum", "solana"}
    assert is_supported_network("ethereum", supported) is True
    assert is_supported_network("sui", supported) is False


def test_address_validation_evm():
    address = "0x1234567890abcdef1234567890ABCDEF12345678"
    assert is_valid_address_for_network(address, "ethereum") is True
    assert is_valid_address_for_network(address[:-1], "ethereum") is False


def test_address_validation_solana():
    solana_address = "So11111111111111111111111111111111111111112"
    assert is_valid_address_for_network(solana_address, "solana") is True
    assert is_valid_address_for_network("O0lNotBase58", "solana") is False


def test_address_validation_sui():
    sui_address = "0x2ccd4a37d0ac0ed8fb45a9ec7fa5cd6d10bd7d06bc6e2e31aa6a2d19f7aa0e4f"
    assert is_valid_address_for_network(sui_address, "sui") is True
    assert is_valid_address_for_network("0x2", "sui") is True
    assert is_valid_address_for_network("0xzz", "sui") is False


def test_unknown_network_rejects_every_address():
    assert is_valid_address_for_network("0x1234567890abcdef1234567890abcdef12345678", "base") is False


def test_normalize_address_lowercases_hex_only():
    assert normalize_address(" 0xABCDEF ", "sui") == "0x" + "0" * 58 + "abcdef"
    assert normalize_address("0x1234567890ABCDEF1234567890abcdef12345678") == (
        "0x1234567890abcdef1234567890abcdef12345678"
    )
    assert normalize_address("So11111111111111111111111111111111111111112") == (
        "So11111111111111111111111111111111111111112"
    )


def test_sui_short_form_is_padded_to_full_length():
    full = "0x" + "0" * 63 + "5"

    assert normalize_address("0x5", "sui") == full
    assert normalize_address(full, "sui") == full
    # without a network, non-EVM hex lengths are treated as Sui
    assert normalize_address("0x5") == full


def test_evm_addresses_are_never_padded():
    address = "0x1234567890abcdef1234567890abcdef12345678"

    assert normalize_address(address, "ethereum") == address
    assert normalize_address("0x5", "ethereum") == "0x5"
    assert normalize_address("0x", "sui") == "0x"
