import logging

from walletsync.logging_config import REDACTED, redact_addresses, scrub_address_text, setup_logging

from fakes import ETH_ADDRESS, SOL_ADDRESS, SUI_ADDRESS


def test_scrubs_every_address_shape():
    text = f"fetching {ETH_ADDRESS} / {SOL_ADDRESS} / {SUI_ADDRESS}"

    scrubbed = scrub_address_text(text)

    assert ETH_ADDRESS not in scrubbed
    assert SOL_ADDRESS not in scrubbed
    assert SUI_ADDRESS not in scrubbed
    assert scrubbed.count(REDACTED) == 3


def test_wallet_ids_are_left_readable(cipher):
    wallet_id = cipher.fingerprint(ETH_ADDRESS)
    message = f"Wallet {wallet_id} refreshed with 2 tokens"

    assert scrub_address_text(message) == message


def test_processor_only_touches_strings():
    event = redact_addresses(None, "info", {"event": f"bad {ETH_ADDRESS}", "count": 3})

    assert event == {"event": f"bad {REDACTED}", "count": 3}


def test_setup_logging_installs_single_handler():
    setup_logging("DEBUG")
    setup_logging("INFO")

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert root.level == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING
