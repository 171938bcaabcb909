"""
Structured logging configuration using structlog.

JSON lines in production, console rendering at DEBUG. Every log line passes
through an address scrubber so a plaintext wallet address never reaches the
output; wallet ids (fingerprints) and networks are bound as context instead.
"""

import logging
import re
import sys
from typing import Any, Optional

import structlog

from .config import settings

REDACTED = "<address>"

# 0x-hex addresses (EVM and Sui) and base58 runs long enough to be a Solana key.
# Wallet fingerprints are 32 lowercase hex chars with no prefix; the uppercase
# requirement keeps them out of the base58 pattern.
_ADDRESS_PATTERNS = (
    re.compile(r"\b0x[0-9a-fA-F]{40,64}\b"),
    re.compile(r"\b(?=[1-9A-HJ-NP-Za-km-z]*[A-HJ-NP-Z])[1-9A-HJ-NP-Za-km-z]{32,44}\b"),
)


def scrub_address_text(text: str) -> str:
    for pattern in _ADDRESS_PATTERNS:
        text = pattern.sub(REDACTED, text)
    return text


def redact_addresses(_logger: Any, _method: str, event_dict: dict) -> dict:
    """structlog processor replacing anything shaped like a wallet address."""
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = scrub_address_text(value)
    return event_dict


def setup_logging(log_level: Optional[str] = None) -> None:
    """Configure structlog for structured JSON logging.

    Args:
        log_level: Override log level (default: from settings.log_level)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    is_dev = level == logging.DEBUG

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if is_dev:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # walletsync modules log through stdlib; pre-chain gives them the same
    # context and timestamps as native structlog loggers
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            redact_addresses,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in ("uvicorn.access", "httpcore", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)
