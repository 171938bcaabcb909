"""Multi-chain wallet balance tracking with encrypted address storage."""

__version__ = "0.1.0"
