"""Sync core: address cipher, wallet store, refresh orchestration and scheduler.

Import concrete classes from their modules (``walletsync.core.sync`` and
friends); providers depend on ``walletsync.core.errors`` so this package
stays free of eager imports.
"""
