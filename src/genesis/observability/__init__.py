"""Observability module for genesis.

Provides structured logging for the builder, loader and store clients.
"""

from genesis.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
]
