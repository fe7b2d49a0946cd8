"""Bulk loader: replays a finished graph into a store."""

from genesis.loader.batching import run_bounded
from genesis.loader.loader import (
    DEFAULT_CONCURRENCY,
    LoadAbortedError,
    LoadFailure,
    LoadOptions,
    LoadReport,
    load,
)

__all__ = [
    "DEFAULT_CONCURRENCY",
    "LoadAbortedError",
    "LoadFailure",
    "LoadOptions",
    "LoadReport",
    "load",
    "run_bounded",
]
