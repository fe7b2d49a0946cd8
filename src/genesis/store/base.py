"""Store client protocol consumed by the loader.

The loader only needs three operations: configure a collection, read a
record's current causal metadata, and write one variant. Implementations
must be safe to call concurrently up to the loader's concurrency bound;
the loader does not serialise calls on their behalf.

Methods raise :class:`ObjectNotFoundError` for missing keys and
:class:`StoreError` (or a subclass) for every other failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from genesis.graph.model import Link


class StoreError(Exception):
    """Base exception for store client failures."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class StoreConnectionError(StoreError):
    """Raised when the store cannot be reached."""


class ObjectNotFoundError(StoreError):
    """Raised by ``get`` when the key does not exist."""

    def __init__(self, collection: str, key: str) -> None:
        self.collection = collection
        self.key = key
        super().__init__(f"{collection}/{key} not found", status=404)


@dataclass
class StoredObject:
    """Result of a read: current value(s) plus the opaque vclock."""

    payload: dict[str, Any] | None
    vclock: str | None = None
    siblings: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class SaveMeta:
    """Metadata sent along with one variant write."""

    links: tuple[Link, ...] = ()
    vclock: str | None = None


@runtime_checkable
class StoreClient(Protocol):
    """Async client for a version-vector key-value store."""

    async def save_collection(self, name: str, properties: dict[str, Any]) -> None:
        """Apply collection-level configuration."""
        ...

    async def get(self, collection: str, key: str) -> StoredObject:
        """Read a record. Raises ObjectNotFoundError when the key is absent."""
        ...

    async def save(
        self, collection: str, key: str, payload: dict[str, Any], meta: SaveMeta
    ) -> None:
        """Write one variant of a record under the given causal context."""
        ...
