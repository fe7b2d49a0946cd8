"""Process-local store with version-vector and sibling semantics.

Used for dry runs and tests. Every write bumps the key's opaque vclock. A
write that carries the current vclock (or targets a missing key) replaces
the stored value set; a write with a stale or absent vclock against an
existing key is kept alongside the current values as a sibling, the way
an ``allow_mult`` bucket behaves.
"""

from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass, field
from typing import Any

from genesis.store.base import ObjectNotFoundError, SaveMeta, StoredObject


@dataclass
class _Entry:
    values: list[dict[str, Any]] = field(default_factory=list)
    links: list[list[dict[str, str]]] = field(default_factory=list)
    version: int = 0

    @property
    def vclock(self) -> str:
        return f"vc-{self.version}"


class InMemoryStore:
    """In-memory implementation of the StoreClient protocol.

    Attributes:
        collections: Properties applied per collection.
        calls: Log of ``(operation, collection, key)`` tuples in call order.
    """

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str, str | None]] = []
        self._entries: dict[tuple[str, str], _Entry] = {}
        self._lock = asyncio.Lock()

    async def save_collection(self, name: str, properties: dict[str, Any]) -> None:
        async with self._lock:
            self.calls.append(("save_collection", name, None))
            self.collections.setdefault(name, {}).update(copy.deepcopy(properties))

    async def get(self, collection: str, key: str) -> StoredObject:
        async with self._lock:
            self.calls.append(("get", collection, key))
            entry = self._entries.get((collection, key))
            if entry is None:
                raise ObjectNotFoundError(collection, key)
            values = copy.deepcopy(entry.values)
            payload = values[0] if len(values) == 1 else None
            return StoredObject(payload=payload, vclock=entry.vclock, siblings=values)

    async def save(
        self, collection: str, key: str, payload: dict[str, Any], meta: SaveMeta
    ) -> None:
        async with self._lock:
            self.calls.append(("save", collection, key))
            links = [link.to_dict() for link in meta.links]
            entry = self._entries.get((collection, key))
            if entry is None:
                entry = self._entries[(collection, key)] = _Entry()
            if entry.version == 0 or meta.vclock == entry.vclock:
                entry.values = [copy.deepcopy(payload)]
                entry.links = [links]
            else:
                entry.values.append(copy.deepcopy(payload))
                entry.links.append(links)
            entry.version += 1

    # -- Inspection ------------------------------------------------------------

    def values(self, collection: str, key: str) -> list[dict[str, Any]]:
        """Return every stored sibling for a key (empty if absent)."""
        entry = self._entries.get((collection, key))
        return copy.deepcopy(entry.values) if entry else []

    def links(self, collection: str, key: str) -> list[list[dict[str, str]]]:
        """Return the link lists stored alongside each sibling."""
        entry = self._entries.get((collection, key))
        return copy.deepcopy(entry.links) if entry else []

    def keys(self) -> list[tuple[str, str]]:
        return list(self._entries)

    def seed(self, collection: str, key: str, payload: dict[str, Any]) -> str:
        """Pre-populate a key outside the call log and return its vclock."""
        entry = _Entry(values=[copy.deepcopy(payload)], links=[[]], version=1)
        self._entries[(collection, key)] = entry
        return entry.vclock

    async def aclose(self) -> None:
        """Nothing to release; present for parity with network stores."""
