"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from genesis.store.base import ObjectNotFoundError, SaveMeta, StoredObject, StoreError


@dataclass
class SaveCall:
    """One recorded ``save`` call."""

    collection: str
    key: str
    payload: dict[str, Any]
    links: list[dict[str, str]]
    vclock: str | None


@dataclass
class RecordingStore:
    """Store double that records every call and can inject failures.

    Attributes:
        vclocks: Pre-existing keys and the vclock ``get`` should return.
        fail_get: Keys whose ``get`` raises a StoreError.
        fail_save: ``(collection, key, payload)`` matches whose save fails.
        fail_collections: Collections whose ``save_collection`` fails.
        delay: Seconds every call sleeps, to force interleaving.
    """

    vclocks: dict[tuple[str, str], str] = field(default_factory=dict)
    fail_get: set[tuple[str, str]] = field(default_factory=set)
    fail_save: list[tuple[str, str, dict[str, Any]]] = field(default_factory=list)
    fail_collections: set[str] = field(default_factory=set)
    delay: float = 0.0

    events: list[tuple[str, str, str | None]] = field(default_factory=list)
    saves: list[SaveCall] = field(default_factory=list)
    collections: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    in_flight: int = 0
    max_in_flight: int = 0
    overlapping_saves: int = 0
    _saving: set[tuple[str, str]] = field(default_factory=set)

    async def _enter(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(self.delay)

    async def save_collection(self, name: str, properties: dict[str, Any]) -> None:
        self.events.append(("save_collection", name, None))
        await self._enter()
        try:
            if name in self.fail_collections:
                raise StoreError(f"cannot configure {name}")
            self.collections.append((name, properties))
        finally:
            self.in_flight -= 1

    async def get(self, collection: str, key: str) -> StoredObject:
        self.events.append(("get", collection, key))
        await self._enter()
        try:
            if (collection, key) in self.fail_get:
                raise StoreError(f"read failed for {collection}/{key}", status=500)
            vclock = self.vclocks.get((collection, key))
            if vclock is None:
                raise ObjectNotFoundError(collection, key)
            return StoredObject(payload={}, vclock=vclock, siblings=[{}])
        finally:
            self.in_flight -= 1

    async def save(
        self, collection: str, key: str, payload: dict[str, Any], meta: SaveMeta
    ) -> None:
        self.events.append(("save", collection, key))
        if (collection, key) in self._saving:
            self.overlapping_saves += 1
        self._saving.add((collection, key))
        await self._enter()
        try:
            if (collection, key, payload) in self.fail_save:
                raise StoreError(f"write failed for {collection}/{key}", status=503)
            self.saves.append(
                SaveCall(
                    collection=collection,
                    key=key,
                    payload=dict(payload),
                    links=[link.to_dict() for link in meta.links],
                    vclock=meta.vclock,
                )
            )
        finally:
            self.in_flight -= 1
            self._saving.discard((collection, key))

    async def aclose(self) -> None:
        """Nothing to release."""

    def saves_for(self, collection: str, key: str) -> list[SaveCall]:
        return [s for s in self.saves if (s.collection, s.key) == (collection, key)]


@pytest.fixture
def store() -> RecordingStore:
    """Return an empty recording store double."""
    return RecordingStore()


@pytest.fixture
def write_script(tmp_path: Path):
    """Write a definition script into tmp_path and return its path."""

    def _write(content: str, name: str = "genesis.py") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write
