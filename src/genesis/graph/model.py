"""In-memory graph of collections, records, variants and links.

Ownership is strictly hierarchical: a Graph owns Collections, which own
Records, which own Variants, which own Links. Links refer to their target
by ``(collection, key)`` only, so cycles between records never become
ownership cycles.

The builder is the only writer. Once a session is finished the graph is
handed to the loader and treated as read-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(frozen=True)
class Link:
    """Typed reference from a variant to another record."""

    collection: str
    key: str
    tag: str | None = None

    def to_dict(self) -> dict[str, str]:
        """Render the wire shape used in store metadata."""
        data = {"bucket": self.collection, "key": self.key}
        if self.tag:
            data["tag"] = self.tag
        return data


@dataclass
class Variant:
    """One causal version ("sibling") of a record's content."""

    payload: dict[str, Any] = field(default_factory=dict)
    links: list[Link] = field(default_factory=list)


@dataclass
class Record:
    """Keyed entity inside a collection.

    A record always holds at least one variant; the first one is created
    together with the record.
    """

    collection: str
    key: str
    variants: list[Variant] = field(default_factory=list)

    @property
    def latest(self) -> Variant:
        """The most recently declared variant."""
        return self.variants[-1]


@dataclass
class Collection:
    """Named group of records with optional set-once configuration."""

    name: str
    properties: dict[str, Any] = field(default_factory=dict)
    records: dict[str, Record] = field(default_factory=dict)


@dataclass
class Graph:
    """All collections declared by one definition script.

    Collections and records enumerate in declaration order, which is the
    order the loader replays them in.
    """

    collections: dict[str, Collection] = field(default_factory=dict)

    def iter_records(self) -> Iterator[Record]:
        for collection in self.collections.values():
            yield from collection.records.values()

    @property
    def record_count(self) -> int:
        return sum(len(c.records) for c in self.collections.values())

    @property
    def variant_count(self) -> int:
        return sum(len(r.variants) for r in self.iter_records())

    @property
    def link_count(self) -> int:
        return sum(len(v.links) for r in self.iter_records() for v in r.variants)
