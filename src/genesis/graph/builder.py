"""Declaration API exposed to definition scripts.

A :class:`BuilderSession` owns one graph and the "active" cursor that
``link()`` and ``sibling()`` act on. The cursor lives on the session, never
in module state, so independent scripts can be built side by side::

    session = BuilderSession()
    users = session.collection("users")
    users("alice", {"name": "Alice"})
    session.link(("users", "bob"), "friend")
    users("bob", {"name": "Bob"})
    graph = session.finish()

Link targets are normalised once, at this boundary, into either
:class:`ByHandle` or :class:`ByPair`, and from there into a canonical
:class:`~genesis.graph.model.Link`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeAlias

from genesis.graph.errors import (
    DuplicatePayloadError,
    InvalidLinkTargetError,
    InvalidPayloadError,
    NoActiveObjectError,
    NoActiveTargetError,
    SessionClosedError,
)
from genesis.graph.model import Collection, Graph, Link, Record, Variant

Payload: TypeAlias = dict[str, Any]
Setup: TypeAlias = Callable[[Payload], Any]


class RecordHandle:
    """Script-facing handle to a declared record."""

    __slots__ = ("_record",)

    def __init__(self, record: Record) -> None:
        self._record = record

    @property
    def collection(self) -> str:
        return self._record.collection

    @property
    def key(self) -> str:
        return self._record.key

    @property
    def record(self) -> Record:
        return self._record

    @property
    def payload(self) -> Payload:
        """Payload of the most recently declared variant."""
        return self._record.latest.payload

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RecordHandle):
            return NotImplemented
        return self._record is other._record

    def __hash__(self) -> int:
        return hash((self.collection, self.key))

    def __repr__(self) -> str:
        return f"RecordHandle({self.collection!r}, {self.key!r}, variants={len(self._record.variants)})"


@dataclass(frozen=True)
class ByHandle:
    """Link target given as an already declared record."""

    handle: RecordHandle | Record

    @property
    def collection(self) -> str:
        return self.handle.collection

    @property
    def key(self) -> str:
        return self.handle.key


@dataclass(frozen=True)
class ByPair:
    """Link target given as an explicit ``(collection, key)`` pair."""

    collection: str
    key: str


LinkTarget: TypeAlias = ByHandle | ByPair


def _coerce_target(target: Any) -> tuple[LinkTarget, str | None]:
    """Normalise a raw link argument, returning any tag carried by a mapping."""
    if isinstance(target, (ByHandle, ByPair)):
        return target, None
    if isinstance(target, (RecordHandle, Record)):
        return ByHandle(target), None
    if isinstance(target, Mapping):
        collection = target.get("bucket", target.get("collection"))
        key = target.get("key")
        if isinstance(collection, str) and isinstance(key, str):
            return ByPair(collection, key), target.get("tag")
        raise InvalidLinkTargetError(target)
    if isinstance(target, (tuple, list)) and len(target) == 2:
        collection, key = target
        if isinstance(collection, str) and isinstance(key, str):
            return ByPair(collection, key), None
    raise InvalidLinkTargetError(target)


def resolve_link_target(target: Any) -> LinkTarget:
    """Turn any accepted link argument into a :data:`LinkTarget`.

    Accepted forms are record handles, ``Record`` objects, ``ByHandle`` /
    ``ByPair`` values, ``(collection, key)`` tuples or lists, and mappings
    with ``bucket`` (or ``collection``) and ``key`` entries.

    Raises:
        InvalidLinkTargetError: If *target* names no record.
    """
    resolved, _ = _coerce_target(target)
    return resolved


def _split_payload(payload: Any, setup: Any) -> tuple[Payload | None, Setup | None]:
    """Accept ``(payload, setup)`` or ``(setup,)`` and reject anything else."""
    if callable(payload) and setup is None:
        return None, payload
    if payload is not None and not isinstance(payload, Mapping):
        raise InvalidPayloadError(payload)
    if setup is not None and not callable(setup):
        raise InvalidPayloadError(setup)
    return payload, setup


class CollectionHandle:
    """Callable that declares records inside one collection."""

    def __init__(self, session: BuilderSession, collection: Collection) -> None:
        self._session = session
        self._collection = collection

    @property
    def name(self) -> str:
        return self._collection.name

    @property
    def properties(self) -> dict[str, Any]:
        return self._collection.properties

    def __call__(
        self,
        key: str,
        payload: Payload | Setup | None = None,
        setup: Setup | None = None,
    ) -> RecordHandle:
        """Declare a record, or re-open an existing one.

        A callable in the *payload* position is taken as *setup*, so
        ``users("alice", fill_alice)`` works without a payload.

        Raises:
            DuplicatePayloadError: If the record exists and *payload* is given.
            InvalidPayloadError: If *payload* is not a mapping or *setup* is
                not callable.
        """
        payload, setup = _split_payload(payload, setup)
        return self._session._declare(self._collection, key, payload, setup)

    def __repr__(self) -> str:
        return f"CollectionHandle({self.name!r}, records={len(self._collection.records)})"


class BuilderSession:
    """One graph under construction plus its active-variant cursor."""

    def __init__(self) -> None:
        self._graph = Graph()
        self._handles: dict[str, CollectionHandle] = {}
        self._active_record: Record | None = None
        self._active_variant: Variant | None = None
        self._finished = False

    @property
    def graph(self) -> Graph:
        return self._graph

    @property
    def finished(self) -> bool:
        return self._finished

    def _check_open(self) -> None:
        if self._finished:
            raise SessionClosedError()

    def collection(
        self, name: str, properties: Mapping[str, Any] | None = None
    ) -> CollectionHandle:
        """Return the handle for *name*, creating the collection on first use.

        Properties are fixed by the first call; later calls return the same
        handle and ignore whatever *properties* they pass.
        """
        self._check_open()
        handle = self._handles.get(name)
        if handle is None:
            collection = Collection(name=name, properties=dict(properties or {}))
            self._graph.collections[name] = collection
            handle = CollectionHandle(self, collection)
            self._handles[name] = handle
        return handle

    def _declare(
        self,
        collection: Collection,
        key: str,
        payload: Payload | None,
        setup: Setup | None,
    ) -> RecordHandle:
        self._check_open()
        record = collection.records.get(key)
        if record is None:
            record = Record(collection=collection.name, key=key)
            record.variants.append(Variant(payload=dict(payload or {})))
            collection.records[key] = record
        elif payload is not None:
            raise DuplicatePayloadError(collection.name, key)

        self._activate(record, record.latest, setup)
        return RecordHandle(record)

    def sibling(
        self, payload: Payload | Setup | None = None, setup: Setup | None = None
    ) -> RecordHandle:
        """Append a new variant to the active record and make it active.

        Raises:
            NoActiveObjectError: If no record has been declared yet.
            InvalidPayloadError: If *payload* is not a mapping or *setup* is
                not callable.
        """
        self._check_open()
        payload, setup = _split_payload(payload, setup)
        record = self._active_record
        if record is None:
            raise NoActiveObjectError()

        variant = Variant(payload=dict(payload or {}))
        record.variants.append(variant)
        self._activate(record, variant, setup)
        return RecordHandle(record)

    def _activate(self, record: Record, variant: Variant, setup: Setup | None) -> None:
        self._active_record = record
        self._active_variant = variant
        if setup is not None:
            setup(variant.payload)

    def link(self, target: Any, tag: str | None = None) -> Link:
        """Append a link from the active variant to *target*.

        Links keep declaration order and duplicates are preserved. A tag
        carried by a mapping target is used unless *tag* is given.

        Raises:
            NoActiveTargetError: If no record or variant is active.
            InvalidLinkTargetError: If *target* names no record.
        """
        self._check_open()
        variant = self._active_variant
        if variant is None:
            raise NoActiveTargetError()

        resolved, carried_tag = _coerce_target(target)
        link = Link(
            collection=resolved.collection,
            key=resolved.key,
            tag=(tag if tag is not None else carried_tag) or None,
        )
        variant.links.append(link)
        return link

    def namespace(self) -> dict[str, Any]:
        """Primitives injected into a definition script's globals."""
        return {
            "collection": self.collection,
            "bucket": self.collection,
            "sibling": self.sibling,
            "link": self.link,
            "ByHandle": ByHandle,
            "ByPair": ByPair,
        }

    def finish(self) -> Graph:
        """Close the session and return the completed graph."""
        self._finished = True
        self._active_record = None
        self._active_variant = None
        return self._graph
