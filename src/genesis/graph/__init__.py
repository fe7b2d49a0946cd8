"""Graph package - declarative graph model and builder.

Definition scripts populate a :class:`Graph` through a
:class:`BuilderSession`; the loader then replays the finished graph into a
store.
"""

from genesis.graph.builder import (
    BuilderSession,
    ByHandle,
    ByPair,
    CollectionHandle,
    LinkTarget,
    RecordHandle,
    resolve_link_target,
)
from genesis.graph.errors import (
    DefinitionError,
    DuplicatePayloadError,
    InvalidLinkTargetError,
    InvalidPayloadError,
    NoActiveObjectError,
    NoActiveTargetError,
    SessionClosedError,
)
from genesis.graph.model import Collection, Graph, Link, Record, Variant

__all__ = [
    "BuilderSession",
    "ByHandle",
    "ByPair",
    "Collection",
    "CollectionHandle",
    "DefinitionError",
    "DuplicatePayloadError",
    "Graph",
    "InvalidLinkTargetError",
    "InvalidPayloadError",
    "Link",
    "LinkTarget",
    "NoActiveObjectError",
    "NoActiveTargetError",
    "Record",
    "RecordHandle",
    "SessionClosedError",
    "Variant",
    "resolve_link_target",
]
