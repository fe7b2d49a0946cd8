"""Store clients the loader can write into."""

from genesis.store.base import (
    ObjectNotFoundError,
    SaveMeta,
    StoreClient,
    StoreConnectionError,
    StoredObject,
    StoreError,
)
from genesis.store.memory import InMemoryStore
from genesis.store.riak import RiakHttpStore, parse_store_address

__all__ = [
    "InMemoryStore",
    "ObjectNotFoundError",
    "RiakHttpStore",
    "SaveMeta",
    "StoreClient",
    "StoreConnectionError",
    "StoreError",
    "StoredObject",
    "parse_store_address",
]
