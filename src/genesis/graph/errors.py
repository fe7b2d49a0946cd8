"""Errors raised while a definition script declares the graph.

All of them mean the definition script is malformed. They are fatal: the
run stops before anything is written to the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class DefinitionError(Exception):
    """Base class for malformed graph declarations."""


@dataclass
class DuplicatePayloadError(DefinitionError):
    """Raised when a payload is supplied for a record that already exists.

    Re-touching an existing record without a payload is allowed; giving it a
    second payload almost always means two records collide on a typo'd key.
    Use ``sibling()`` to declare an alternate version on purpose.

    Attributes:
        collection: Collection of the existing record.
        key: Key of the existing record.
    """

    collection: str
    key: str

    def __post_init__(self) -> None:
        super().__init__(
            f"Trying to override data of {self.collection}/{self.key}; "
            "use sibling() to declare another version"
        )


class NoActiveObjectError(DefinitionError):
    """Raised by ``sibling()`` before any record has been declared."""

    def __init__(self) -> None:
        super().__init__("sibling called with no active object")


class NoActiveTargetError(DefinitionError):
    """Raised by ``link()`` before any record or variant has been declared."""

    def __init__(self) -> None:
        super().__init__("link called with no active object")


@dataclass
class InvalidLinkTargetError(DefinitionError):
    """Raised when ``link()`` receives something that names no record.

    Attributes:
        target: The value that was passed as the link target.
    """

    target: Any

    def __post_init__(self) -> None:
        if self.target is None:
            msg = "link called without a target"
        else:
            msg = (
                f"Cannot link to {self.target!r}: expected a record handle, "
                "a (collection, key) pair or a mapping with bucket and key"
            )
        super().__init__(msg)


class SessionClosedError(DefinitionError):
    """Raised when declaring into a session that has already been finished."""

    def __init__(self) -> None:
        super().__init__("builder session is finished; the graph is read-only")


@dataclass
class InvalidPayloadError(DefinitionError):
    """Raised when a record or sibling payload is not a mapping.

    Attributes:
        payload: The value passed in the payload position.
    """

    payload: Any

    def __post_init__(self) -> None:
        super().__init__(
            f"Invalid payload {self.payload!r}: expected a mapping, "
            "optionally followed by a setup callable"
        )
