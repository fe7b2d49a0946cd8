"""Pydantic models for declarative YAML definition documents.

A document mirrors the builder API one-to-one::

    collections:
      users:
        properties: {allow_mult: true}
        records:
          alice:
            payload: {name: Alice}
            links:
              - {bucket: users, key: bob, tag: friend}
            siblings:
              - payload: {name: Alicia}
          bob:
            payload: {name: Bob}
            links: [[users, alice]]
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator

NonEmptyStr = Annotated[str, StringConstraints(min_length=1)]


class LinkSpec(BaseModel):
    """One outgoing link."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    collection: NonEmptyStr = Field(alias="bucket", description="Target collection")
    key: NonEmptyStr = Field(description="Target record key")
    tag: str | None = Field(default=None, description="Relation label")

    @model_validator(mode="before")
    @classmethod
    def _accept_pairs(cls, data: Any) -> Any:
        """Allow the ``[collection, key]`` pair spelling."""
        if isinstance(data, (list, tuple)):
            if len(data) != 2:
                raise ValueError("link pair must be [collection, key]")
            return {"bucket": data[0], "key": data[1]}
        return data


class VariantSpec(BaseModel):
    """Payload and links of one variant."""

    model_config = ConfigDict(extra="forbid")

    payload: dict[str, Any] = Field(default_factory=dict)
    links: list[LinkSpec] = Field(default_factory=list)


class RecordSpec(VariantSpec):
    """A record: its first variant plus any siblings."""

    siblings: list[VariantSpec] = Field(default_factory=list)


class CollectionSpec(BaseModel):
    """A collection with optional properties and its records."""

    model_config = ConfigDict(extra="forbid")

    properties: dict[str, Any] = Field(default_factory=dict)
    records: dict[NonEmptyStr, RecordSpec] = Field(default_factory=dict)


class DefinitionDocument(BaseModel):
    """Top-level YAML definition document."""

    model_config = ConfigDict(extra="forbid")

    collections: dict[NonEmptyStr, CollectionSpec] = Field(default_factory=dict)
