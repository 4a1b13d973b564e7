"""Immutable data contracts for the papergraph backend."""
from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _FrozenBaseModel(BaseModel):
    """Base model enforcing immutability after creation."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class NodeGroup(str, Enum):
    """Closed set of node kinds rendered in the knowledge graph."""

    PAPER = "PAPER"
    AUTHOR = "AUTHOR"
    INSTITUTE = "INSTITUTE"
    CONCEPT = "CONCEPT"
    METHOD = "METHOD"

    @classmethod
    def parse(cls, value: str) -> "NodeGroup":
        """Return the group matching ``value`` case-insensitively.

        Raises:
            ValueError: If ``value`` does not name a known group.
        """

        normalized = value.strip().upper()
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown node group: {value}") from exc


def _clean_strings(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str)]


class DocumentRecord(_FrozenBaseModel):
    """Research document fields consumed by the graph builder.

    Missing lists and a null or blank institute are tolerated and normalised,
    so malformed uploads produce a sparser graph instead of a validation error.
    """

    id: str = Field(..., min_length=1)
    title: str = ""
    publication_date: str = Field("", alias="publicationDate")
    summary: str = ""
    authors: List[str] = Field(default_factory=list)
    institute: Optional[str] = None
    key_concepts: List[str] = Field(default_factory=list, alias="keyConcepts")
    methods: List[str] = Field(default_factory=list)
    domain: Optional[str] = None

    @field_validator("title", "publication_date", "summary", mode="before")
    @classmethod
    def _default_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    @field_validator("authors", mode="before")
    @classmethod
    def _normalise_authors(cls, value: Any) -> List[str]:
        return [item.strip() for item in _clean_strings(value) if item.strip()]

    @field_validator("key_concepts", "methods", mode="before")
    @classmethod
    def _normalise_terms(cls, value: Any) -> List[str]:
        return _clean_strings(value)

    @field_validator("institute", "domain", mode="before")
    @classmethod
    def _normalise_optional(cls, value: Any) -> Optional[str]:
        if not isinstance(value, str):
            return None
        stripped = value.strip()
        return stripped or None


class PaperMetadata(_FrozenBaseModel):
    """Details attached to PAPER nodes for the selection panel."""

    title: str
    date: str = ""
    summary: str = ""
    source_doc_id: str = Field(..., min_length=1)


__all__ = [
    "DocumentRecord",
    "NodeGroup",
    "PaperMetadata",
]
