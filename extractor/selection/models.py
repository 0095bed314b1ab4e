"""Capture data models — records, templates, and sessions."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

_record_ids = itertools.count(1)


def next_record_id() -> str:
    """Allocate the next opaque record id (monotonic within the process)."""
    return f"rec_{next(_record_ids):06d}"


class FieldType(str, Enum):
    """Semantic role of a captured element."""

    IMAGE = "image"
    LINK = "link"
    PRICE = "price"
    TITLE = "title"
    DESCRIPTION = "description"
    TEXT = "text"


class ClassifiedElement(BaseModel):
    """Classifier output: what a node is and what it holds."""

    type: FieldType
    value: str
    selector: str

    model_config = {"frozen": True}


class ExtractionRecord(BaseModel):
    """One captured field.

    ``selector`` and ``type`` are fixed at capture time. Only ``value`` may
    be edited afterwards.
    """

    id: str = Field(default_factory=next_record_id, frozen=True)
    selector: str = Field(frozen=True)
    type: FieldType = Field(frozen=True)
    value: str
    source_url: str = Field(default="", frozen=True)
    captured_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), frozen=True
    )

    model_config = {"validate_assignment": True}

    @classmethod
    def from_classified(cls, element: ClassifiedElement, source_url: str) -> "ExtractionRecord":
        return cls(
            selector=element.selector,
            type=element.type,
            value=element.value,
            source_url=source_url,
        )


class Template(BaseModel):
    """A named mapping from field type to selector, reusable across page loads."""

    name: str = Field(min_length=1)
    selectors: dict[FieldType, str] = Field(default_factory=dict)
    container_selector: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_records(
        cls,
        name: str,
        records: list[ExtractionRecord],
        container_selector: str | None = None,
    ) -> "Template":
        """Build a template; a later record of the same type replaces an earlier one."""
        selectors: dict[FieldType, str] = {}
        for record in records:
            selectors[record.type] = record.selector
        return cls(name=name, selectors=selectors, container_selector=container_selector)


class Session(BaseModel):
    """A persisted batch of records captured from one URL at one time."""

    id: str | None = None
    url: str
    title: str = ""
    records: list[ExtractionRecord] = Field(default_factory=list)
    template_name: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
