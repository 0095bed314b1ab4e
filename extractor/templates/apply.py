"""Template application — re-run saved selectors against a loaded document.

Deterministic, no network. A selector saved from one page may match more
than one element on another; the first match is used and the match count
is reported so callers can surface the ambiguity.
"""

from __future__ import annotations

from datetime import datetime, timezone

from bs4.element import Tag
from pydantic import BaseModel, Field

from extractor.dom.document import LiveDocument, query_all
from extractor.selection.classifier import field_value
from extractor.selection.models import FieldType, Session, Template


class FieldValue(BaseModel):
    """A single field pulled by a template selector."""

    value: str | None
    confidence: float = Field(ge=0.0, le=1.0)
    source_selector: str
    match_count: int = 0

    @property
    def ambiguous(self) -> bool:
        return self.match_count > 1


class TemplateItem(BaseModel):
    """One extracted item: a field per template type plus provenance."""

    fields: dict[FieldType, FieldValue]
    source_url: str
    template_name: str | None = None
    extracted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completeness_score: float = Field(ge=0.0, le=1.0, default=1.0)
    is_partial: bool = False

    @classmethod
    def from_session(cls, session: Session) -> "TemplateItem":
        """Fold a session into one item; the first record of each type wins."""
        fields: dict[FieldType, FieldValue] = {}
        for record in session.records:
            if record.type in fields:
                continue
            fields[record.type] = FieldValue(
                value=record.value,
                confidence=1.0,
                source_selector=record.selector,
                match_count=1,
            )
        return cls(
            fields=fields,
            source_url=session.url,
            template_name=session.template_name,
            extracted_at=session.created_at,
        )


def match_field(scope: Tag, field_type: FieldType, selector: str, base_url: str) -> FieldValue:
    matches = query_all(scope, selector)
    if not matches:
        return FieldValue(value=None, confidence=0.0, source_selector=selector)

    value = field_value(matches[0], field_type, base_url)
    if not value:
        return FieldValue(
            value=None, confidence=0.0, source_selector=selector, match_count=len(matches)
        )
    return FieldValue(
        value=value,
        # Several matches means the first one may not be the element that was captured
        confidence=1.0 if len(matches) == 1 else 0.5,
        source_selector=selector,
        match_count=len(matches),
    )


def _build_item(
    scope: Tag, template: Template, source_url: str, base_url: str
) -> tuple[TemplateItem, int]:
    fields: dict[FieldType, FieldValue] = {}
    extracted = 0
    for field_type, selector in template.selectors.items():
        fields[field_type] = match_field(scope, field_type, selector, base_url)
        if fields[field_type].value is not None:
            extracted += 1

    total = len(template.selectors)
    completeness = extracted / total if total > 0 else 0.0
    item = TemplateItem(
        fields=fields,
        source_url=source_url,
        template_name=template.name,
        completeness_score=completeness,
        is_partial=completeness < 1.0,
    )
    return item, extracted


def apply_template(document: LiveDocument, template: Template) -> list[TemplateItem]:
    """Extract items from ``document`` using a saved template.

    Args:
        document: Loaded page to extract from.
        template: Saved selectors; with a container selector, the field
            selectors are evaluated inside each container match.

    Returns:
        One TemplateItem for the whole page, or one per container that
        yielded at least one field. Empty list when nothing matched.
    """
    if not template.selectors:
        return []

    if not template.container_selector:
        item, extracted = _build_item(document.root, template, document.url, document.base_url)
        return [item] if extracted > 0 else []

    items: list[TemplateItem] = []
    for container in document.query_all(template.container_selector):
        item, extracted = _build_item(container, template, document.url, document.base_url)
        if extracted > 0:
            items.append(item)
    return items
