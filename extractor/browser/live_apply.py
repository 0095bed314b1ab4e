"""Apply a saved template against a live Playwright page."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from playwright.async_api import ElementHandle, Page
from playwright.async_api import Error as PlaywrightError

from extractor.selection.models import FieldType, Template
from extractor.templates.apply import FieldValue, TemplateItem

# The browser resolves src/href to absolute URLs for us
_VALUE_SCRIPTS: dict[FieldType, str] = {
    FieldType.IMAGE: "(e) => e.src || ''",
    FieldType.LINK: "(e) => e.href || ''",
}


async def _element_value(element: ElementHandle, field_type: FieldType) -> str:
    script = _VALUE_SCRIPTS.get(field_type)
    if script is not None:
        return (await element.evaluate(script)) or ""
    text = await element.text_content()
    return (text or "").strip()


async def _match_field(scope: Any, field_type: FieldType, selector: str) -> FieldValue:
    try:
        elements = await scope.query_selector_all(selector)
    except PlaywrightError:
        return FieldValue(value=None, confidence=0.0, source_selector=selector)
    if not elements:
        return FieldValue(value=None, confidence=0.0, source_selector=selector)

    value = await _element_value(elements[0], field_type)
    if not value:
        return FieldValue(
            value=None, confidence=0.0, source_selector=selector, match_count=len(elements)
        )
    return FieldValue(
        value=value,
        confidence=1.0 if len(elements) == 1 else 0.5,
        source_selector=selector,
        match_count=len(elements),
    )


async def _extract_item(scope: Any, template: Template, source_url: str) -> TemplateItem | None:
    fields: dict[FieldType, FieldValue] = {}
    extracted = 0
    for field_type, selector in template.selectors.items():
        fields[field_type] = await _match_field(scope, field_type, selector)
        if fields[field_type].value is not None:
            extracted += 1

    if extracted == 0:
        return None
    completeness = extracted / len(template.selectors)
    return TemplateItem(
        fields=fields,
        source_url=source_url,
        template_name=template.name,
        extracted_at=datetime.now(timezone.utc),
        completeness_score=completeness,
        is_partial=completeness < 1.0,
    )


async def apply_template_live(page: Page, template: Template) -> list[TemplateItem]:
    """Extract items from the page currently loaded in ``page``.

    Args:
        page: Playwright page to extract from.
        template: Saved selectors, optionally scoped by a container selector.

    Returns:
        List of TemplateItem, one per container match (or one for the page).
    """
    if not template.selectors:
        return []

    if not template.container_selector:
        item = await _extract_item(page, template, page.url)
        return [item] if item else []

    items: list[TemplateItem] = []
    for container in await page.query_selector_all(template.container_selector):
        item = await _extract_item(container, template, page.url)
        if item:
            items.append(item)
    return items
