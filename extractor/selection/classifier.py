"""Element classification — decide what a clicked node holds.

Signals are structural (tag, heading ancestry) and textual (currency,
"price", two-decimal amounts, length). No site-specific configuration.
"""

from __future__ import annotations

import re
from urllib.parse import urljoin

from bs4.element import Tag

from extractor.selection.models import ClassifiedElement, FieldType

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
DESCRIPTION_MIN_LENGTH = 50

_CURRENCY_SYMBOLS = "$€£¥₹₩₽₺₪₫฿₦₱"
_DECIMAL_AMOUNT = re.compile(r"\d+\.\d{2}")


def text_content(node: Tag) -> str:
    """Trimmed text content of ``node`` with case preserved."""
    return node.get_text().strip()


def resolve_url(node: Tag, attribute: str, base_url: str = "") -> str:
    raw = node.get(attribute)
    if not isinstance(raw, str) or not raw.strip():
        return ""
    return urljoin(base_url, raw.strip())


def is_price_text(text: str) -> bool:
    if any(symbol in text for symbol in _CURRENCY_SYMBOLS):
        return True
    if "price" in text:
        return True
    return _DECIMAL_AMOUNT.search(text) is not None


def is_heading(node: Tag) -> bool:
    if node.name in HEADING_TAGS:
        return True
    return node.find_parent(list(HEADING_TAGS)) is not None


def field_value(node: Tag, field_type: FieldType, base_url: str = "") -> str:
    """The value a node yields for a field type (URL for image/link, text otherwise)."""
    if field_type is FieldType.IMAGE:
        return resolve_url(node, "src", base_url)
    if field_type is FieldType.LINK:
        return resolve_url(node, "href", base_url)
    return text_content(node)


def classify_type(node: Tag) -> FieldType:
    if node.name == "img":
        return FieldType.IMAGE
    if node.name == "a":
        return FieldType.LINK

    lowered = text_content(node).lower()
    if is_price_text(lowered):
        return FieldType.PRICE
    if is_heading(node):
        return FieldType.TITLE
    if len(lowered) > DESCRIPTION_MIN_LENGTH:
        return FieldType.DESCRIPTION
    return FieldType.TEXT


def classify(node: Tag, selector: str, base_url: str = "") -> ClassifiedElement:
    """Classify ``node`` and pair it with its synthesized ``selector``.

    Args:
        node: The element the user committed.
        selector: Selector produced for the node by the synthesizer.
        base_url: Document base URL used to make image/link URLs absolute.

    Returns:
        ClassifiedElement with type, value, and selector. Empty elements
        classify as ``text`` with an empty value.
    """
    field_type = classify_type(node)
    return ClassifiedElement(
        type=field_type,
        value=field_value(node, field_type, base_url),
        selector=selector,
    )
