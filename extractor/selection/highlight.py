"""Reversible document decorations used while selection mode is armed.

Every helper returns what it needs to undo itself; nothing here keeps state.
"""

from __future__ import annotations

from dataclasses import dataclass

from bs4.element import Tag

from extractor.config.settings import HighlightConfig
from extractor.dom.document import LiveDocument

OVERLAY_ID = "selection-overlay"
BADGE_CLASS = "selection-indicator"


@dataclass
class StyleSnapshot:
    """The ``style`` attribute of a node before it was decorated."""

    node: Tag
    style: str | None

    def restore(self) -> None:
        if self.style is None:
            if "style" in self.node.attrs:
                del self.node["style"]
        else:
            self.node["style"] = self.style


@dataclass
class Highlight:
    """Decoration applied to the current hover candidate."""

    node: Tag
    snapshot: StyleSnapshot
    badge: Tag


def parse_style(style: str | None) -> dict[str, str]:
    declarations: dict[str, str] = {}
    for declaration in (style or "").split(";"):
        name, sep, value = declaration.partition(":")
        if sep and name.strip():
            declarations[name.strip().lower()] = value.strip()
    return declarations


def merge_style(style: str | None, additions: dict[str, str]) -> str:
    declarations = parse_style(style)
    declarations.update(additions)
    return "; ".join(f"{name}: {value}" for name, value in declarations.items())


def _apply_style(node: Tag, additions: dict[str, str]) -> StyleSnapshot:
    current = node.get("style")
    snapshot = StyleSnapshot(node=node, style=current if isinstance(current, str) else None)
    node["style"] = merge_style(snapshot.style, additions)
    return snapshot


def set_cursor(document: LiveDocument, config: HighlightConfig) -> StyleSnapshot:
    return _apply_style(document.body, {"cursor": config.cursor})


def install_overlay(document: LiveDocument, config: HighlightConfig) -> Tag:
    overlay = document.create_element(
        "div",
        {
            "id": OVERLAY_ID,
            "style": merge_style(
                None,
                {
                    "position": "fixed",
                    "top": "0",
                    "left": "0",
                    "width": "100vw",
                    "height": "100vh",
                    "background": config.overlay_color,
                    "z-index": "9998",
                    "pointer-events": "none",
                },
            ),
        },
    )
    document.body.append(overlay)
    return overlay


def highlight(document: LiveDocument, node: Tag, config: HighlightConfig) -> Highlight:
    snapshot = _apply_style(
        node,
        {
            "outline": config.outline,
            "background-color": config.tint,
            "position": "relative",
        },
    )
    badge = document.create_element(
        "div",
        {
            "class": [BADGE_CLASS],
            "style": merge_style(
                None,
                {
                    "position": "absolute",
                    "top": "-12px",
                    "right": "-12px",
                    "background": config.badge_color,
                    "border-radius": "50%",
                    "width": "20px",
                    "height": "20px",
                    "z-index": "9999",
                    "pointer-events": "none",
                },
            ),
        },
        text=config.badge_text,
    )
    node.append(badge)
    return Highlight(node=node, snapshot=snapshot, badge=badge)


def clear_highlight(current: Highlight) -> None:
    current.badge.decompose()
    current.snapshot.restore()


def is_decoration(node: Tag) -> bool:
    """True for the overlay, a badge, or anything inside a badge."""
    if node.get("id") == OVERLAY_ID:
        return True
    for candidate in (node, *node.parents):
        classes = candidate.get("class") if isinstance(candidate, Tag) else None
        if classes and BADGE_CLASS in classes:
            return True
    return False
