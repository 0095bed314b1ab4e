"""Tests for reversible selection decorations."""

from extractor.config.settings import HighlightConfig
from extractor.dom.document import LiveDocument
from extractor.selection.highlight import (
    OVERLAY_ID,
    clear_highlight,
    highlight,
    install_overlay,
    is_decoration,
    merge_style,
    parse_style,
    set_cursor,
)


def _doc(body: str = "<p style='color: blue;'>Hello</p>") -> LiveDocument:
    return LiveDocument.from_html(f"<html><body>{body}</body></html>")


def test_parse_style_ignores_malformed_declarations():
    assert parse_style("color: red; ; bogus; Margin : 0") == {"color": "red", "margin": "0"}


def test_merge_style_overrides_existing_property():
    assert merge_style("color: red; outline: none", {"outline": "1px solid"}) == (
        "color: red; outline: 1px solid"
    )


def test_highlight_and_clear_restore_style():
    doc = _doc()
    node = doc.query_one("p")
    current = highlight(doc, node, HighlightConfig())

    assert "background-color: rgba(77, 234, 199, 0.1)" in node["style"]
    assert current.badge.get_text() == "✓"

    clear_highlight(current)
    assert node["style"] == "color: blue;"
    assert node.get_text() == "Hello"


def test_custom_highlight_config():
    doc = _doc("<p>x</p>")
    config = HighlightConfig(outline="3px dashed #f00", badge_text="*")
    current = highlight(doc, doc.query_one("p"), config)
    assert "outline: 3px dashed #f00" in current.node["style"]
    assert current.badge.get_text() == "*"


def test_cursor_snapshot_removes_added_style():
    doc = _doc("<p>x</p>")
    snapshot = set_cursor(doc, HighlightConfig())
    assert doc.body["style"] == "cursor: crosshair"
    snapshot.restore()
    assert "style" not in doc.body.attrs


def test_overlay_and_badge_are_decorations():
    doc = _doc("<p>x</p>")
    overlay = install_overlay(doc, HighlightConfig())
    current = highlight(doc, doc.query_one("p"), HighlightConfig())

    assert overlay["id"] == OVERLAY_ID
    assert "pointer-events: none" in overlay["style"]
    assert is_decoration(overlay)
    assert is_decoration(current.badge)
    assert not is_decoration(doc.query_one("p"))
