"""Selector synthesis — turn one clicked node into a CSS selector.

Rules are tried in a fixed order and the first one whose selector matches
exactly one element in the whole document wins:

1. ``#id`` when the node's id is unique in the document
2. the node's full class combination (``.a.b``)
3. each ``data-*`` attribute in declaration order (``[data-x="v"]``)
4. a structural ``parent > child:nth-child(k)`` path grown towards the root

Uniqueness is checked live against the document every time. The structural
path is returned even if it never becomes unique; callers must not assume
the result matches a single element.
"""

from __future__ import annotations

from bs4.element import Tag

from extractor.dom.document import element_children, matches_exactly_one, root_of


def synthesize(node: Tag) -> str:
    """Return a selector that re-identifies ``node`` in its document."""
    root = root_of(node)

    selector = _by_identifier(node, root)
    if selector:
        return selector

    selector = _by_class_combination(node, root)
    if selector:
        return selector

    selector = _by_data_attribute(node, root)
    if selector:
        return selector

    return _by_structure(node, root)


def _by_identifier(node: Tag, root: Tag) -> str | None:
    node_id = node.get("id")
    if not isinstance(node_id, str) or not node_id:
        return None
    if len(root.find_all(id=node_id, limit=2)) != 1:
        return None
    return f"#{node_id}"


def _class_tokens(node: Tag) -> list[str]:
    raw = node.get("class")
    if isinstance(raw, str):
        raw = raw.split()
    return [token for token in raw or [] if token.strip()]


def _by_class_combination(node: Tag, root: Tag) -> str | None:
    tokens = _class_tokens(node)
    if not tokens:
        return None
    selector = "." + ".".join(tokens)
    if matches_exactly_one(root, selector):
        return selector
    return None


def _attribute_value(value: str | list[str]) -> str:
    if isinstance(value, list):
        value = " ".join(value)
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _by_data_attribute(node: Tag, root: Tag) -> str | None:
    for name, value in node.attrs.items():
        if not name.startswith("data-"):
            continue
        selector = f'[{name}="{_attribute_value(value)}"]'
        if matches_exactly_one(root, selector):
            return selector
    return None


def _level(node: Tag, parent: Tag) -> str:
    # Same-tag siblings decide whether to index; the index itself counts all children.
    children = element_children(parent)
    same_tag = [child for child in children if child.name == node.name]
    if len(same_tag) <= 1:
        return node.name
    position = next(i for i, child in enumerate(children, start=1) if child is node)
    return f"{node.name}:nth-child({position})"


def _by_structure(node: Tag, root: Tag) -> str:
    levels: list[str] = []
    selector = node.name
    current = node
    while isinstance(current.parent, Tag) and current.parent is not root:
        parent = current.parent
        levels.insert(0, _level(current, parent))
        selector = " > ".join([parent.name, *levels])
        if matches_exactly_one(root, selector):
            return selector
        current = parent
    return selector
