"""Live document — the parsed page the selection layer reads and decorates.

The tree is owned by whoever loaded the page. Selection code only queries
it (always live, never cached) and applies reversible decorations while
selection mode is armed. Pointer and click events reach listeners through
an explicit registry, mirroring ``addEventListener``/``removeEventListener``.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag
from soupsieve import SelectorSyntaxError

POINTER_MOVE = "pointermove"
CLICK = "click"


@dataclass
class DOMEvent:
    """A pointer or click event delivered to document listeners."""

    type: str
    target: Tag
    default_prevented: bool = False
    propagation_stopped: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True

    def stop_propagation(self) -> None:
        self.propagation_stopped = True


EventHandler = Callable[[DOMEvent], Any]


def root_of(node: Tag) -> Tag:
    """Return the document object a node belongs to."""
    current = node
    while current.parent is not None:
        current = current.parent
    return current


def element_children(node: Tag) -> list[Tag]:
    return [child for child in node.children if isinstance(child, Tag)]


def query_all(root: Tag, selector: str) -> list[Tag]:
    """Evaluate ``selector`` against ``root``; invalid selectors match nothing."""
    try:
        return root.select(selector)
    except (SelectorSyntaxError, ValueError):
        return []


def matches_exactly_one(root: Tag, selector: str) -> bool:
    try:
        return len(root.select(selector, limit=2)) == 1
    except (SelectorSyntaxError, ValueError):
        return False


class LiveDocument:
    """A mutable HTML document with a URL and an event-listener registry."""

    def __init__(self, soup: BeautifulSoup, url: str = "") -> None:
        self._soup = soup
        self._url = url
        self._listeners: dict[str, list[EventHandler]] = {}

    @classmethod
    def from_html(cls, html: str, url: str = "") -> "LiveDocument":
        return cls(BeautifulSoup(html, "html.parser"), url)

    @property
    def root(self) -> BeautifulSoup:
        return self._soup

    @property
    def url(self) -> str:
        return self._url

    @property
    def title(self) -> str:
        title = self._soup.title
        if title is None:
            return ""
        return title.get_text().strip()

    @property
    def base_url(self) -> str:
        """URL relative references resolve against (honours ``<base href>``)."""
        base = self._soup.find("base", href=True)
        if base is not None:
            return urljoin(self._url, base["href"])
        return self._url

    @property
    def body(self) -> Tag:
        """The ``<body>`` element, or the outermost element when there is none."""
        body = self._soup.body
        if body is not None:
            return body
        for child in self._soup.children:
            if isinstance(child, Tag):
                return child
        return self._soup

    @property
    def dom_hash(self) -> str:
        return hashlib.sha256(str(self._soup).encode()).hexdigest()[:16]

    def html(self) -> str:
        return str(self._soup)

    def contains(self, node: Tag) -> bool:
        return root_of(node) is self._soup

    def query_all(self, selector: str) -> list[Tag]:
        return query_all(self._soup, selector)

    def query_one(self, selector: str) -> Tag | None:
        matches = self.query_all(selector)
        return matches[0] if matches else None

    def create_element(
        self, name: str, attrs: dict[str, str | list[str]] | None = None, text: str = ""
    ) -> Tag:
        element = self._soup.new_tag(name, attrs=attrs or {})
        if text:
            element.string = text
        return element

    # --- Event listeners ---

    def add_event_listener(self, event_type: str, handler: EventHandler) -> None:
        handlers = self._listeners.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    def remove_event_listener(self, event_type: str, handler: EventHandler) -> None:
        handlers = self._listeners.get(event_type, [])
        self._listeners[event_type] = [h for h in handlers if h != handler]

    def listener_count(self, event_type: str) -> int:
        return len(self._listeners.get(event_type, []))

    def dispatch_event(self, event_type: str, target: Tag) -> DOMEvent:
        """Deliver an event to the listeners registered for its type.

        A listener removed by an earlier listener during the same dispatch
        is not called.
        """
        event = DOMEvent(type=event_type, target=target)
        for handler in list(self._listeners.get(event_type, [])):
            if handler not in self._listeners.get(event_type, []):
                continue
            handler(event)
        return event
