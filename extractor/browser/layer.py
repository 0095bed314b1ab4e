"""Browser Layer — Playwright-based page host for point-and-click capture.

The Browser Layer renders pages and hands their DOM to the selection layer
as a LiveDocument. It has no capture logic of its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from extractor.config.settings import BrowserConfig
from extractor.dom.document import LiveDocument
from extractor.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

_HIGHLIGHT_SCRIPT = """([selector, outline, tint]) => {
    const element = document.querySelector(selector);
    if (!element) {
        return false;
    }
    element.style.outline = outline;
    element.style.backgroundColor = tint;
    element.scrollIntoView({block: "center"});
    return true;
}"""


class ActionStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass
class ActionResult:
    """Result of a browser action."""

    status: ActionStatus
    detail: str = ""


class BrowserLayer:
    """Playwright-based browser layer.

    Contract:
    - Navigates only when asked
    - Returns the page DOM unmodified, so selectors synthesized from the
      snapshot also resolve against the live page
    - Reports failures as ActionResult instead of raising
    """

    def __init__(self, config: BrowserConfig | None = None) -> None:
        self._config = config or BrowserConfig()
        self._playwright: Any = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page | None:
        return self._page

    async def start(self) -> None:
        """Launch browser and create an isolated context."""
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self._config.headless,
        )
        self._context = await self._browser.new_context(
            viewport={
                "width": self._config.viewport_width,
                "height": self._config.viewport_height,
            },
            user_agent=self._config.user_agent,
            locale=self._config.locale,
        )
        self._page = await self._context.new_page()

    async def stop(self) -> None:
        """Clean up browser resources."""
        try:
            if self._context:
                await self._context.close()
            if self._browser:
                await self._browser.close()
            if self._playwright:
                await self._playwright.stop()
        except Exception as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.BROWSER_CLEANUP_FAILED,
                message=str(exc),
                suppressed=True,
                operation="stop",
            )
        finally:
            self._context = None
            self._browser = None
            self._playwright = None
            self._page = None

    async def navigate(self, url: str, timeout_ms: int | None = None) -> ActionResult:
        """Navigate to a URL and wait for page load."""
        if not self._page:
            return ActionResult(status=ActionStatus.FAILURE, detail="Browser not started")
        try:
            await self._page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=timeout_ms or self._config.navigation_timeout_ms,
            )
            return ActionResult(status=ActionStatus.SUCCESS, detail=f"Navigated to {url}")
        except PlaywrightTimeoutError as e:
            return ActionResult(status=ActionStatus.TIMEOUT, detail=str(e))
        except Exception as e:
            return ActionResult(status=ActionStatus.FAILURE, detail=str(e))

    async def capture_document(self) -> LiveDocument | None:
        """Snapshot the current page as a LiveDocument."""
        if not self._page:
            return None
        html = await self._page.evaluate("() => document.documentElement.outerHTML")
        return LiveDocument.from_html(html, url=self._page.url)

    async def highlight_selector(
        self, selector: str, outline: str = "2px solid #4DEAC7", tint: str = "rgba(77, 234, 199, 0.1)"
    ) -> ActionResult:
        """Outline the first element matching ``selector`` in the live page."""
        if not self._page:
            return ActionResult(status=ActionStatus.FAILURE, detail="Browser not started")
        try:
            found = await self._page.evaluate(_HIGHLIGHT_SCRIPT, [selector, outline, tint])
        except Exception as e:
            return ActionResult(status=ActionStatus.FAILURE, detail=str(e))
        if not found:
            return ActionResult(status=ActionStatus.FAILURE, detail=f"No element matches {selector}")
        return ActionResult(status=ActionStatus.SUCCESS, detail=f"Highlighted {selector}")
