"""Service layer binding loaded documents, their controllers, and the workspace."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fastapi import HTTPException

from extractor.browser.layer import ActionResult, ActionStatus, BrowserLayer
from extractor.browser.live_apply import apply_template_live
from extractor.capture.workspace import CaptureWorkspace
from extractor.config.settings import ExtractorConfig
from extractor.dom.document import CLICK, POINTER_MOVE, LiveDocument
from extractor.selection.controller import SelectionController
from extractor.selection.models import Template
from extractor.signals.emitter import SignalEmitter
from extractor.storage.repository import ExtractionStore
from extractor.telemetry.errors import ErrorCode, emit_structured_error
from extractor.templates.apply import TemplateItem, apply_template

logger = logging.getLogger(__name__)

SUPPORTED_EVENTS = {POINTER_MOVE, CLICK}


@dataclass
class DocumentEntry:
    document: LiveDocument
    controller: SelectionController


def open_store(config: ExtractorConfig) -> ExtractionStore | None:
    """Create the store, or return None (features disabled) if the data dir is unusable."""
    try:
        return ExtractionStore.from_config(config.storage)
    except OSError as exc:
        emit_structured_error(
            logger,
            code=ErrorCode.COLLABORATOR_UNAVAILABLE,
            message=str(exc),
            suppressed=True,
            operation="open_store",
            details={"data_dir": str(config.storage.data_dir)},
        )
        return None


class CaptureService:
    def __init__(
        self,
        config: ExtractorConfig | None = None,
        store: ExtractionStore | None = None,
        browser: BrowserLayer | None = None,
    ) -> None:
        self._config = config or ExtractorConfig()
        self._store = store if store is not None else open_store(self._config)
        self._signals = SignalEmitter(
            source="host",
            ledger_path=self._config.signals_ledger,
            history_limit=self._config.signal_history_limit,
        )
        self._workspace = CaptureWorkspace(store=self._store, signals=self._signals)
        self._documents: dict[str, DocumentEntry] = {}
        self._browser = browser
        self._browser_document_id: str | None = None

    @property
    def config(self) -> ExtractorConfig:
        return self._config

    @property
    def workspace(self) -> CaptureWorkspace:
        return self._workspace

    @property
    def signals(self) -> SignalEmitter:
        return self._signals

    @property
    def documents(self) -> dict[str, DocumentEntry]:
        return self._documents

    def load_document(self, html: str, url: str) -> str:
        return self.register_document(LiveDocument.from_html(html, url=url))

    def register_document(self, document: LiveDocument) -> str:
        """Give ``document`` its own controller wired to the shared workspace."""
        document_id = f"doc_{uuid.uuid4().hex[:12]}"
        controller = SelectionController(
            document,
            highlight_config=self._config.highlight,
            signals=self._signals,
            document_id=document_id,
        )
        self._workspace.attach(controller)
        self._documents[document_id] = DocumentEntry(document=document, controller=controller)
        logger.info("document %s loaded from %s", document_id, document.url or "<inline>")
        return document_id

    def close_document(self, document_id: str) -> None:
        entry = self.get_entry(document_id)
        entry.controller.disarm()
        self._workspace.detach(entry.controller)
        del self._documents[document_id]

    def get_entry(self, document_id: str) -> DocumentEntry:
        entry = self._documents.get(document_id)
        if entry is None:
            raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
        return entry

    def selection_state(self, document_id: str) -> dict[str, Any]:
        controller = self.get_entry(document_id).controller
        return {
            "document_id": document_id,
            "state": controller.state.value,
            "field_type": controller.field_type.value if controller.field_type else None,
        }

    def dispatch(self, document_id: str, event_type: str, selector: str) -> dict[str, Any]:
        """Deliver a pointer/click event to the first element matching ``selector``."""
        if event_type not in SUPPORTED_EVENTS:
            raise HTTPException(status_code=400, detail=f"Unsupported event type {event_type!r}")
        entry = self.get_entry(document_id)
        target = entry.document.query_one(selector)
        if target is None:
            raise HTTPException(status_code=404, detail=f"No element matches {selector!r}")
        records_before = len(self._workspace.records)
        event = entry.document.dispatch_event(event_type, target)
        captured = self._workspace.records[records_before:]
        return {
            **self.selection_state(document_id),
            "default_prevented": event.default_prevented,
            "captured": [r.model_dump(mode="json") for r in captured],
        }

    def apply_template(self, document_id: str, name: str) -> list[TemplateItem]:
        entry = self.get_entry(document_id)
        return apply_template(entry.document, self._require_template(name))

    def _require_template(self, name: str) -> Template:
        template = self._workspace.get_template(name)
        if template is None:
            raise HTTPException(status_code=404, detail=f"Template {name!r} not found")
        return template

    # --- Browser ---

    async def _started_browser(self) -> BrowserLayer:
        if self._browser is None:
            self._browser = BrowserLayer(self._config.browser)
        if self._browser.page is None:
            await self._browser.start()
        return self._browser

    def _open_browser(self) -> BrowserLayer:
        if self._browser is None or self._browser.page is None:
            raise HTTPException(status_code=409, detail="No page is open in the browser")
        return self._browser

    async def open_url(self, url: str) -> str:
        """Navigate the browser to ``url`` and register a snapshot of the page.

        The snapshot replaces the one taken on the previous navigation;
        records captured from it stay in the workspace.
        """
        browser = await self._started_browser()
        result = await browser.navigate(url)
        if result.status is ActionStatus.TIMEOUT:
            raise HTTPException(status_code=504, detail=result.detail)
        if result.status is not ActionStatus.SUCCESS:
            raise HTTPException(status_code=502, detail=result.detail)

        document = await browser.capture_document()
        if document is None:
            raise HTTPException(status_code=502, detail="Page snapshot unavailable")
        if self._browser_document_id in self._documents:
            self.close_document(self._browser_document_id)
        self._browser_document_id = self.register_document(document)
        return self._browser_document_id

    async def highlight_in_page(self, selector: str) -> ActionResult:
        return await self._open_browser().highlight_selector(
            selector, self._config.highlight.outline, self._config.highlight.tint
        )

    async def apply_template_in_page(self, name: str) -> list[TemplateItem]:
        browser = self._open_browser()
        return await apply_template_live(browser.page, self._require_template(name))

    async def close_browser(self) -> None:
        if self._browser is not None:
            await self._browser.stop()
        self._browser_document_id = None

    def resolve_export_path(self, filename: str) -> Path:
        """Resolve an export file name under ``<data_dir>/exports``."""
        base_dir = (self._config.storage.data_dir / "exports").resolve()
        candidate = (base_dir / filename).resolve()
        if base_dir in candidate.parents:
            return candidate
        logger.warning(
            "Blocked export path outside data directory",
            extra={"requested_path": filename, "resolved_path": str(candidate)},
        )
        raise HTTPException(status_code=400, detail="Invalid export path")
