"""Capture workspace — the host-side collection of captured records.

Records emitted by a SelectionController land here. From this point the
workspace owns them: values can be edited, records removed, and the batch
saved as a session, turned into a template, or exported.

Store and file-writer collaborators are optional. Without them the
session/template/export operations raise CollaboratorUnavailableError while
capture and editing keep working. A failed save or export never drops
in-memory records.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable
from urllib.parse import urlparse

from extractor.export.formats import (
    ExportFormat,
    export_records,
    items_to_csv,
    write_export_file,
)
from extractor.selection.controller import SelectionController
from extractor.selection.models import ExtractionRecord, Session, Template
from extractor.signals.emitter import SignalEmitter
from extractor.signals.types import SignalType
from extractor.storage.repository import ExtractionStore
from extractor.telemetry.errors import ErrorCode, emit_structured_error
from extractor.templates.apply import TemplateItem

logger = logging.getLogger(__name__)

FileWriter = Callable[[Path, str], Path]


class CollaboratorUnavailableError(Exception):
    """Raised when a feature needs a store or file writer that is not configured."""


def default_session_title(url: str) -> str:
    hostname = urlparse(url).hostname or url
    return f"Extraction from {hostname}"


class CaptureWorkspace:
    def __init__(
        self,
        store: ExtractionStore | None = None,
        signals: SignalEmitter | None = None,
        writer: FileWriter | None = write_export_file,
    ) -> None:
        self._store = store
        self._writer = writer
        self._signals = signals or SignalEmitter(source="workspace")
        self._records: list[ExtractionRecord] = []

    @property
    def records(self) -> list[ExtractionRecord]:
        return list(self._records)

    @property
    def storage_available(self) -> bool:
        return self._store is not None

    @property
    def export_available(self) -> bool:
        return self._writer is not None

    @property
    def signals(self) -> SignalEmitter:
        return self._signals

    # --- In-memory records ---

    def attach(self, controller: SelectionController) -> None:
        """Receive every record the controller commits."""
        controller.subscribe(self.add_record)

    def detach(self, controller: SelectionController) -> None:
        controller.unsubscribe(self.add_record)

    def add_record(self, record: ExtractionRecord) -> None:
        self._records.append(record)

    def get_record(self, record_id: str) -> ExtractionRecord | None:
        return next((r for r in self._records if r.id == record_id), None)

    def update_value(self, record_id: str, value: str) -> ExtractionRecord:
        record = self.get_record(record_id)
        if record is None:
            raise KeyError(record_id)
        record.value = value
        return record

    def remove_record(self, record_id: str) -> bool:
        before = len(self._records)
        self._records = [r for r in self._records if r.id != record_id]
        return len(self._records) < before

    def clear(self) -> None:
        self._records.clear()

    # --- Sessions ---

    def build_session(
        self, url: str, title: str | None = None, template_name: str | None = None
    ) -> Session:
        return Session(
            url=url,
            title=title or default_session_title(url),
            records=[r.model_copy() for r in self._records],
            template_name=template_name,
        )

    def save_session(
        self, url: str, title: str | None = None, template_name: str | None = None
    ) -> str:
        """Persist the current records as one session and return its id.

        Raises:
            ValueError: there are no records to save.
            CollaboratorUnavailableError: no store is configured.
            StorageError: the store failed; records stay in memory.
        """
        store = self._require_store("save_session")
        if not self._records:
            raise ValueError("No records captured")
        session = self.build_session(url, title, template_name)
        session_id = store.persist_session(session)
        self._signals.emit(
            SignalType.SESSION_SAVED,
            {"session_id": session_id, "records_count": len(session.records), "url": url},
        )
        return session_id

    def list_sessions(self) -> list[Session]:
        return self._require_store("list_sessions").list_sessions()

    def delete_session(self, session_id: str) -> bool:
        return self._require_store("delete_session").delete_session(session_id)

    # --- Templates ---

    def save_template(self, name: str, container_selector: str | None = None) -> Template:
        store = self._require_store("save_template")
        template = Template.from_records(name, self._records, container_selector)
        store.persist_template(template)
        self._signals.emit(
            SignalType.TEMPLATE_SAVED,
            {"name": name, "field_types": [t.value for t in template.selectors]},
        )
        return template

    def list_templates(self) -> list[Template]:
        return self._require_store("list_templates").list_templates()

    def get_template(self, name: str) -> Template | None:
        return self._require_store("get_template").get_template(name)

    # --- Export ---

    def export(self, path: Path, export_format: ExportFormat | str = ExportFormat.JSON) -> Path:
        content = export_records(self._records, export_format)
        return self._write(path, content, ExportFormat(export_format).value)

    def export_session(
        self, session_id: str, path: Path, export_format: ExportFormat | str = ExportFormat.JSON
    ) -> Path:
        """Export a saved session: JSON records, or one grouped CSV row.

        Raises:
            KeyError: no session with that id.
        """
        export_format = ExportFormat(export_format)
        session = self._require_store("export_session").get_session(session_id)
        if session is None:
            raise KeyError(session_id)
        if export_format is ExportFormat.CSV:
            content = items_to_csv([TemplateItem.from_session(session)])
        else:
            content = export_records(session.records, export_format)
        return self._write(path, content, export_format.value)

    def export_items(self, items: list[TemplateItem], path: Path) -> Path:
        """Write grouped items (one row per item) as CSV."""
        return self._write(path, items_to_csv(items), ExportFormat.CSV.value)

    def _write(self, path: Path, content: str, export_format: str) -> Path:
        if self._writer is None:
            self._unavailable("export", "file writer")
        written = self._writer(Path(path), content)
        self._signals.emit(
            SignalType.EXPORT_WRITTEN, {"path": str(written), "format": export_format}
        )
        return written

    def _require_store(self, operation: str) -> ExtractionStore:
        if self._store is None:
            self._unavailable(operation, "store")
        return self._store

    @staticmethod
    def _unavailable(operation: str, collaborator: str) -> None:
        emit_structured_error(
            logger,
            code=ErrorCode.COLLABORATOR_UNAVAILABLE,
            message=f"No {collaborator} configured",
            suppressed=False,
            operation=operation,
        )
        raise CollaboratorUnavailableError(f"{operation} requires a {collaborator}")
