"""Disk-backed store for capture sessions and templates."""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from pathlib import Path

from pydantic import ValidationError

from extractor.config.settings import StorageConfig
from extractor.selection.models import Session, Template
from extractor.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the store cannot read or write its files."""


class InvalidSessionIdError(ValueError):
    """Raised for a session id that cannot name a file in the store."""


class ExtractionStore:
    """JSON-file store.

    Layout under ``data_dir``:
    - ``sessions/<session_id>.json`` plus ``sessions/index.json`` (insertion order)
    - ``templates/<name digest>.json`` (one file per template name, upserted)
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = Path(data_dir)
        self._sessions_dir = self._data_dir / "sessions"
        self._templates_dir = self._data_dir / "templates"
        self._sessions_dir.mkdir(parents=True, exist_ok=True)
        self._templates_dir.mkdir(parents=True, exist_ok=True)
        self._index_path = self._sessions_dir / "index.json"

    @staticmethod
    def from_config(config: StorageConfig | None = None) -> "ExtractionStore":
        return ExtractionStore(data_dir=(config or StorageConfig()).data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    # --- Sessions ---

    def persist_session(self, session: Session) -> str:
        """Store ``session`` and return its id. The caller's object is not modified."""
        session_id = session.id or f"sess_{uuid.uuid4().hex[:12]}"
        stored = session.model_copy(update={"id": session_id})
        try:
            self._write_atomic(self._session_path(session_id), stored.model_dump_json(indent=2))
            index = self._read_index()
            if session_id not in index:
                index.append(session_id)
                self._write_atomic(self._index_path, json.dumps(index))
        except OSError as exc:
            self._report(ErrorCode.STORE_WRITE_FAILED, exc, "persist_session")
            raise StorageError(f"Could not save session: {exc}") from exc
        logger.info("session %s saved with %d records", session_id, len(stored.records))
        return session_id

    def list_sessions(self) -> list[Session]:
        sessions: list[Session] = []
        for session_id in self._read_index():
            session = self.get_session(session_id)
            if session is not None:
                sessions.append(session)
        return sessions

    def get_session(self, session_id: str) -> Session | None:
        path = self._session_path(session_id)
        if not path.exists():
            return None
        try:
            return Session.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            self._report(ErrorCode.STORE_READ_FAILED, exc, "get_session")
            raise StorageError(f"Could not read session {session_id}: {exc}") from exc

    def delete_session(self, session_id: str) -> bool:
        index = self._read_index()
        path = self._session_path(session_id)
        if session_id not in index and not path.exists():
            return False
        try:
            if path.exists():
                path.unlink()
            self._write_atomic(self._index_path, json.dumps([i for i in index if i != session_id]))
        except OSError as exc:
            self._report(ErrorCode.STORE_WRITE_FAILED, exc, "delete_session")
            raise StorageError(f"Could not delete session {session_id}: {exc}") from exc
        return True

    # --- Templates ---

    def persist_template(self, template: Template) -> None:
        """Insert or replace the template with the same name."""
        try:
            self._write_atomic(self._template_path(template.name), template.model_dump_json(indent=2))
        except OSError as exc:
            self._report(ErrorCode.STORE_WRITE_FAILED, exc, "persist_template")
            raise StorageError(f"Could not save template {template.name!r}: {exc}") from exc

    def get_template(self, name: str) -> Template | None:
        path = self._template_path(name)
        if not path.exists():
            return None
        return self._load_template(path)

    def list_templates(self) -> list[Template]:
        """All templates, most recently saved first."""
        templates = [self._load_template(path) for path in self._templates_dir.glob("*.json")]
        return sorted(templates, key=lambda t: t.created_at, reverse=True)

    # --- Internals ---

    def _session_path(self, session_id: str) -> Path:
        if not session_id or "/" in session_id or "\\" in session_id or session_id.startswith("."):
            raise InvalidSessionIdError(f"Invalid session id {session_id!r}")
        return self._sessions_dir / f"{session_id}.json"

    def _template_path(self, name: str) -> Path:
        digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:16]
        return self._templates_dir / f"{digest}.json"

    def _load_template(self, path: Path) -> Template:
        try:
            return Template.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            self._report(ErrorCode.STORE_READ_FAILED, exc, "load_template")
            raise StorageError(f"Could not read template file {path.name}: {exc}") from exc

    def _read_index(self) -> list[str]:
        if not self._index_path.exists():
            return []
        try:
            return list(json.loads(self._index_path.read_text(encoding="utf-8")))
        except (OSError, ValueError) as exc:
            self._report(ErrorCode.STORE_READ_FAILED, exc, "read_index")
            raise StorageError(f"Could not read session index: {exc}") from exc

    @staticmethod
    def _write_atomic(path: Path, content: str) -> None:
        temp_path = path.with_name(path.name + ".tmp")
        try:
            temp_path.write_text(content, encoding="utf-8")
            temp_path.replace(path)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise

    @staticmethod
    def _report(code: ErrorCode, exc: Exception, operation: str) -> None:
        emit_structured_error(
            logger, code=code, message=str(exc), suppressed=False, operation=operation
        )
