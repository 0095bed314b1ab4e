"""REST API routes for the extractor host.

Provides endpoints for:
- Loading documents and driving selection mode (arm, disarm, pointer events)
- Opening pages in the browser, highlighting selectors and applying templates live
- Editing the captured records
- Saving sessions and templates, applying templates
- Exporting records, saved sessions and template items
"""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from extractor.api.auth import require_api_auth
from extractor.api.capture_service import CaptureService
from extractor.capture.workspace import CollaboratorUnavailableError
from extractor.export.formats import ExportError, ExportFormat
from extractor.selection.models import FieldType
from extractor.storage.repository import InvalidSessionIdError, StorageError

router = APIRouter(dependencies=[Depends(require_api_auth)])

_capture_service: CaptureService | None = None


def get_capture_service() -> CaptureService:
    global _capture_service
    if _capture_service is None:
        _capture_service = CaptureService()
    return _capture_service


async def shutdown_capture_service() -> None:
    if _capture_service is not None:
        await _capture_service.close_browser()


def _unavailable(exc: CollaboratorUnavailableError) -> HTTPException:
    return HTTPException(status_code=503, detail=str(exc))


def _io_failure(exc: Exception) -> HTTPException:
    return HTTPException(status_code=500, detail=str(exc))


def _bad_session_id(exc: InvalidSessionIdError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(exc))


# --- Request/Response Models ---


class DocumentRequest(BaseModel):
    html: str
    url: str = ""


class DocumentResponse(BaseModel):
    document_id: str
    title: str
    url: str


class NavigateRequest(BaseModel):
    url: str = Field(min_length=1)


class HighlightRequest(BaseModel):
    selector: str = Field(min_length=1)


class ArmRequest(BaseModel):
    field_type: FieldType


class EventRequest(BaseModel):
    type: Literal["pointermove", "click"]
    selector: str


class RecordUpdate(BaseModel):
    value: str


class SessionRequest(BaseModel):
    url: str
    title: str | None = None
    template_name: str | None = None


class TemplateRequest(BaseModel):
    name: str = Field(min_length=1)
    container_selector: str | None = None


class ExportRequest(BaseModel):
    filename: str
    format: ExportFormat = ExportFormat.JSON


class ItemsExportRequest(BaseModel):
    filename: str
    document_id: str
    template_name: str


# --- Documents and selection mode ---


def _document_response(service: CaptureService, document_id: str) -> DocumentResponse:
    document = service.get_entry(document_id).document
    return DocumentResponse(document_id=document_id, title=document.title, url=document.url)


@router.post("/documents", response_model=DocumentResponse)
async def load_document(request: DocumentRequest) -> DocumentResponse:
    service = get_capture_service()
    return _document_response(service, service.load_document(request.html, request.url))


@router.delete("/documents/{document_id}")
async def close_document(document_id: str) -> dict[str, str]:
    get_capture_service().close_document(document_id)
    return {"document_id": document_id, "status": "closed"}


@router.get("/documents/{document_id}/content")
async def get_content(document_id: str) -> dict[str, str]:
    document = get_capture_service().get_entry(document_id).document
    return {"document_id": document_id, "url": document.url, "html": document.html()}


@router.get("/documents/{document_id}/selection")
async def get_selection(document_id: str) -> dict[str, Any]:
    return get_capture_service().selection_state(document_id)


@router.post("/documents/{document_id}/arm")
async def arm(document_id: str, request: ArmRequest) -> dict[str, Any]:
    service = get_capture_service()
    service.get_entry(document_id).controller.arm(request.field_type)
    return service.selection_state(document_id)


@router.post("/documents/{document_id}/disarm")
async def disarm(document_id: str) -> dict[str, Any]:
    service = get_capture_service()
    service.get_entry(document_id).controller.disarm()
    return service.selection_state(document_id)


@router.post("/documents/{document_id}/events")
async def dispatch_event(document_id: str, request: EventRequest) -> dict[str, Any]:
    return get_capture_service().dispatch(document_id, request.type, request.selector)


@router.post("/documents/{document_id}/templates/{name}/apply")
async def apply_template(document_id: str, name: str) -> list[dict[str, Any]]:
    try:
        items = get_capture_service().apply_template(document_id, name)
    except CollaboratorUnavailableError as exc:
        raise _unavailable(exc) from exc
    except StorageError as exc:
        raise _io_failure(exc) from exc
    return [item.model_dump(mode="json") for item in items]


# --- Browser ---


@router.post("/browser/navigate", response_model=DocumentResponse)
async def navigate(request: NavigateRequest) -> DocumentResponse:
    service = get_capture_service()
    return _document_response(service, await service.open_url(request.url))


@router.post("/browser/highlight")
async def highlight(request: HighlightRequest) -> dict[str, Any]:
    result = await get_capture_service().highlight_in_page(request.selector)
    return {"selector": request.selector, "status": result.status.value, "detail": result.detail}


@router.post("/browser/templates/{name}/apply")
async def apply_template_in_page(name: str) -> list[dict[str, Any]]:
    try:
        items = await get_capture_service().apply_template_in_page(name)
    except CollaboratorUnavailableError as exc:
        raise _unavailable(exc) from exc
    except StorageError as exc:
        raise _io_failure(exc) from exc
    return [item.model_dump(mode="json") for item in items]


# --- Records ---


@router.get("/records")
async def list_records() -> list[dict[str, Any]]:
    return [r.model_dump(mode="json") for r in get_capture_service().workspace.records]


@router.patch("/records/{record_id}")
async def update_record(record_id: str, update: RecordUpdate) -> dict[str, Any]:
    try:
        record = get_capture_service().workspace.update_value(record_id, update.value)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Record {record_id} not found") from exc
    return record.model_dump(mode="json")


@router.delete("/records/{record_id}")
async def delete_record(record_id: str) -> dict[str, str]:
    if not get_capture_service().workspace.remove_record(record_id):
        raise HTTPException(status_code=404, detail=f"Record {record_id} not found")
    return {"record_id": record_id, "status": "deleted"}


@router.delete("/records")
async def clear_records() -> dict[str, str]:
    get_capture_service().workspace.clear()
    return {"status": "cleared"}


# --- Sessions ---


@router.post("/sessions")
async def save_session(request: SessionRequest) -> dict[str, str]:
    try:
        session_id = get_capture_service().workspace.save_session(
            request.url, request.title, request.template_name
        )
    except CollaboratorUnavailableError as exc:
        raise _unavailable(exc) from exc
    except StorageError as exc:
        raise _io_failure(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"session_id": session_id, "status": "saved"}


@router.get("/sessions")
async def list_sessions() -> list[dict[str, Any]]:
    try:
        sessions = get_capture_service().workspace.list_sessions()
    except CollaboratorUnavailableError as exc:
        raise _unavailable(exc) from exc
    except StorageError as exc:
        raise _io_failure(exc) from exc
    return [s.model_dump(mode="json") for s in sessions]


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str) -> dict[str, str]:
    try:
        deleted = get_capture_service().workspace.delete_session(session_id)
    except CollaboratorUnavailableError as exc:
        raise _unavailable(exc) from exc
    except InvalidSessionIdError as exc:
        raise _bad_session_id(exc) from exc
    except StorageError as exc:
        raise _io_failure(exc) from exc
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return {"session_id": session_id, "status": "deleted"}


@router.post("/sessions/{session_id}/export")
async def export_session(session_id: str, request: ExportRequest) -> dict[str, str]:
    service = get_capture_service()
    path = service.resolve_export_path(request.filename)
    try:
        written = service.workspace.export_session(session_id, path, request.format)
    except CollaboratorUnavailableError as exc:
        raise _unavailable(exc) from exc
    except InvalidSessionIdError as exc:
        raise _bad_session_id(exc) from exc
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found") from exc
    except (StorageError, ExportError) as exc:
        raise _io_failure(exc) from exc
    return {"session_id": session_id, "path": str(written), "format": request.format.value}


# --- Templates ---


@router.post("/templates")
async def save_template(request: TemplateRequest) -> dict[str, Any]:
    try:
        template = get_capture_service().workspace.save_template(
            request.name, request.container_selector
        )
    except CollaboratorUnavailableError as exc:
        raise _unavailable(exc) from exc
    except StorageError as exc:
        raise _io_failure(exc) from exc
    return template.model_dump(mode="json")


@router.get("/templates")
async def list_templates() -> list[dict[str, Any]]:
    try:
        templates = get_capture_service().workspace.list_templates()
    except CollaboratorUnavailableError as exc:
        raise _unavailable(exc) from exc
    except StorageError as exc:
        raise _io_failure(exc) from exc
    return [t.model_dump(mode="json") for t in templates]


# --- Export ---


@router.post("/exports")
async def export_records(request: ExportRequest) -> dict[str, str]:
    service = get_capture_service()
    path = service.resolve_export_path(request.filename)
    try:
        written = service.workspace.export(path, request.format)
    except CollaboratorUnavailableError as exc:
        raise _unavailable(exc) from exc
    except ExportError as exc:
        raise _io_failure(exc) from exc
    return {"path": str(written), "format": request.format.value}


@router.post("/exports/items")
async def export_items(request: ItemsExportRequest) -> dict[str, Any]:
    """Apply a template to a loaded document and write the items as grouped CSV."""
    service = get_capture_service()
    path = service.resolve_export_path(request.filename)
    try:
        items = service.apply_template(request.document_id, request.template_name)
        written = service.workspace.export_items(items, path)
    except CollaboratorUnavailableError as exc:
        raise _unavailable(exc) from exc
    except (StorageError, ExportError) as exc:
        raise _io_failure(exc) from exc
    return {"path": str(written), "format": ExportFormat.CSV.value, "items": len(items)}
