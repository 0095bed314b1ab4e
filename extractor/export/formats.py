"""Export formats for captured records and template items.

JSON is a pretty-printed array (2-space indent). CSV quotes every cell,
doubles embedded quotes, and joins rows with ``\\n``.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from extractor.selection.models import ExtractionRecord, FieldType
from extractor.telemetry.errors import ErrorCode, emit_structured_error
from extractor.templates.apply import TemplateItem

logger = logging.getLogger(__name__)

RECORD_HEADERS = ["type", "selector", "value", "url"]
ITEM_HEADERS = ["URL", "Timestamp", "Image", "Title", "Description", "Price"]
_ITEM_COLUMNS = [FieldType.IMAGE, FieldType.TITLE, FieldType.DESCRIPTION, FieldType.PRICE]


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


class ExportError(Exception):
    """Raised when an export file cannot be written."""


def _csv_lines(rows: list[list[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(rows)
    # No terminator after the last row
    return buffer.getvalue().removesuffix("\n")


def _iso_timestamp(moment: datetime) -> str:
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def records_to_json(records: list[ExtractionRecord]) -> str:
    return json.dumps(
        [record.model_dump(mode="json") for record in records], indent=2, ensure_ascii=False
    )


def records_to_csv(records: list[ExtractionRecord]) -> str:
    if not records:
        return ""
    rows = [RECORD_HEADERS]
    for record in records:
        rows.append([record.type.value, record.selector, record.value, record.source_url])
    return _csv_lines(rows)


def items_to_csv(items: list[TemplateItem]) -> str:
    """Grouped variant: one row per item with a column per field type."""
    if not items:
        return ""
    rows = [ITEM_HEADERS]
    for item in items:
        row = [item.source_url, _iso_timestamp(item.extracted_at)]
        for field_type in _ITEM_COLUMNS:
            field = item.fields.get(field_type)
            row.append((field.value or "") if field else "")
        rows.append(row)
    return _csv_lines(rows)


def parse_csv(content: str) -> list[list[str]]:
    """Parse text produced by the CSV exporters back into rows of cells."""
    if not content:
        return []
    return [row for row in csv.reader(io.StringIO(content))]


def export_records(records: list[ExtractionRecord], export_format: ExportFormat | str) -> str:
    export_format = ExportFormat(export_format)
    if export_format is ExportFormat.JSON:
        return records_to_json(records)
    return records_to_csv(records)


def write_export_file(path: Path, content: str) -> Path:
    """Write ``content`` to ``path`` atomically (temp file then rename).

    Raises:
        ExportError: the file could not be written; nothing is left behind.
    """
    path = Path(path)
    temp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path.write_text(content, encoding="utf-8")
        temp_path.replace(path)
    except OSError as exc:
        if temp_path.exists():
            temp_path.unlink()
        emit_structured_error(
            logger,
            code=ErrorCode.EXPORT_WRITE_FAILED,
            message=str(exc),
            suppressed=False,
            operation="write_export_file",
            details={"path": str(path)},
        )
        raise ExportError(f"Could not write export file {path}: {exc}") from exc
    return path
