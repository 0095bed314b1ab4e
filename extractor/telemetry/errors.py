"""Structured error telemetry helpers."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Canonical error codes for operational telemetry."""

    STORE_WRITE_FAILED = "STORE_WRITE_FAILED"
    STORE_READ_FAILED = "STORE_READ_FAILED"
    EXPORT_WRITE_FAILED = "EXPORT_WRITE_FAILED"
    RECORD_SUBSCRIBER_FAILURE = "RECORD_SUBSCRIBER_FAILURE"
    SIGNAL_SUBSCRIBER_FAILURE = "SIGNAL_SUBSCRIBER_FAILURE"
    COLLABORATOR_UNAVAILABLE = "COLLABORATOR_UNAVAILABLE"
    BROWSER_CLEANUP_FAILED = "BROWSER_CLEANUP_FAILED"


def emit_structured_error(
    logger: logging.Logger,
    *,
    code: ErrorCode,
    message: str,
    suppressed: bool,
    document_id: str | None = None,
    operation: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a structured telemetry event via logging."""
    logger.error(
        "extractor_error",
        extra={
            "error_code": code,
            "error_message": message,
            "suppressed": suppressed,
            "document_id": document_id,
            "operation": operation,
            "details": details or {},
        },
    )
