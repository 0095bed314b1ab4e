"""Signal type definitions for the extractor observability ledger."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SignalType(str, Enum):
    """All signal types emitted by the extractor."""

    STATE_TRANSITION = "STATE_TRANSITION"
    RECORD_CAPTURED = "RECORD_CAPTURED"
    SELECTION_CANCELLED = "SELECTION_CANCELLED"
    SESSION_SAVED = "SESSION_SAVED"
    TEMPLATE_SAVED = "TEMPLATE_SAVED"
    EXPORT_WRITTEN = "EXPORT_WRITTEN"


class Signal(BaseModel):
    """An immutable signal describing one selection or capture event.

    Signals are append-only and cannot be modified after emission.
    """

    sequence: int = Field(description="Monotonic sequence number within the ledger")
    signal_type: SignalType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: str
    payload: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}
