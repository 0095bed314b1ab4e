"""Signal emitter — lifecycle ledger for selection mode and capture.

Everything runs on the document's single event stream, so emission is
synchronous: subscribers are called in registration order before
``emit`` returns.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from extractor.signals.types import Signal, SignalType
from extractor.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 1000


class SignalEmitter:
    """Emits, persists, and broadcasts signals for one source.

    Signals are:
    - Immutable once emitted
    - Assigned monotonic sequence numbers
    - Persisted to a JSONL ledger in append-only mode (optional)
    - Kept in memory up to ``history_limit`` (oldest dropped first)
    - Broadcast to subscribers
    """

    def __init__(
        self,
        source: str,
        ledger_path: Path | None = None,
        history_limit: int | None = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        self._source = source
        self._sequence = 0
        self._ledger_path = ledger_path
        self._subscribers: list[Callable[[Signal], Any]] = []
        self._signals: deque[Signal] = deque(maxlen=history_limit)

        if self._ledger_path:
            self._ledger_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def source(self) -> str:
        return self._source

    @property
    def signals(self) -> list[Signal]:
        """Return the retained signals, oldest first (read-only copy)."""
        return list(self._signals)

    def subscribe(self, callback: Callable[[Signal], Any]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[Signal], Any]) -> None:
        self._subscribers = [s for s in self._subscribers if s != callback]

    def emit(self, signal_type: SignalType, payload: dict[str, Any] | None = None) -> Signal:
        """Emit a signal. This is the ONLY way to create signals."""
        self._sequence += 1
        signal = Signal(
            sequence=self._sequence,
            signal_type=signal_type,
            timestamp=datetime.now(timezone.utc),
            source=self._source,
            payload=payload or {},
        )
        self._signals.append(signal)

        if self._ledger_path:
            self._persist(signal)

        self._broadcast(signal)
        return signal

    def _persist(self, signal: Signal) -> None:
        with open(self._ledger_path, "a") as f:
            f.write(signal.model_dump_json() + "\n")

    def _broadcast(self, signal: Signal) -> None:
        for subscriber in self._subscribers:
            try:
                subscriber(signal)
            except Exception as exc:
                # Subscribers must not break the emission pipeline
                emit_structured_error(
                    logger,
                    code=ErrorCode.SIGNAL_SUBSCRIBER_FAILURE,
                    message=str(exc),
                    suppressed=True,
                    details={"signal_type": signal.signal_type.value},
                )

    def emit_state_transition(
        self, from_state: str, to_state: str, context: dict[str, Any] | None = None
    ) -> Signal:
        """Convenience: emit a STATE_TRANSITION signal."""
        return self.emit(
            SignalType.STATE_TRANSITION,
            {"from_state": from_state, "to_state": to_state, **(context or {})},
        )

    @staticmethod
    def load_ledger(ledger_path: Path) -> list[Signal]:
        """Load all signals from a JSONL ledger file."""
        signals = []
        if ledger_path.exists():
            with open(ledger_path) as f:
                for line in f:
                    line = line.strip()
                    if line:
                        signals.append(Signal.model_validate_json(line))
        return signals
