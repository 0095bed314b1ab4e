"""Selection-mode controller — arms a document, highlights hover targets,
and turns one committed click into one ExtractionRecord.

The controller is a finite state machine (see ``states.py``). Every state
change goes through ``_transition``. Listener registration and removal are
paired: ``_install_listeners`` runs only when arming and
``_uninstall_listeners`` runs exactly once per arming, on commit or cancel.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from bs4.element import Tag

from extractor.config.settings import HighlightConfig
from extractor.dom.document import CLICK, POINTER_MOVE, DOMEvent, LiveDocument
from extractor.selection import highlight as decor
from extractor.selection.classifier import classify
from extractor.selection.models import ExtractionRecord, FieldType
from extractor.selection.states import ARMED_STATES, VALID_TRANSITIONS, SelectionState
from extractor.selection.synthesizer import synthesize
from extractor.signals.emitter import SignalEmitter
from extractor.signals.types import SignalType
from extractor.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

RecordCallback = Callable[[ExtractionRecord], Any]


class SelectionError(Exception):
    """Raised on a transition the state table does not allow."""


class SelectionController:
    """Owns selection mode for one document.

    Contract:
    - ``arm`` returns immediately; capture happens on a later click
    - Hovering only decorates; it never produces a record
    - At most one record is emitted per ``arm`` call
    - The controller keeps no reference to records it has emitted
    """

    def __init__(
        self,
        document: LiveDocument,
        *,
        highlight_config: HighlightConfig | None = None,
        signals: SignalEmitter | None = None,
        document_id: str = "",
    ) -> None:
        self._document = document
        self._config = highlight_config or HighlightConfig()
        self._document_id = document_id
        self._signals = signals or SignalEmitter(source=document_id or "selection")
        self._subscribers: list[RecordCallback] = []

        self._state = SelectionState.IDLE
        self._field_type: FieldType | None = None
        self._highlight: decor.Highlight | None = None
        self._overlay: Tag | None = None
        self._cursor: decor.StyleSnapshot | None = None

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def field_type(self) -> FieldType | None:
        return self._field_type

    @property
    def document(self) -> LiveDocument:
        return self._document

    @property
    def signals(self) -> SignalEmitter:
        return self._signals

    def subscribe(self, callback: RecordCallback) -> None:
        """Register a receiver for committed records."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: RecordCallback) -> None:
        self._subscribers = [s for s in self._subscribers if s != callback]

    # --- Imperative controls ---

    def arm(self, field_type: FieldType | str) -> None:
        """Enter selection mode for ``field_type``, replacing any current arming."""
        requested = FieldType(field_type)
        if self._state in ARMED_STATES:
            self.disarm()

        self._cursor = decor.set_cursor(self._document, self._config)
        self._overlay = decor.install_overlay(self._document, self._config)
        self._install_listeners()
        self._field_type = requested
        self._transition(SelectionState.ARMED, {"field_type": requested.value})

    def disarm(self) -> bool:
        """Leave selection mode without emitting a record.

        Returns False when nothing was armed.
        """
        if self._state not in ARMED_STATES:
            return False
        field_type = self._field_type
        self._teardown()
        self._transition(SelectionState.IDLE, {"reason": "cancelled"})
        self._signals.emit(
            SignalType.SELECTION_CANCELLED,
            {"field_type": field_type.value if field_type else None},
        )
        return True

    # --- Listener wiring ---

    def _install_listeners(self) -> None:
        self._document.add_event_listener(POINTER_MOVE, self._on_pointer_move)
        self._document.add_event_listener(CLICK, self._on_click)

    def _uninstall_listeners(self) -> None:
        self._document.remove_event_listener(POINTER_MOVE, self._on_pointer_move)
        self._document.remove_event_listener(CLICK, self._on_click)

    def _teardown(self) -> None:
        self._uninstall_listeners()
        self._clear_highlight()
        if self._overlay is not None:
            self._overlay.decompose()
            self._overlay = None
        if self._cursor is not None:
            self._cursor.restore()
            self._cursor = None
        self._field_type = None

    # --- Event handlers ---

    def _candidate(self, target: Tag) -> Tag | None:
        if not self._document.contains(target):
            return None
        if target.get("id") == decor.OVERLAY_ID:
            return None
        if self._highlight is not None and decor.is_decoration(target):
            return self._highlight.node
        return target

    def _on_pointer_move(self, event: DOMEvent) -> None:
        node = self._candidate(event.target)
        if node is None or self._state not in ARMED_STATES:
            return
        self._clear_highlight()
        self._highlight = decor.highlight(self._document, node, self._config)
        if self._state is not SelectionState.HIGHLIGHTING:
            self._transition(SelectionState.HIGHLIGHTING, {"tag": node.name})

    def _on_click(self, event: DOMEvent) -> None:
        node = self._candidate(event.target)
        if node is None or self._state not in ARMED_STATES:
            return

        field_type = self._field_type
        self._teardown()
        event.prevent_default()
        event.stop_propagation()

        selector = synthesize(node)
        classified = classify(node, selector, base_url=self._document.base_url)
        record = ExtractionRecord.from_classified(classified, source_url=self._document.url)

        self._transition(SelectionState.IDLE, {"reason": "committed"})
        self._signals.emit(
            SignalType.RECORD_CAPTURED,
            {
                "record_id": record.id,
                "requested_type": field_type.value if field_type else None,
                "type": record.type.value,
                "selector": record.selector,
            },
        )
        self._deliver(record)

    def _clear_highlight(self) -> None:
        if self._highlight is not None:
            decor.clear_highlight(self._highlight)
            self._highlight = None

    def _deliver(self, record: ExtractionRecord) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(record)
            except Exception as exc:
                emit_structured_error(
                    logger,
                    code=ErrorCode.RECORD_SUBSCRIBER_FAILURE,
                    message=str(exc),
                    suppressed=True,
                    document_id=self._document_id or None,
                    operation="deliver_record",
                    details={"record_id": record.id},
                )

    # --- State transition ---

    def _transition(self, to_state: SelectionState, context: dict[str, Any] | None = None) -> None:
        """Every state change MUST go through this method."""
        if to_state not in VALID_TRANSITIONS.get(self._state, set()):
            raise SelectionError(f"Invalid transition: {self._state.value} -> {to_state.value}")
        from_state = self._state
        self._state = to_state
        logger.debug("selection %s -> %s", from_state.value, to_state.value)
        self._signals.emit_state_transition(
            from_state=from_state.value,
            to_state=to_state.value,
            context={"document_id": self._document_id, **(context or {})},
        )
