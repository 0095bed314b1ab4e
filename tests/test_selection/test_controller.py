"""Tests for the selection-mode controller."""

import logging

import pytest
from pydantic import ValidationError

from extractor.dom.document import CLICK, POINTER_MOVE, LiveDocument
from extractor.selection.controller import SelectionController, SelectionError
from extractor.selection.highlight import BADGE_CLASS, OVERLAY_ID
from extractor.selection.models import FieldType
from extractor.selection.states import SelectionState
from extractor.signals.emitter import SignalEmitter
from extractor.signals.types import SignalType

PRODUCT_PAGE = """
<html>
  <head><title>Deluxe Widget</title></head>
  <body style="margin: 0">
    <img id="hero" src="/media/hero.png">
    <h1 class="title">Deluxe Widget</h1>
    <span class="price" style="color: red">$19.99</span>
    <div class="body">
      <p>First</p><p>Second</p><p>Third paragraph</p><p>Fourth</p><p>Fifth</p>
    </div>
  </body>
</html>
"""


@pytest.fixture
def document():
    return LiveDocument.from_html(PRODUCT_PAGE, url="https://shop.test/p/1")


@pytest.fixture
def signals():
    return SignalEmitter(source="test")


@pytest.fixture
def controller(document, signals):
    return SelectionController(document, signals=signals, document_id="doc_test")


@pytest.fixture
def captured(controller):
    records = []
    controller.subscribe(records.append)
    return records


def _move(document, selector):
    return document.dispatch_event(POINTER_MOVE, document.query_one(selector))


def _click(document, selector):
    return document.dispatch_event(CLICK, document.query_one(selector))


def _badges(document):
    return document.query_all(f".{BADGE_CLASS}")


class TestArming:
    def test_starts_idle(self, controller):
        assert controller.state is SelectionState.IDLE
        assert controller.field_type is None

    def test_arm_decorates_and_listens(self, controller, document):
        controller.arm(FieldType.IMAGE)

        assert controller.state is SelectionState.ARMED
        assert controller.field_type is FieldType.IMAGE
        assert "cursor: crosshair" in document.body["style"]
        assert document.query_one(f"#{OVERLAY_ID}") is not None
        assert document.listener_count(POINTER_MOVE) == 1
        assert document.listener_count(CLICK) == 1

    def test_arm_accepts_string_field_type(self, controller):
        controller.arm("price")
        assert controller.field_type is FieldType.PRICE

    def test_invalid_field_type_rejected_before_any_change(self, controller, document):
        before = document.html()
        with pytest.raises(ValueError):
            controller.arm("colour")
        assert controller.state is SelectionState.IDLE
        assert document.html() == before
        assert document.listener_count(CLICK) == 0

    def test_rearm_replaces_previous_arming(self, controller, document):
        controller.arm(FieldType.IMAGE)
        _move(document, "h1")
        controller.arm(FieldType.TITLE)

        assert controller.state is SelectionState.ARMED
        assert controller.field_type is FieldType.TITLE
        assert len(document.query_all(f"#{OVERLAY_ID}")) == 1
        assert _badges(document) == []
        assert document.listener_count(CLICK) == 1

    def test_disarm_restores_document(self, controller, document, captured):
        original = document.html()
        controller.arm(FieldType.TEXT)
        _move(document, ".price")

        assert controller.disarm() is True
        assert controller.state is SelectionState.IDLE
        assert controller.field_type is None
        assert document.html() == original
        assert document.listener_count(POINTER_MOVE) == 0
        assert document.listener_count(CLICK) == 0
        assert captured == []

    def test_disarm_when_idle_is_noop(self, controller, signals):
        assert controller.disarm() is False
        assert signals.signals == []


class TestHovering:
    def test_hover_highlights_without_emitting(self, controller, document, captured):
        controller.arm(FieldType.TITLE)
        _move(document, "h1")

        node = document.query_one("h1")
        assert controller.state is SelectionState.HIGHLIGHTING
        assert "outline: 2px solid #4DEAC7" in node["style"]
        assert len(_badges(document)) == 1
        assert captured == []

    def test_moving_clears_previous_highlight(self, controller, document):
        controller.arm(FieldType.PRICE)
        _move(document, "h1")
        _move(document, ".price")

        assert "style" not in document.query_one("h1").attrs
        assert document.query_one(".price")["style"].startswith("color: red")
        badges = _badges(document)
        assert len(badges) == 1
        assert badges[0].parent is document.query_one(".price")
        assert controller.state is SelectionState.HIGHLIGHTING

    def test_hover_same_node_twice_keeps_one_badge(self, controller, document):
        controller.arm(FieldType.TITLE)
        _move(document, "h1")
        _move(document, "h1")
        assert len(_badges(document)) == 1

    def test_overlay_is_not_a_candidate(self, controller, document):
        controller.arm(FieldType.TEXT)
        _move(document, f"#{OVERLAY_ID}")
        assert controller.state is SelectionState.ARMED
        assert _badges(document) == []

    def test_events_ignored_when_idle(self, controller, document, captured):
        _move(document, "h1")
        _click(document, "h1")
        assert controller.state is SelectionState.IDLE
        assert captured == []
        assert "style" not in document.query_one("h1").attrs


class TestCommit:
    def test_click_emits_exactly_one_record(self, controller, document, captured):
        controller.arm(FieldType.IMAGE)
        _move(document, "#hero")
        event = _click(document, "#hero")

        assert len(captured) == 1
        record = captured[0]
        assert record.type is FieldType.IMAGE
        assert record.selector == "#hero"
        assert record.value == "https://shop.test/media/hero.png"
        assert record.source_url == "https://shop.test/p/1"
        assert event.default_prevented is True
        assert event.propagation_stopped is True

    def test_commit_tears_down(self, controller, document, captured):
        original = document.html()
        controller.arm(FieldType.TITLE)
        _move(document, "h1")
        _click(document, "h1")

        assert controller.state is SelectionState.IDLE
        assert controller.field_type is None
        assert document.html() == original
        assert document.listener_count(POINTER_MOVE) == 0
        assert document.listener_count(CLICK) == 0

    def test_value_excludes_hover_badge(self, controller, document, captured):
        controller.arm(FieldType.PRICE)
        _move(document, ".price")
        _click(document, ".price")
        assert captured[0].value == "$19.99"
        assert captured[0].selector == ".price"

    def test_click_without_hover_commits(self, controller, document, captured):
        controller.arm(FieldType.TITLE)
        _click(document, "h1")
        assert [r.type for r in captured] == [FieldType.TITLE]

    def test_click_on_badge_commits_highlighted_node(self, controller, document, captured):
        controller.arm(FieldType.TITLE)
        _move(document, "h1")
        document.dispatch_event(CLICK, _badges(document)[0])
        assert captured[0].selector == ".title"
        assert captured[0].value == "Deluxe Widget"

    def test_structural_selector_for_third_paragraph(self, controller, document, captured):
        controller.arm(FieldType.TEXT)
        target = document.query_all("p")[2]
        document.dispatch_event(POINTER_MOVE, target)
        document.dispatch_event(CLICK, target)

        selector = captured[0].selector
        assert selector.endswith(":nth-child(3)")
        assert document.query_all(selector)[0] is target

    def test_type_comes_from_classifier(self, controller, document, captured, signals):
        controller.arm(FieldType.IMAGE)
        _click(document, "h1")

        assert captured[0].type is FieldType.TITLE
        payload = [s for s in signals.signals if s.signal_type is SignalType.RECORD_CAPTURED][0].payload
        assert payload["requested_type"] == "image"
        assert payload["type"] == "title"

    def test_second_click_after_commit_emits_nothing(self, controller, document, captured):
        controller.arm(FieldType.TITLE)
        _click(document, "h1")
        second = _click(document, ".price")
        assert len(captured) == 1
        assert second.default_prevented is False

    def test_at_most_one_record_per_arm_under_event_storm(self, controller, document, captured):
        controller.arm(FieldType.TEXT)
        for selector in ["h1", ".price", "p", "h1", "#hero"]:
            _move(document, selector)
            _click(document, selector)
        assert len(captured) == 1

    def test_rearm_from_subscriber(self, controller, document):
        records = []

        def chain(record):
            records.append(record)
            if len(records) == 1:
                controller.arm(FieldType.PRICE)

        controller.subscribe(chain)
        controller.arm(FieldType.TITLE)
        _click(document, "h1")
        assert controller.state is SelectionState.ARMED
        _click(document, ".price")
        assert [r.type for r in records] == [FieldType.TITLE, FieldType.PRICE]

    def test_failing_subscriber_does_not_block_others(self, controller, document, caplog):
        received = []

        def broken(record):
            raise RuntimeError("receiver down")

        controller.subscribe(broken)
        controller.subscribe(received.append)
        controller.arm(FieldType.TITLE)

        with caplog.at_level(logging.ERROR):
            _click(document, "h1")

        assert len(received) == 1
        assert controller.state is SelectionState.IDLE
        assert any(
            getattr(r, "error_code", None) == "RECORD_SUBSCRIBER_FAILURE" for r in caplog.records
        )

    def test_unsubscribe_stops_delivery(self, controller, document, captured):
        controller.unsubscribe(captured.append)
        controller.arm(FieldType.TITLE)
        _click(document, "h1")
        assert captured == []


class TestRecords:
    def test_value_is_editable_but_selector_is_not(self, controller, document, captured):
        controller.arm(FieldType.TITLE)
        _click(document, "h1")
        record = captured[0]

        record.value = "Edited"
        assert record.value == "Edited"
        with pytest.raises(ValidationError):
            record.selector = "#other"
        with pytest.raises(ValidationError):
            record.type = FieldType.TEXT

    def test_record_ids_are_unique(self, controller, document, captured):
        for selector in ["h1", ".price", "#hero"]:
            controller.arm(FieldType.TEXT)
            _click(document, selector)
        assert len({r.id for r in captured}) == 3


class TestSignals:
    def test_transition_signals_follow_lifecycle(self, controller, document, signals):
        controller.arm(FieldType.TITLE)
        _move(document, "h1")
        _click(document, "h1")

        transitions = [
            (s.payload["from_state"], s.payload["to_state"])
            for s in signals.signals
            if s.signal_type is SignalType.STATE_TRANSITION
        ]
        assert transitions == [
            ("IDLE", "ARMED"),
            ("ARMED", "HIGHLIGHTING"),
            ("HIGHLIGHTING", "IDLE"),
        ]
        assert all(
            s.payload["document_id"] == "doc_test"
            for s in signals.signals
            if s.signal_type is SignalType.STATE_TRANSITION
        )

    def test_disarm_emits_cancellation(self, controller, signals):
        controller.arm(FieldType.LINK)
        controller.disarm()
        cancelled = [s for s in signals.signals if s.signal_type is SignalType.SELECTION_CANCELLED]
        assert len(cancelled) == 1
        assert cancelled[0].payload == {"field_type": "link"}


def test_invalid_transition_raises(controller):
    with pytest.raises(SelectionError):
        controller._transition(SelectionState.HIGHLIGHTING)


def test_controllers_on_different_documents_are_independent():
    first = LiveDocument.from_html(PRODUCT_PAGE, url="https://a.test/")
    second = LiveDocument.from_html(PRODUCT_PAGE, url="https://b.test/")
    a = SelectionController(first)
    b = SelectionController(second)
    records = []
    a.subscribe(records.append)
    b.subscribe(records.append)

    a.arm(FieldType.TITLE)
    b.arm(FieldType.PRICE)
    _click(first, "h1")

    assert a.state is SelectionState.IDLE
    assert b.state is SelectionState.ARMED
    assert second.query_one(f"#{OVERLAY_ID}") is not None

    _click(second, ".price")
    assert [r.source_url for r in records] == ["https://a.test/", "https://b.test/"]
