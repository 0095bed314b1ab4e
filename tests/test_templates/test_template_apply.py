"""Tests for applying saved templates to a loaded document."""

import pytest

from extractor.dom.document import LiveDocument
from extractor.selection.models import ExtractionRecord, FieldType, Session, Template
from extractor.templates.apply import FieldValue, TemplateItem, apply_template, match_field

LISTING = """
<html><body>
  <div class="card">
    <h2>Alpha</h2><span class="price">$10.00</span><img src="/a.png">
  </div>
  <div class="card">
    <h2>Beta</h2><span class="price">$12.50</span>
  </div>
  <div class="card"><em>sold out</em></div>
</body></html>
"""


@pytest.fixture
def listing():
    return LiveDocument.from_html(LISTING, url="https://shop.test/list")


class TestPageTemplate:
    def test_unique_selectors_have_full_confidence(self):
        doc = LiveDocument.from_html(
            '<h1 class="title">Widget</h1><span id="cost">$5.00</span>', url="https://shop.test/"
        )
        template = Template(
            name="product", selectors={FieldType.TITLE: ".title", FieldType.PRICE: "#cost"}
        )

        items = apply_template(doc, template)

        assert len(items) == 1
        item = items[0]
        assert item.fields[FieldType.TITLE].value == "Widget"
        assert item.fields[FieldType.PRICE].confidence == 1.0
        assert item.completeness_score == 1.0
        assert item.is_partial is False
        assert item.template_name == "product"
        assert item.source_url == "https://shop.test/"

    def test_ambiguous_selector_takes_first_match(self, listing):
        template = Template(name="t", selectors={FieldType.TITLE: "h2"})
        field = apply_template(listing, template)[0].fields[FieldType.TITLE]
        assert field.value == "Alpha"
        assert field.confidence == 0.5
        assert field.match_count == 2
        assert field.ambiguous is True

    def test_missing_field_marks_item_partial(self, listing):
        template = Template(
            name="t", selectors={FieldType.TITLE: "h2", FieldType.DESCRIPTION: ".blurb"}
        )
        item = apply_template(listing, template)[0]
        assert item.fields[FieldType.DESCRIPTION].value is None
        assert item.fields[FieldType.DESCRIPTION].confidence == 0.0
        assert item.completeness_score == 0.5
        assert item.is_partial is True

    def test_nothing_matched_returns_no_items(self, listing):
        template = Template(name="t", selectors={FieldType.TITLE: "#gone"})
        assert apply_template(listing, template) == []

    def test_empty_template(self, listing):
        assert apply_template(listing, Template(name="empty")) == []


class TestContainerTemplate:
    def test_one_item_per_container_with_data(self, listing):
        template = Template(
            name="cards",
            selectors={
                FieldType.TITLE: "h2",
                FieldType.PRICE: ".price",
                FieldType.IMAGE: "img",
            },
            container_selector=".card",
        )

        items = apply_template(listing, template)

        assert [i.fields[FieldType.TITLE].value for i in items] == ["Alpha", "Beta"]
        assert items[0].fields[FieldType.IMAGE].value == "https://shop.test/a.png"
        assert items[0].fields[FieldType.TITLE].confidence == 1.0
        assert items[1].fields[FieldType.IMAGE].value is None
        assert items[1].completeness_score == pytest.approx(2 / 3)


def test_invalid_selector_is_a_miss(listing):
    field = match_field(listing.root, FieldType.TITLE, "h2:bogus", listing.base_url)
    assert field == FieldValue(value=None, confidence=0.0, source_selector="h2:bogus")


def test_item_from_session_keeps_first_record_per_type():
    session = Session(
        url="https://shop.test/p/1",
        template_name="product",
        records=[
            ExtractionRecord(selector="h1", type=FieldType.TITLE, value="First"),
            ExtractionRecord(selector=".alt", type=FieldType.TITLE, value="Second"),
            ExtractionRecord(selector=".cost", type=FieldType.PRICE, value="$3.00"),
        ],
    )
    item = TemplateItem.from_session(session)
    assert item.fields[FieldType.TITLE].value == "First"
    assert item.fields[FieldType.PRICE].source_selector == ".cost"
    assert item.source_url == "https://shop.test/p/1"
    assert item.template_name == "product"
    assert item.extracted_at == session.created_at
