"""Tests for the catalog picker and the visit forms."""

import pytest

from planner.itinerary.forms import (
    CATALOG_FORM_FIELDS,
    CUSTOM_FORM_FIELDS,
    OTHER_CITY,
    CatalogPicker,
    CustomVisitForm,
    EditVisitForm,
)
from planner.itinerary.models import Catalog, Day


def test_picker_groups_by_city_and_marks_added(catalog, editor):
    picker = CatalogPicker(catalog, editor.day("d2"))
    groups = picker.groups()
    assert [group.city for group in groups] == ["Florence", "Rome"]

    florence = groups[0]
    assert [entry.title for entry in florence.entries] == [
        "Boboli Gardens", "Duomo", "Palazzo Pitti", "Ponte Vecchio", "Trattoria Mario", "Uffizi Gallery",
    ]
    assert [entry.disabled for entry in florence.entries if entry.id == "trattoria"] == [True]
    assert groups[1].entries[0].disabled


def test_picker_filter_matches_title_or_city(catalog, editor):
    picker = CatalogPicker(catalog, editor.day("d3"))
    assert [entry.id for group in picker.groups("ponte") for entry in group.entries] == ["ponte-vecchio"]
    assert [group.city for group in picker.groups("ROME")] == ["Rome"]
    assert picker.groups("zzz") == []


def test_picker_city_fallback_and_suffix():
    catalog = Catalog.from_records([
        {"id": "a", "title": "Alpha", "city": "Lucca, Italy"},
        {"id": "b", "title": "Beta"},
    ])
    picker = CatalogPicker(catalog, Day(id="d", label="D"), strip_city_suffix=", Italy")
    assert [group.city for group in picker.groups()] == ["Lucca", OTHER_CITY]


def test_picker_choose(catalog, editor):
    picker = CatalogPicker(catalog, editor.day("d3"))
    assert picker.choose(editor, "duomo") is not None
    assert picker.choose(editor, "duomo") is None
    assert picker.choose(editor, "unknown") is None
    assert editor.day("d3").visit_ids == ["duomo"]


def test_custom_form_requires_name(editor):
    form = CustomVisitForm(editor, "d3")
    assert form.focus == "title"
    result = form.submit({"title": "", "city": "Rome"})
    assert not result.saved
    assert result.focus == "title"
    assert editor.day("d3").visits == []


def test_custom_form_saves(editor):
    result = CustomVisitForm(editor, "d3").submit({
        "title": "Mercato Centrale",
        "city": "Florence",
        "latitude": "43.776",
        "longitude": "11.253",
    })
    assert result.saved
    assert result.visit.place.has_coordinates
    assert editor.day("d3").visits == [result.visit]


def test_edit_form_for_catalog_visit(editor, catalog):
    form = EditVisitForm(editor, "d1", "duomo", catalog)
    assert not form.is_custom
    assert form.editable == CATALOG_FORM_FIELDS
    assert form.focus == "time"
    assert form.title == "Duomo"
    assert form.fields["time"] == "9:00"
    assert form.fields["city"] == "Florence"

    result = form.submit({"time": "8:00", "title": "Ignored"})
    assert result.saved
    assert result.visit.time == "8:00"
    assert form.title == "Duomo"


def test_edit_form_for_custom_visit(editor, catalog):
    form = EditVisitForm(editor, "d2", "custom-hotel", catalog)
    assert form.is_custom
    assert form.editable == CUSTOM_FORM_FIELDS
    assert form.fields["latitude"] == 41.9008

    result = form.submit({"title": "  ", "note": "late check-in"})
    assert not result.saved
    assert result.focus == "title"
    assert form.visit.note == ""

    result = form.submit({"longitude": "not a number"})
    assert result.saved
    assert not result.visit.place.has_coordinates


def test_edit_form_unknown_visit(editor):
    with pytest.raises(KeyError):
        EditVisitForm(editor, "d1", "nowhere")
