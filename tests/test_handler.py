"""Tests for the planner API handlers."""

import json

import pytest
import requests

from database import MemoryStore
from planner.edit import handler
from planner.itinerary import feed as feed_module

FEED_URL = "https://docs.google.com/spreadsheets/d/abc/gviz/tq"


@pytest.fixture
def data_dir(tmp_path):
    (tmp_path / "trip.json").write_text(json.dumps({
        "version": "h1",
        "title": "Handler trip",
        "days": [
            {"id": "d1", "label": "One", "visits": [{"id": "duomo"}, {"id": "uffizi"}, {"id": "pitti"}]},
            {"id": "d2", "label": "Two", "visits": []},
        ],
    }))
    (tmp_path / "catalog.json").write_text(json.dumps([
        {"id": "duomo", "title": "Duomo", "city": "Florence", "latitude": 43.7731, "longitude": 11.2560},
        {"id": "uffizi", "title": "Uffizi Gallery", "city": "Florence", "latitude": 43.7678, "longitude": 11.2553},
        {"id": "pitti", "title": "Palazzo Pitti", "city": "Florence", "latitude": 43.7651, "longitude": 11.2500},
        {"id": "colosseum", "title": "Colosseum", "city": "Rome", "latitude": 41.8902, "longitude": 12.4922},
    ]))
    return tmp_path


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def session(data_dir, store):
    return handler.build_session(feed_url="", data_dir=data_dir, store=store)


def test_get_trip(session):
    payload, status = handler.get_trip_handler(session)
    assert status == 200
    assert payload["success"]
    assert [day["id"] for day in payload["days"]] == ["d1", "d2"]
    assert len(payload["maps"]["d1"]["markers"]) == 3
    assert payload["maps"]["d2"] is None


def test_edits_survive_a_new_session(session, data_dir, store):
    payload, status = handler.add_visit_handler(session, {"day_id": "d2", "id": "colosseum"})
    assert status == 200 and payload["added"]

    reopened = handler.build_session(feed_url="", data_dir=data_dir, store=store)
    assert reopened.editor.day("d2").visit_ids == ["colosseum"]


def test_add_visit_twice(session):
    handler.add_visit_handler(session, {"day_id": "d2", "id": "duomo"})
    payload, status = handler.add_visit_handler(session, {"day_id": "d2", "id": "duomo"})
    assert status == 200
    assert payload == {"success": True, "added": False}


def test_add_unknown_catalog_id(session):
    payload, status = handler.add_visit_handler(session, {"day_id": "d2", "id": "nowhere"})
    assert status == 404
    assert not payload["success"]


def test_unknown_day_is_404(session):
    payload, status = handler.rename_day_handler(session, {"day_id": "d9", "label": "x"})
    assert status == 404
    assert "d9" in payload["error"]


def test_missing_field_is_400(session):
    payload, status = handler.move_visit_handler(session, {"day_id": "d1"})
    assert status == 400
    assert payload["field"] == "from_index"


def test_move(session):
    payload, status = handler.move_visit_handler(session, {"day_id": "d1", "from_index": 2, "to_index": 0})
    assert status == 200 and payload["moved"]
    assert session.editor.day("d1").visit_ids == ["pitti", "duomo", "uffizi"]

    payload, status = handler.move_visit_handler(session, {"day_id": "d1", "from_index": 0, "to_index": 7})
    assert status == 400


def test_delete_day_needs_confirmation(session):
    payload, status = handler.delete_day_handler(session, {"day_id": "d1"})
    assert status == 409
    assert payload["confirm"] == 'Delete "One" with 3 locations?'

    payload, status = handler.delete_day_handler(session, {"day_id": "d1", "confirmed": True})
    assert status == 200
    assert session.editor.itinerary.find_day("d1") is None


def test_string_confirmation_is_not_a_confirmation(session):
    payload, status = handler.delete_day_handler(session, {"day_id": "d1", "confirmed": "false"})
    assert status == 409
    assert session.editor.itinerary.find_day("d1") is not None

    payload, status = handler.reset_handler(session, {"confirmed": "true"})
    assert status == 409


def test_add_day_and_rename(session):
    payload, _ = handler.add_day_handler(session)
    day_id = payload["day"]["id"]
    assert payload["day"]["label"] == "Day 3"
    payload, _ = handler.rename_day_handler(session, {"day_id": day_id, "label": "Lucca"})
    assert payload["day"]["label"] == "Lucca"


def test_custom_visit_and_edit(session):
    payload, status = handler.add_custom_visit_handler(session, {"day_id": "d2", "fields": {"title": ""}})
    assert status == 400
    assert payload["field"] == "title"

    payload, status = handler.add_custom_visit_handler(
        session, {"day_id": "d2", "fields": {"title": "Gelato", "latitude": 43.77, "longitude": 11.25}}
    )
    assert status == 200
    visit_id = payload["visit"]["id"]

    payload, status = handler.edit_visit_handler(
        session, {"day_id": "d2", "visit_id": visit_id, "fields": {"note": "two scoops"}}
    )
    assert status == 200
    assert payload["visit"]["note"] == "two scoops"

    payload, status = handler.remove_visit_handler(session, {"day_id": "d2", "visit_id": visit_id})
    assert payload["removed"]


def test_edit_missing_visit_is_404(session):
    payload, status = handler.edit_visit_handler(session, {"day_id": "d1", "visit_id": "nope", "fields": {}})
    assert status == 404


def test_reset(session, store):
    handler.add_visit_handler(session, {"day_id": "d2", "id": "colosseum"})

    payload, status = handler.reset_handler(session, {})
    assert status == 409
    assert "Reset trip planner to default?" in payload["confirm"]

    payload, status = handler.reset_handler(session, {"confirmed": True})
    assert status == 200
    assert session.editor.day("d2").visits == []


def test_catalog_handler(session):
    payload, status = handler.catalog_handler(session, {"day": "d1", "q": ""})
    assert status == 200
    florence = payload["groups"][0]
    assert florence["city"] == "Florence"
    assert all(entry["disabled"] for entry in florence["entries"])
    assert payload["groups"][1]["entries"] == [{"id": "colosseum", "title": "Colosseum", "disabled": False}]


def test_refresh_without_feed(session):
    payload, status = handler.refresh_feed_handler(session)
    assert status == 400


def test_feed_session_offers_retry(monkeypatch, data_dir, store):
    def fake_get(url, **kwargs):
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(feed_module.requests, "get", fake_get)
    session = handler.build_session(feed_url=FEED_URL, data_dir=data_dir, store=store)
    assert session.feed_mode
    assert session.error

    payload, status = handler.get_trip_handler(session)
    assert payload["retry"] is True

    payload, status = handler.refresh_feed_handler(session)
    assert status == 502
    assert payload["retry"] is True


def test_actions_cover_every_mutation():
    assert set(handler.ACTIONS) == {
        "add-day", "delete-day", "rename-day", "add-visit", "add-custom-visit",
        "edit-visit", "remove-visit", "move", "reset", "refresh-feed",
    }
