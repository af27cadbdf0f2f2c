"""Shared fixtures for the planner tests."""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from database import MemoryStore
from planner.itinerary.editor import ItineraryEditor
from planner.itinerary.mapper import LeafletMap
from planner.itinerary.models import Catalog, CatalogPlace, CustomPlace, Day, Itinerary, Visit
from planner.itinerary.store import TripStore
from planner.itinerary.sync import FrameScheduler, ListMapSynchronizer

VERSION = "test-v1"
STORAGE_KEY = "itinerary-planner-test"


class FailingStore:
    """Store collaborator whose every call raises."""

    def get(self, key):
        raise OSError("storage unavailable")

    def set(self, key, value):
        raise OSError("storage unavailable")

    def delete(self, key):
        raise OSError("storage unavailable")


@pytest.fixture
def catalog():
    return Catalog.from_records([
        {"id": "duomo", "title": "Duomo", "city": "Florence", "latitude": 43.7731, "longitude": 11.2560},
        {"id": "uffizi", "title": "Uffizi Gallery", "city": "Florence", "latitude": 43.7678, "longitude": 11.2553},
        {"id": "ponte-vecchio", "title": "Ponte Vecchio", "city": "Florence", "latitude": 43.7680, "longitude": 11.2531},
        {"id": "pitti", "title": "Palazzo Pitti", "city": "Florence", "latitude": 43.7651, "longitude": 11.2500},
        {"id": "boboli", "title": "Boboli Gardens", "city": "Florence", "latitude": 43.7625, "longitude": 11.2480},
        {"id": "colosseum", "title": "Colosseum", "city": "Rome", "latitude": 41.8902, "longitude": 12.4922},
        {"id": "trattoria", "title": "Trattoria Mario", "city": "Florence"},
    ])


@pytest.fixture
def itinerary():
    def catalog_visit(identifier, **kwargs):
        return Visit(id=identifier, place=CatalogPlace(identifier), **kwargs)

    return Itinerary(
        version=VERSION,
        title="Tuscany",
        days=[
            Day(id="d1", label="Florence", visits=[
                catalog_visit("duomo", time="9:00"),
                catalog_visit("uffizi", time="11:00"),
                catalog_visit("ponte-vecchio"),
                catalog_visit("pitti"),
                catalog_visit("boboli"),
            ]),
            Day(id="d2", label="Rome", visits=[
                catalog_visit("colosseum"),
                catalog_visit("trattoria", note="Dinner"),
                Visit(
                    id="custom-hotel",
                    place=CustomPlace(title="Hotel Artemide", city="Rome", latitude=41.9008, longitude=12.4931),
                ),
            ]),
            Day(id="d3", label="Travel day"),
        ],
    )


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def trip_store(memory_store):
    return TripStore(memory_store, STORAGE_KEY, VERSION)


@pytest.fixture
def editor(itinerary, trip_store, catalog):
    return ItineraryEditor(itinerary, trip_store, catalog)


class CountingMapFactory:
    """Map factory that records how many maps were built per day."""

    def __init__(self):
        self.built = {}
        self.maps = []

    def __call__(self, day_id):
        self.built[day_id] = self.built.get(day_id, 0) + 1
        widget = LeafletMap(f"trip-map-{day_id}")
        self.maps.append(widget)
        return widget


@pytest.fixture
def map_factory():
    return CountingMapFactory()


@pytest.fixture
def opened():
    return []


@pytest.fixture
def synchronizer(editor, catalog, map_factory, opened):
    sync = ListMapSynchronizer(
        editor,
        catalog,
        map_factory=map_factory,
        scheduler=FrameScheduler(),
        opener=opened.append,
    )
    sync.render()
    sync.scheduler.flush()
    return sync
