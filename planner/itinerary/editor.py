"""Mutation operations on the in-memory itinerary, written through to storage."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .models import (
    Catalog,
    CatalogPlace,
    CustomPlace,
    Day,
    Itinerary,
    Visit,
    coordinate_pair,
)
from .store import TripStore

logger = logging.getLogger(__name__)

# Change kinds delivered to listeners
DAY_CHANGED = "day"
ITINERARY_CHANGED = "itinerary"
TRIP_REPLACED = "trip"  # a different itinerary object is now current

# Fields any visit may edit; custom visits may also edit CUSTOM_FIELDS
COMMON_FIELDS = ("time", "note", "map_link", "booking_note", "booking_link")
CUSTOM_FIELDS = ("title", "city", "subtitle", "latitude", "longitude")


class ValidationError(ValueError):
    """A required field is empty or a field may not be edited."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class UnknownDayError(KeyError):
    """No day with the given identifier exists."""


@dataclass
class Change:
    kind: str
    day_id: Optional[str] = None


Confirm = Callable[[str], bool]


def _clean(value: Any) -> str:
    return "" if value is None else str(value).strip()


class ItineraryEditor:
    """Owns the single in-memory Itinerary and applies user edits to it.

    Every successful mutation is saved through the TripStore (best effort) and
    then announced to listeners, in that order.
    """

    def __init__(self, itinerary: Itinerary, trip_store: Optional[TripStore] = None, catalog: Optional[Catalog] = None):
        self.itinerary = itinerary
        self.trip_store = trip_store
        self.catalog = catalog or Catalog()
        self._listeners: list[Callable[[Change], None]] = []

    def subscribe(self, listener: Callable[[Change], None]) -> None:
        self._listeners.append(listener)

    def day(self, day_id: str) -> Day:
        day = self.itinerary.find_day(day_id)
        if day is None:
            raise UnknownDayError(day_id)
        return day

    def _commit(self, change: Change) -> None:
        if self.trip_store is not None:
            self.trip_store.save(self.itinerary)
        for listener in list(self._listeners):
            listener(change)

    def _new_id(self, prefix: str, taken: set[str]) -> str:
        while True:
            candidate = f"{prefix}-{uuid.uuid4().hex[:8]}"
            if candidate not in taken:
                return candidate

    # ---- days ----

    def add_day(self) -> Day:
        taken = {day.id for day in self.itinerary.days}
        day = Day(
            id=self._new_id("day", taken),
            label=f"Day {len(self.itinerary.days) + 1}",
        )
        self.itinerary.days.append(day)
        logger.info("[EDIT] Added %s (%s)", day.id, day.label)
        self._commit(Change(ITINERARY_CHANGED))
        return day

    def delete_day(self, day_id: str, confirm: Optional[Confirm] = None) -> bool:
        """Delete a day. A day with visits is only deleted if confirm() agrees."""
        day = self.day(day_id)
        if day.visits:
            message = f'Delete "{day.label}" with {len(day.visits)} locations?'
            if confirm is None or not confirm(message):
                logger.info("[EDIT] Delete of %s not confirmed", day_id)
                return False

        self.itinerary.days.remove(day)
        logger.info("[EDIT] Deleted %s", day_id)
        self._commit(Change(ITINERARY_CHANGED, day_id))
        return True

    def rename_day(self, day_id: str, label: str) -> Day:
        day = self.day(day_id)
        day.label = label
        self._commit(Change(DAY_CHANGED, day_id))
        return day

    # ---- visits ----

    def add_visit(self, day_id: str, identifier: str) -> Optional[Visit]:
        """Append a catalog visit. Returns None if the day already has it."""
        day = self.day(day_id)
        if day.has_visit(identifier):
            return None
        visit = Visit(id=identifier, place=CatalogPlace(identifier))
        day.visits.append(visit)
        self._commit(Change(DAY_CHANGED, day_id))
        return visit

    def add_custom_visit(self, day_id: str, fields: dict) -> Visit:
        """Append a free-form visit. The title is required."""
        day = self.day(day_id)
        title = _clean(fields.get("title"))
        if not title:
            raise ValidationError("title", "Name is required")

        latitude, longitude = coordinate_pair(fields.get("latitude"), fields.get("longitude"))
        visit = Visit(
            id=self._new_id("custom", set(day.visit_ids)),
            place=CustomPlace(
                title=title,
                city=_clean(fields.get("city")),
                subtitle=_clean(fields.get("subtitle")),
                latitude=latitude,
                longitude=longitude,
            ),
            time=_clean(fields.get("time")),
            note=_clean(fields.get("note")),
            map_link=_clean(fields.get("map_link")),
            booking_note=_clean(fields.get("booking_note")) or None,
            booking_link=_clean(fields.get("booking_link")) or None,
        )
        day.visits.append(visit)
        self._commit(Change(DAY_CHANGED, day_id))
        return visit

    def remove_visit(self, day_id: str, visit_id: str) -> bool:
        day = self.day(day_id)
        for index, visit in enumerate(day.visits):
            if visit.id == visit_id:
                del day.visits[index]
                self._commit(Change(DAY_CHANGED, day_id))
                return True
        return False

    def edit_visit(self, day_id: str, visit_id: str, **changes: Any) -> Visit:
        """Update a visit in place.

        Catalog visits take their name, city and coordinates from the catalog,
        so only COMMON_FIELDS can change on them.
        """
        day = self.day(day_id)
        visit = day.find_visit(visit_id)
        if visit is None:
            raise KeyError(visit_id)

        unknown = set(changes) - set(COMMON_FIELDS) - set(CUSTOM_FIELDS)
        if unknown:
            raise ValidationError(sorted(unknown)[0], f"Unknown field: {sorted(unknown)[0]}")

        place = visit.place
        custom_changes = {name: changes[name] for name in CUSTOM_FIELDS if name in changes}
        if custom_changes and not isinstance(place, CustomPlace):
            field = next(iter(custom_changes))
            raise ValidationError(field, f"{field} comes from the catalog and cannot be edited")

        if isinstance(place, CustomPlace):
            if "title" in custom_changes:
                title = _clean(custom_changes["title"])
                if not title:
                    raise ValidationError("title", "Name is required")
                place.title = title
            if "city" in custom_changes:
                place.city = _clean(custom_changes["city"])
            if "subtitle" in custom_changes:
                place.subtitle = _clean(custom_changes["subtitle"])
            if "latitude" in custom_changes or "longitude" in custom_changes:
                place.latitude, place.longitude = coordinate_pair(
                    custom_changes.get("latitude", place.latitude),
                    custom_changes.get("longitude", place.longitude),
                )

        for name in ("time", "note", "map_link"):
            if name in changes:
                setattr(visit, name, _clean(changes[name]))
        for name in ("booking_note", "booking_link"):
            if name in changes:
                setattr(visit, name, _clean(changes[name]) or None)

        self._commit(Change(DAY_CHANGED, day_id))
        return visit

    def move_visit(self, day_id: str, from_index: int, to_index: int) -> bool:
        """Move the visit at from_index so it ends up at to_index (one splice)."""
        day = self.day(day_id)
        count = len(day.visits)
        if not (0 <= from_index < count and 0 <= to_index < count):
            raise IndexError(f"Cannot move {from_index} -> {to_index} in a day of {count} visits")
        if from_index == to_index:
            return False

        visit = day.visits.pop(from_index)
        day.visits.insert(to_index, visit)
        logger.debug("[EDIT] Moved %s in %s: %d -> %d", visit.id, day_id, from_index, to_index)
        self._commit(Change(DAY_CHANGED, day_id))
        return True

    # ---- whole trip ----

    def replace(self, itinerary: Itinerary) -> None:
        self.itinerary = itinerary
        self._commit(Change(TRIP_REPLACED))

    def reset_to_default(self, reference: Itinerary, confirm: Optional[Confirm] = None) -> bool:
        """Discard the persisted copy and reload the reference data."""
        if confirm is not None and not confirm("Reset trip planner to default? Your changes will be lost."):
            return False
        if self.trip_store is not None:
            self.trip_store.clear()
        self.itinerary = reference.copy()
        logger.info("[EDIT] Reset to reference data (version %s)", reference.version)
        for listener in list(self._listeners):
            listener(Change(TRIP_REPLACED))
        return True
