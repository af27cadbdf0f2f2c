"""Guided create/edit forms for visits."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .editor import COMMON_FIELDS, ItineraryEditor, ValidationError
from .models import Catalog, CustomPlace, Day, Visit, coordinate_pair, resolve_place

OTHER_CITY = "Other"

# Field order of the forms; the first editable field gets focus when a form opens
CUSTOM_FORM_FIELDS = ("title", "city", "time", "note", "map_link", "latitude", "longitude")
CATALOG_FORM_FIELDS = ("time", "note", "map_link")


@dataclass
class PickerEntry:
    id: str
    title: str
    already_added: bool = False

    @property
    def disabled(self) -> bool:
        return self.already_added


@dataclass
class CityGroup:
    city: str
    entries: list[PickerEntry] = field(default_factory=list)


@dataclass
class FormResult:
    saved: bool
    focus: Optional[str] = None  # field to return focus to when not saved
    visit: Optional[Visit] = None
    error: Optional[str] = None


class CatalogPicker:
    """City-grouped, filterable list of catalog locations for one day."""

    def __init__(self, catalog: Catalog, day: Day, strip_city_suffix: Optional[str] = None):
        self.catalog = catalog
        self.day = day
        self.strip_city_suffix = strip_city_suffix

    def _city(self, city: str) -> str:
        if city and self.strip_city_suffix and city.endswith(self.strip_city_suffix):
            city = city[: -len(self.strip_city_suffix)].strip()
        return city or OTHER_CITY

    def groups(self, filter_text: str = "") -> list[CityGroup]:
        needle = filter_text.strip().lower()
        by_city: dict[str, list] = {}
        for entry in self.catalog:
            by_city.setdefault(self._city(entry.city), []).append(entry)

        groups = []
        for city in sorted(by_city):
            entries = sorted(by_city[city], key=lambda entry: entry.title.lower())
            matched = [
                PickerEntry(
                    id=entry.id,
                    title=entry.title,
                    already_added=self.day.has_visit(entry.id),
                )
                for entry in entries
                if not needle or needle in entry.title.lower() or needle in city.lower()
            ]
            if matched:
                groups.append(CityGroup(city=city, entries=matched))
        return groups

    def choose(self, editor: ItineraryEditor, identifier: str) -> Optional[Visit]:
        """Add the chosen entry. Already-added entries are disabled."""
        if identifier not in self.catalog or self.day.has_visit(identifier):
            return None
        return editor.add_visit(self.day.id, identifier)


def _coordinates(values: dict) -> tuple[Optional[float], Optional[float]]:
    return coordinate_pair(values.get("latitude"), values.get("longitude"))


class CustomVisitForm:
    """Free-form entry for a location that is not in the catalog."""

    fields = CUSTOM_FORM_FIELDS
    focus = "title"

    def __init__(self, editor: ItineraryEditor, day_id: str):
        self.editor = editor
        self.day_id = day_id

    def submit(self, values: dict) -> FormResult:
        if not str(values.get("title") or "").strip():
            return FormResult(saved=False, focus="title", error="Name is required")

        latitude, longitude = _coordinates(values)
        fields = {name: values.get(name) for name in self.fields}
        fields.update(latitude=latitude, longitude=longitude)
        try:
            visit = self.editor.add_custom_visit(self.day_id, fields)
        except ValidationError as e:
            return FormResult(saved=False, focus=e.field, error=str(e))
        return FormResult(saved=True, visit=visit)


class EditVisitForm:
    """Edit an existing visit, pre-populated with its current values."""

    def __init__(self, editor: ItineraryEditor, day_id: str, visit_id: str, catalog: Optional[Catalog] = None):
        self.editor = editor
        self.day_id = day_id
        self.visit = editor.day(day_id).find_visit(visit_id)
        if self.visit is None:
            raise KeyError(visit_id)
        self.catalog = catalog if catalog is not None else editor.catalog

    @property
    def is_custom(self) -> bool:
        return self.visit.is_custom

    @property
    def editable(self) -> tuple[str, ...]:
        return CUSTOM_FORM_FIELDS if self.is_custom else CATALOG_FORM_FIELDS

    @property
    def focus(self) -> str:
        return self.editable[0]

    @property
    def title(self) -> str:
        return resolve_place(self.visit, self.catalog).title

    @property
    def fields(self) -> dict:
        record = resolve_place(self.visit, self.catalog)
        return {
            "title": record.title,
            "city": record.city,
            "time": self.visit.time,
            "note": self.visit.note,
            "map_link": self.visit.map_link,
            "latitude": record.latitude,
            "longitude": record.longitude,
        }

    def submit(self, values: dict) -> FormResult:
        changes = {name: values[name] for name in self.editable if name in values}

        if self.is_custom:
            if "title" in changes and not str(changes["title"] or "").strip():
                return FormResult(saved=False, focus="title", error="Name is required")
            if "latitude" in changes or "longitude" in changes:
                place: CustomPlace = self.visit.place
                changes["latitude"], changes["longitude"] = coordinate_pair(
                    changes.get("latitude", place.latitude),
                    changes.get("longitude", place.longitude),
                )

        # Catalog-owned values are read-only here: ignore them rather than fail.
        changes = {
            name: value for name, value in changes.items()
            if self.is_custom or name in COMMON_FIELDS
        }

        try:
            visit = self.editor.edit_visit(self.day_id, self.visit.id, **changes)
        except ValidationError as e:
            return FormResult(saved=False, focus=e.field, error=str(e))
        return FormResult(saved=True, visit=visit)
