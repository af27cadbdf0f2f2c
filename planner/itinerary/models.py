"""Data models for the itinerary planner."""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from typing import Any, Optional, Union


def parse_coordinate(value: Any) -> Optional[float]:
    """Parse a latitude or longitude cell. Returns None for blanks and non-numbers."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if not math.isfinite(number):
        return None
    return number


def coordinate_pair(latitude: Any, longitude: Any) -> tuple[Optional[float], Optional[float]]:
    """Parse a latitude/longitude pair. Both are None unless both parse."""
    lat = parse_coordinate(latitude)
    lng = parse_coordinate(longitude)
    if lat is None or lng is None:
        return None, None
    return lat, lng


@dataclass
class CatalogEntry:
    """A catalog location that visits can reference by identifier."""

    id: str
    title: str
    city: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @classmethod
    def from_dict(cls, data: dict) -> CatalogEntry:
        lat, lng = coordinate_pair(
            data.get("latitude", data.get("lat")),
            data.get("longitude", data.get("lng")),
        )
        return cls(
            id=str(data["id"]),
            title=data.get("title") or str(data["id"]),
            city=data.get("city") or "",
            latitude=lat,
            longitude=lng,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "city": self.city,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


class Catalog:
    """Read-only lookup of catalog locations keyed by identifier."""

    def __init__(self, entries: Optional[list[CatalogEntry]] = None):
        self._entries: dict[str, CatalogEntry] = {}
        for entry in entries or []:
            self._entries[entry.id] = entry

    @classmethod
    def from_records(cls, records: list[dict]) -> Catalog:
        return cls([CatalogEntry.from_dict(record) for record in records])

    def get(self, identifier: str) -> Optional[CatalogEntry]:
        return self._entries.get(identifier)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._entries

    def __iter__(self):
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(frozen=True)
class CatalogPlace:
    """A visit whose display fields come from the catalog."""

    identifier: str


@dataclass
class CustomPlace:
    """A visit that carries its display fields inline."""

    title: str
    city: str = ""
    subtitle: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    page: Optional[str] = None  # detail-page identifier, if the place has one

    def __post_init__(self):
        self.latitude, self.longitude = coordinate_pair(self.latitude, self.longitude)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


Place = Union[CatalogPlace, CustomPlace]


@dataclass
class PlaceRecord:
    """Uniform display record for a visit, whatever its origin."""

    id: str
    title: str
    subtitle: str = ""
    city: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_custom: bool = False
    page: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def href(self) -> Optional[str]:
        """Relative link to the place's detail page."""
        if self.page:
            return f"locations/{self.page}.html"
        return None


@dataclass
class Visit:
    """A single location visit within a day."""

    id: str
    place: Place
    time: str = ""
    note: str = ""
    map_link: str = ""
    booking_note: Optional[str] = None
    booking_link: Optional[str] = None

    @property
    def is_custom(self) -> bool:
        return isinstance(self.place, CustomPlace)

    @classmethod
    def from_dict(cls, data: dict) -> Visit:
        visit_id = str(data["id"])
        if data.get("custom"):
            place: Place = CustomPlace(
                title=data.get("title") or "Custom Location",
                city=data.get("city") or "",
                subtitle=data.get("subtitle") or "",
                latitude=data.get("latitude", data.get("lat")),
                longitude=data.get("longitude", data.get("lng")),
                page=data.get("page"),
            )
        else:
            place = CatalogPlace(visit_id)
        return cls(
            id=visit_id,
            place=place,
            time=data.get("time") or "",
            note=data.get("note", data.get("comment")) or "",
            map_link=data.get("map_link", data.get("mapLink")) or "",
            booking_note=data.get("booking_note"),
            booking_link=data.get("booking_link"),
        )

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "custom": self.is_custom,
            "time": self.time,
            "note": self.note,
            "map_link": self.map_link,
            "booking_note": self.booking_note,
            "booking_link": self.booking_link,
        }
        if isinstance(self.place, CustomPlace):
            data.update({
                "title": self.place.title,
                "city": self.place.city,
                "subtitle": self.place.subtitle,
                "latitude": self.place.latitude,
                "longitude": self.place.longitude,
                "page": self.place.page,
            })
        return data


def resolve_place(visit: Visit, catalog: Optional[Catalog] = None) -> PlaceRecord:
    """Resolve a visit to its display record.

    Unknown catalog identifiers resolve to a record titled by the identifier,
    without coordinates.
    """
    place = visit.place
    if isinstance(place, CustomPlace):
        return PlaceRecord(
            id=visit.id,
            title=place.title,
            subtitle=place.subtitle,
            city=place.city,
            latitude=place.latitude,
            longitude=place.longitude,
            is_custom=True,
            page=place.page,
        )

    entry = catalog.get(place.identifier) if catalog else None
    if entry is None:
        return PlaceRecord(id=visit.id, title=place.identifier, page=place.identifier)
    return PlaceRecord(
        id=visit.id,
        title=entry.title,
        city=entry.city,
        latitude=entry.latitude,
        longitude=entry.longitude,
        page=entry.id,
    )


@dataclass
class Day:
    """One day of the trip: a label and an ordered list of visits."""

    id: str
    label: str
    visits: list[Visit] = field(default_factory=list)

    def find_visit(self, visit_id: str) -> Optional[Visit]:
        for visit in self.visits:
            if visit.id == visit_id:
                return visit
        return None

    def has_visit(self, visit_id: str) -> bool:
        return self.find_visit(visit_id) is not None

    @property
    def visit_ids(self) -> list[str]:
        return [visit.id for visit in self.visits]

    @classmethod
    def from_dict(cls, data: dict) -> Day:
        entries = data.get("visits", data.get("locations")) or []
        visits = []
        for entry in entries:
            # Very old blobs stored bare catalog identifiers
            if isinstance(entry, str):
                entry = {"id": entry}
            visits.append(Visit.from_dict(entry))
        return cls(id=str(data["id"]), label=data.get("label") or "", visits=visits)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "visits": [visit.to_dict() for visit in self.visits],
        }


@dataclass
class Itinerary:
    """A complete trip: schema version plus ordered days."""

    version: str
    days: list[Day] = field(default_factory=list)
    title: Optional[str] = None

    def find_day(self, day_id: str) -> Optional[Day]:
        for day in self.days:
            if day.id == day_id:
                return day
        return None

    @property
    def visit_count(self) -> int:
        return sum(len(day.visits) for day in self.days)

    def copy(self) -> Itinerary:
        return copy.deepcopy(self)

    @classmethod
    def from_dict(cls, data: dict) -> Itinerary:
        return cls(
            version=str(data.get("version", "")),
            title=data.get("title"),
            days=[Day.from_dict(day) for day in data.get("days") or []],
        )

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "title": self.title,
            "days": [day.to_dict() for day in self.days],
        }
