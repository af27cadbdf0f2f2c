"""Keep each day's list view and map view in two-way sync.

The list is rebuilt synchronously on every change; the map layer of a day is
torn down and rebuilt from scratch on the next frame, once the list exists.
Markers are kept in a per-day registry keyed by the visit's index in the day,
so list rows and markers can find each other in both directions.
"""

from __future__ import annotations

import logging
import time
import webbrowser
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Hashable, Optional

from .editor import DAY_CHANGED, TRIP_REPLACED, Change, ItineraryEditor
from .mapper import (
    FIT_PADDING,
    FOCUS_ZOOM,
    ROUTE_HOVER_STYLE,
    ROUTE_STYLE,
    LeafletMap,
    MapWidget,
    Marker,
    Polyline,
    directions_url,
    numbered_icon,
    popup_html,
)
from .models import Catalog, Day, PlaceRecord, resolve_place

logger = logging.getLogger(__name__)

EMPTY_MAP_TEXT = "Add locations with coordinates to see the map"
LONG_PRESS_SECONDS = 0.5

# Sentinel for an insertion indicator after the last row
END = -1


class FrameScheduler:
    """Defers callbacks to the next frame, one pending callback per key."""

    def __init__(self):
        self._pending: dict[Hashable, Callable[[], None]] = {}

    def request(self, key: Hashable, callback: Callable[[], None]) -> None:
        self._pending[key] = callback

    @property
    def pending(self) -> int:
        return len(self._pending)

    def flush(self) -> int:
        """Run everything requested so far. Returns how many callbacks ran."""
        ran = 0
        while self._pending:
            batch, self._pending = self._pending, {}
            for callback in batch.values():
                callback()
                ran += 1
        return ran


@dataclass
class ListRow:
    index: int
    visit_id: str
    title: str
    subtitle: str = ""
    city: str = ""
    time: str = ""
    note: str = ""
    map_link: str = ""
    booking_note: Optional[str] = None
    booking_link: Optional[str] = None
    href: Optional[str] = None
    is_custom: bool = False
    located: bool = False
    highlighted: bool = False

    @property
    def number(self) -> int:
        return self.index + 1

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "number": self.number,
            "id": self.visit_id,
            "title": self.title,
            "subtitle": self.subtitle,
            "city": self.city,
            "time": self.time,
            "note": self.note,
            "map_link": self.map_link,
            "booking_note": self.booking_note,
            "booking_link": self.booking_link,
            "href": self.href,
            "custom": self.is_custom,
            "located": self.located,
        }


@dataclass
class DayView:
    day_id: str
    label: str
    rows: list[ListRow] = field(default_factory=list)
    placeholder: Optional[str] = None
    show_route_legend: bool = False
    indicator: Optional[int] = None  # row index the drop indicator precedes, or END
    dragging: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.day_id,
            "label": self.label,
            "rows": [row.to_dict() for row in self.rows],
            "placeholder": self.placeholder,
            "route_legend": self.show_route_legend,
        }


@dataclass
class DayLayer:
    """Live widget handles for one day's map."""

    widget: MapWidget
    markers: dict[int, Marker] = field(default_factory=dict)  # sparse: located visits only
    lines: list[Polyline] = field(default_factory=list)


def default_map_factory(day_id: str) -> MapWidget:
    return LeafletMap(f"trip-map-{day_id}")


class ListMapSynchronizer:
    """Renders days as list rows plus map layers and routes events between them."""

    def __init__(
        self,
        editor: ItineraryEditor,
        catalog: Optional[Catalog] = None,
        map_factory: Callable[[str], MapWidget] = default_map_factory,
        scheduler: Optional[FrameScheduler] = None,
        opener: Callable[[str], object] = webbrowser.open_new_tab,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.editor = editor
        self.catalog = catalog if catalog is not None else editor.catalog
        self.map_factory = map_factory
        self.scheduler = scheduler or FrameScheduler()
        self.opener = opener
        self.clock = clock
        self.views: dict[str, DayView] = {}
        self.layers: dict[str, DayLayer] = {}
        self._rendered_listeners: list[Callable[[list[str]], None]] = []
        self._press: Optional[tuple[str, int, float]] = None
        editor.subscribe(self._on_change)

    # ---- rendering ----

    def on_content_rendered(self, listener: Callable[[list[str]], None]) -> None:
        self._rendered_listeners.append(listener)

    def _fire_rendered(self, day_ids: list[str]) -> None:
        for listener in list(self._rendered_listeners):
            listener(day_ids)

    def _on_change(self, change: Change) -> None:
        if change.kind == TRIP_REPLACED:
            # day ids may repeat across trips; no old marker may outlive the swap
            self.teardown_all()
            self.render()
        elif change.kind == DAY_CHANGED and change.day_id:
            self.render_day(change.day_id)
        else:
            self.render()

    def render(self) -> list[DayView]:
        days = self.editor.itinerary.days
        live = {day.id for day in days}
        for day_id in list(self.layers):
            if day_id not in live:
                self.teardown(day_id)

        self.views = {day.id: self._build_view(day) for day in days}
        for day in days:
            self._schedule_map(day.id)

        self._fire_rendered([day.id for day in days])
        return list(self.views.values())

    def render_day(self, day_id: str) -> Optional[DayView]:
        day = self.editor.itinerary.find_day(day_id)
        if day is None:
            self.teardown(day_id)
            self.views.pop(day_id, None)
            return None

        view = self._build_view(day)
        self.views[day_id] = view
        self._schedule_map(day_id)
        self._fire_rendered([day_id])
        return view

    def _records(self, day: Day) -> list[PlaceRecord]:
        return [resolve_place(visit, self.catalog) for visit in day.visits]

    def _build_view(self, day: Day) -> DayView:
        rows = []
        for index, (visit, record) in enumerate(zip(day.visits, self._records(day))):
            rows.append(ListRow(
                index=index,
                visit_id=visit.id,
                title=record.title,
                subtitle=record.subtitle,
                city=record.city,
                time=visit.time,
                note=visit.note,
                map_link=visit.map_link,
                booking_note=visit.booking_note,
                booking_link=visit.booking_link,
                href=record.href,
                is_custom=record.is_custom,
                located=record.has_coordinates,
            ))
        return DayView(day_id=day.id, label=day.label, rows=rows)

    # ---- map layers ----

    def _schedule_map(self, day_id: str) -> None:
        self.scheduler.request(("map", day_id), partial(self.rebuild_map, day_id))

    def teardown(self, day_id: str) -> None:
        layer = self.layers.pop(day_id, None)
        if layer is not None:
            layer.widget.remove()

    def teardown_all(self) -> None:
        for day_id in list(self.layers):
            self.teardown(day_id)

    def rebuild_map(self, day_id: str) -> Optional[DayLayer]:
        """Replace the day's map layer with one built from its current visits."""
        self.teardown(day_id)
        day = self.editor.itinerary.find_day(day_id)
        view = self.views.get(day_id)
        if day is None or view is None:
            return None

        located = [
            (index, record)
            for index, record in enumerate(self._records(day))
            if record.has_coordinates
        ]
        if not located:
            view.placeholder = EMPTY_MAP_TEXT
            view.show_route_legend = False
            return None

        layer = DayLayer(widget=self.map_factory(day_id))
        for index, record in located:
            marker = layer.widget.add_marker(
                (record.latitude, record.longitude), numbered_icon(index + 1)
            )
            marker.index = index
            marker.bind_popup(popup_html(record.title, record.city))
            marker.on("mouseover", partial(self.highlight_row, day_id, index, True))
            marker.on("mouseout", partial(self.highlight_row, day_id, index, False))
            layer.markers[index] = marker

        points = [(record.latitude, record.longitude) for _, record in located]
        for origin, destination in zip(points, points[1:]):
            line = layer.widget.add_polyline([origin, destination], ROUTE_STYLE)
            line.directions = directions_url(origin, destination)
            line.on("click", partial(self.opener, line.directions))
            line.on("mouseover", partial(line.set_style, **ROUTE_HOVER_STYLE))
            line.on("mouseout", partial(line.set_style, weight=ROUTE_STYLE["weight"], opacity=ROUTE_STYLE["opacity"]))
            layer.lines.append(line)

        layer.widget.fit_bounds(points, FIT_PADDING)
        view.placeholder = None
        view.show_route_legend = len(points) > 1
        self.layers[day_id] = layer
        logger.debug("[SYNC] Rebuilt map for %s: %d markers, %d lines", day_id, len(points), len(layer.lines))
        return layer

    def map_data(self, day_id: str) -> Optional[dict]:
        layer = self.layers.get(day_id)
        if layer is None or not isinstance(layer.widget, LeafletMap):
            return None
        return layer.widget.to_map_data()

    # ---- cross-view events ----

    def marker(self, day_id: str, index: int) -> Optional[Marker]:
        layer = self.layers.get(day_id)
        if layer is None:
            return None
        return layer.markers.get(index)

    def hover_row(self, day_id: str, index: int, entering: bool) -> bool:
        """List row enter/leave: (un)highlight the matching marker, if any."""
        marker = self.marker(day_id, index)
        if marker is None:
            return False
        marker.set_highlighted(entering)
        return True

    def highlight_row(self, day_id: str, index: int, highlighted: bool) -> bool:
        """Marker hover: (un)highlight the matching list row."""
        view = self.views.get(day_id)
        if view is None or not (0 <= index < len(view.rows)):
            return False
        view.rows[index].highlighted = highlighted
        return True

    def activate_row(self, day_id: str, index: int) -> bool:
        """Double activation: center the day's map on the row and open its popup."""
        marker = self.marker(day_id, index)
        if marker is None:
            return False
        self.layers[day_id].widget.set_view(marker.position, FOCUS_ZOOM)
        marker.open_popup()
        return True

    def press_row(self, day_id: str, index: int) -> None:
        self._press = (day_id, index, self.clock())

    def cancel_press(self) -> None:
        self._press = None

    def release_row(self, day_id: str, index: int) -> bool:
        """End a press; a press held long enough counts as a double activation."""
        press, self._press = self._press, None
        if press is None or press[:2] != (day_id, index):
            return False
        if self.clock() - press[2] < LONG_PRESS_SECONDS:
            return False
        return self.activate_row(day_id, index)

    # ---- drag feedback ----

    def show_indicator(self, day_id: str, position: Optional[int], dragging: Optional[int] = None) -> None:
        view = self.views.get(day_id)
        if view is not None:
            view.indicator = position
            view.dragging = dragging

    def clear_indicator(self, day_id: str) -> None:
        self.show_indicator(day_id, None)
