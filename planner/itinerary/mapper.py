"""Map widget capability and its Leaflet map-data implementation."""

from __future__ import annotations

import html
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# CartoDB Positron tiles, same as the locations map
TILE_URL = "https://{s}.basemaps.cartocdn.com/light_all/{z}/{x}/{y}{r}.png"
TILE_ATTRIBUTION = (
    '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a> '
    '&copy; <a href="https://carto.com/attributions">CARTO</a>'
)

ROUTE_COLOR = "#B85C38"
ROUTE_STYLE = {"color": ROUTE_COLOR, "weight": 3, "opacity": 0.7, "dash_array": "5, 10"}
ROUTE_HOVER_STYLE = {"weight": 5, "opacity": 1.0}

HIGHLIGHT_Z_OFFSET = 1000
FOCUS_ZOOM = 16
FIT_PADDING = (40, 40)

Point = tuple[float, float]
Handler = Callable[[], None]


def directions_url(origin: Point, destination: Point, mode: str = "walking") -> str:
    """Google Maps directions between two coordinate pairs."""
    return (
        "https://www.google.com/maps/dir/?api=1"
        f"&origin={origin[0]},{origin[1]}"
        f"&destination={destination[0]},{destination[1]}"
        f"&travelmode={mode}"
    )


def zoom_for_span(max_span: float) -> int:
    """Rough zoom level that shows a region max_span degrees across."""
    if max_span > 10:
        return 5
    elif max_span > 5:
        return 6
    elif max_span > 2:
        return 7
    elif max_span > 1:
        return 8
    elif max_span > 0.5:
        return 9
    elif max_span > 0.1:
        return 10
    elif max_span > 0.02:
        return 13
    else:
        return 15


def numbered_icon(number: int) -> dict:
    """Div-icon description for a numbered route marker."""
    return {
        "class_name": "trip-marker",
        "html": f'<div class="trip-marker-circle">{number}</div>',
        "icon_size": [28, 28],
        "icon_anchor": [14, 14],
    }


def popup_html(title: str, city: str = "") -> str:
    city_html = f'<span class="trip-popup-city">{html.escape(city)}</span>' if city else ""
    return f'<div class="trip-popup"><strong>{html.escape(title)}</strong>{city_html}</div>'


class _Evented:
    """Minimal mouseover/mouseout/click event hub for map layers."""

    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def on(self, event: str, handler: Handler) -> None:
        self._handlers[event].append(handler)

    def fire(self, event: str) -> None:
        for handler in list(self._handlers.get(event, [])):
            handler()


class Marker(_Evented):
    def __init__(self, position: Point, icon: dict):
        super().__init__()
        self.position = position
        self.icon = icon
        self.popup: Optional[str] = None
        self.popup_open = False
        self.highlighted = False
        self.z_index_offset = 0
        self.index: Optional[int] = None  # visit index within the day

    def bind_popup(self, content: str) -> None:
        self.popup = content

    def open_popup(self) -> None:
        self.popup_open = True

    def close_popup(self) -> None:
        self.popup_open = False

    def set_highlighted(self, highlighted: bool) -> None:
        self.highlighted = highlighted
        self.z_index_offset = HIGHLIGHT_Z_OFFSET if highlighted else 0

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "position": {"lat": self.position[0], "lng": self.position[1]},
            "icon": self.icon,
            "popup": self.popup,
            "z_index_offset": self.z_index_offset,
        }


class Polyline(_Evented):
    def __init__(self, points: list[Point], style: dict):
        super().__init__()
        self.points = points
        self.style = dict(style)
        self.directions: Optional[str] = None

    def set_style(self, **style) -> None:
        self.style.update(style)

    def to_dict(self) -> dict:
        return {
            "points": [{"lat": lat, "lng": lng} for lat, lng in self.points],
            "style": self.style,
            "directions": self.directions,
        }


class MapWidget(ABC):
    """Capability surface the synchronizer needs from a pan/zoom map."""

    @abstractmethod
    def add_marker(self, position: Point, icon: dict) -> Marker: ...

    @abstractmethod
    def add_polyline(self, points: list[Point], style: dict) -> Polyline: ...

    @abstractmethod
    def fit_bounds(self, points: list[Point], padding: tuple[int, int] = FIT_PADDING) -> None: ...

    @abstractmethod
    def set_view(self, position: Point, zoom: int) -> None: ...

    @abstractmethod
    def remove(self) -> None: ...


class LeafletMap(MapWidget):
    """Map widget that records its layers and serializes them as Leaflet map data.

    The page script replays `to_map_data()` with Leaflet; markers and lines
    keep their event handlers on the Python side.
    """

    def __init__(self, container_id: str, scroll_wheel_zoom: bool = False):
        self.container_id = container_id
        self.scroll_wheel_zoom = scroll_wheel_zoom
        self.markers: list[Marker] = []
        self.lines: list[Polyline] = []
        self.center: Optional[Point] = None
        self.zoom: Optional[int] = None
        self.bounds: Optional[tuple[Point, Point]] = None
        self.padding: tuple[int, int] = FIT_PADDING
        self.removed = False

    def _check_alive(self) -> None:
        if self.removed:
            raise RuntimeError(f"Map {self.container_id} has been removed")

    def add_marker(self, position: Point, icon: dict) -> Marker:
        self._check_alive()
        marker = Marker(position, icon)
        self.markers.append(marker)
        return marker

    def add_polyline(self, points: list[Point], style: dict) -> Polyline:
        self._check_alive()
        line = Polyline(points, style)
        self.lines.append(line)
        return line

    def fit_bounds(self, points: list[Point], padding: tuple[int, int] = FIT_PADDING) -> None:
        self._check_alive()
        if not points:
            return
        lats = [lat for lat, _ in points]
        lngs = [lng for _, lng in points]
        self.bounds = ((min(lats), min(lngs)), (max(lats), max(lngs)))
        self.padding = padding
        self.center = (sum(lats) / len(lats), sum(lngs) / len(lngs))
        self.zoom = zoom_for_span(max(max(lats) - min(lats), max(lngs) - min(lngs)))

    def set_view(self, position: Point, zoom: int) -> None:
        self._check_alive()
        self.center = position
        self.zoom = zoom

    def remove(self) -> None:
        logger.debug("[MAP] Removing %s (%d markers)", self.container_id, len(self.markers))
        self.markers = []
        self.lines = []
        self.removed = True

    def to_map_data(self) -> dict:
        """Map data structure for the page's Leaflet script."""
        return {
            "container": self.container_id,
            "center": {"lat": self.center[0], "lng": self.center[1]} if self.center else None,
            "zoom": self.zoom,
            "bounds": [list(corner) for corner in self.bounds] if self.bounds else None,
            "padding": list(self.padding),
            "scroll_wheel_zoom": self.scroll_wheel_zoom,
            "tiles": {"url": TILE_URL, "attribution": TILE_ATTRIBUTION, "max_zoom": 20},
            "markers": [marker.to_dict() for marker in self.markers],
            "route": [line.to_dict() for line in self.lines],
        }
