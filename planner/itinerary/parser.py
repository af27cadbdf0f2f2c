"""Parse itineraries from tabular feeds (Google Sheets gviz JSON or Excel)."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import openpyxl

from .models import CustomPlace, Day, Itinerary, Visit, coordinate_pair

logger = logging.getLogger(__name__)

# "D3 - Florence", "D12: Rome", "D1|" ... but not "Dinner", "D3" or "d3 - x"
DAY_HEADER_RE = re.compile(r"^\s*D(\d+)\s*[-–—:|.]\s*(.*)$")

# google.visualization.Query.setResponse({...});
GVIZ_WRAPPER_RE = re.compile(r"setResponse\((.*)\)\s*;?\s*$", re.DOTALL)


class FeedFormatError(ValueError):
    """The feed was fetched but its payload is not a readable table."""


@dataclass
class Table:
    """A column-labeled, row-oriented dataset.

    Each row is a sparse sequence of cells aligned to the columns; a missing
    trailing cell reads as None.
    """

    columns: list[str]
    rows: list[list[Any]] = field(default_factory=list)

    def column_index(self) -> dict[str, int]:
        """Map normalized column labels to their position (first wins)."""
        index: dict[str, int] = {}
        for position, label in enumerate(self.columns):
            key = _normalize_label(label)
            if key and key not in index:
                index[key] = position
        return index


@dataclass
class FeedColumns:
    """Column labels the parser looks for. Each entry lists accepted spellings."""

    marker: tuple[str, ...] = ("time", "day/time", "when")
    show: tuple[str, ...] = ("show", "visible")
    name: tuple[str, ...] = ("name", "title")
    subtitle: tuple[str, ...] = ("name 2", "subtitle", "secondary name")
    note: tuple[str, ...] = ("note", "notes", "comment")
    map_link: tuple[str, ...] = ("map", "map link", "google maps")
    booking_note: tuple[str, ...] = ("booking", "tickets", "booking note")
    booking_link: tuple[str, ...] = ("booking link", "tickets link")
    latitude: tuple[str, ...] = ("lat", "latitude")
    # "longtitude" and "lgn" both occur in the source sheet
    longitude: tuple[str, ...] = ("lng", "lon", "long", "longitude", "longtitude", "lgn")
    page: tuple[str, ...] = ("page", "id", "link")


def _normalize_label(label: Any) -> str:
    return str(label or "").strip().lower()


def _cell_value(cell: Any) -> Any:
    """Raw value of a gviz cell ({"v": ..., "f": ...}) or a plain value."""
    if isinstance(cell, dict):
        return cell.get("v")
    return cell


def _cell_text(cell: Any) -> str:
    """Display text of a cell, preferring the gviz formatted value."""
    if isinstance(cell, dict):
        value = cell.get("f")
        if value is None:
            value = cell.get("v")
    else:
        value = cell
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def parse_bool(cell: Any) -> bool:
    """Evaluate a boolean cell: native bool or "TRUE"/"FALSE" text."""
    value = _cell_value(cell)
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().upper() == "TRUE"


def slugify(text: str) -> str:
    """Convert text to an identifier-friendly slug."""
    text = text.lower()
    text = re.sub(r'[^\w\s-]', '', text)
    text = re.sub(r'[\s_-]+', '-', text)
    return text.strip('-') or "visit"


def _unique(candidate: str, taken: set[str]) -> str:
    if candidate not in taken:
        return candidate
    counter = 2
    while f"{candidate}-{counter}" in taken:
        counter += 1
    return f"{candidate}-{counter}"


def table_from_gviz(payload: Union[str, bytes, dict]) -> Table:
    """Build a Table from a Google Visualization (gviz) response.

    Accepts the raw response text (with or without the setResponse wrapper)
    or an already decoded dict.
    """
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")

    if isinstance(payload, str):
        text = payload.strip()
        match = GVIZ_WRAPPER_RE.search(text)
        if match:
            text = match.group(1)
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise FeedFormatError(f"Feed response is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise FeedFormatError("Feed response is not a JSON object")

    if payload.get("status") == "error":
        errors = payload.get("errors") or []
        detail = "; ".join(err.get("detailed_message") or err.get("message", "") for err in errors)
        raise FeedFormatError(f"Feed reported an error: {detail or 'unknown error'}")

    table = payload.get("table")
    if not isinstance(table, dict):
        raise FeedFormatError("Feed response has no table")

    cols = table.get("cols") or []
    columns = [(col or {}).get("label") or (col or {}).get("id") or "" for col in cols]

    rows = []
    for row in table.get("rows") or []:
        cells = (row or {}).get("c") or []
        rows.append(list(cells))

    return Table(columns=columns, rows=rows)


def table_from_excel(file_path: Union[str, Path]) -> Table:
    """Build a Table from the first worksheet of an Excel file (header in row 1)."""
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    workbook = openpyxl.load_workbook(file_path, data_only=True, read_only=True)
    try:
        sheet = workbook.worksheets[0]
        rows_iter = sheet.iter_rows(values_only=True)
        header = next(rows_iter, None)
        if header is None:
            return Table(columns=[])
        columns = ["" if value is None else str(value) for value in header]
        rows = [list(row) for row in rows_iter if row and any(value is not None for value in row)]
    finally:
        workbook.close()

    return Table(columns=columns, rows=rows)


class FeedParser:
    """Convert a tabular feed into an Itinerary of days and visits."""

    def __init__(self, columns: Optional[FeedColumns] = None, version: str = "feed"):
        self.columns = columns or FeedColumns()
        self.version = version

    def parse(self, table: Table, title: Optional[str] = None) -> Itinerary:
        index = table.column_index()
        lookup = {
            name: self._find_column(index, getattr(self.columns, name))
            for name in (
                "marker", "show", "name", "subtitle", "note", "map_link",
                "booking_note", "booking_link", "latitude", "longitude", "page",
            )
        }
        if lookup["marker"] is None:
            logger.warning("[FEED] No day/time marker column in feed; no days can be opened")
        if lookup["name"] is None:
            logger.warning("[FEED] No name column in feed; every row will be skipped")

        itinerary = Itinerary(version=self.version, title=title)
        day_ids: set[str] = set()
        current: Optional[Day] = None
        skipped = 0

        for row in table.rows:
            def cell(name: str) -> Any:
                position = lookup[name]
                if position is None or position >= len(row):
                    return None
                return row[position]

            marker = _cell_text(cell("marker"))
            header = DAY_HEADER_RE.match(marker)
            if header:
                current = self._start_day(header, _cell_text(cell("name")), day_ids)
                itinerary.days.append(current)
                continue

            if lookup["show"] is not None and not parse_bool(cell("show")):
                skipped += 1
                continue

            name = _cell_text(cell("name"))
            if not name or current is None:
                skipped += 1
                continue

            latitude, longitude = coordinate_pair(
                _cell_value(cell("latitude")), _cell_value(cell("longitude"))
            )
            page = _cell_text(cell("page")) or None
            visit_id = _unique(page or slugify(name), set(current.visit_ids))

            current.visits.append(Visit(
                id=visit_id,
                place=CustomPlace(
                    title=name,
                    subtitle=_cell_text(cell("subtitle")),
                    latitude=latitude,
                    longitude=longitude,
                    page=page,
                ),
                time=marker,
                note=_cell_text(cell("note")),
                map_link=_cell_text(cell("map_link")),
                booking_note=_cell_text(cell("booking_note")) or None,
                booking_link=_cell_text(cell("booking_link")) or None,
            ))

        logger.info(
            "[FEED] Parsed %d days, %d visits (%d rows skipped)",
            len(itinerary.days), itinerary.visit_count, skipped,
        )
        return itinerary

    def parse_file(self, file_path: Union[str, Path]) -> Itinerary:
        """Parse an itinerary from a .xlsx workbook or a saved gviz .json response."""
        file_path = Path(file_path)
        suffix = file_path.suffix.lower()

        if suffix in (".xlsx", ".xlsm"):
            table = table_from_excel(file_path)
        elif suffix in (".json", ".js", ".txt"):
            if not file_path.exists():
                raise FileNotFoundError(f"File not found: {file_path}")
            table = table_from_gviz(file_path.read_text())
        else:
            raise ValueError(f"Unsupported file format: {suffix}")

        return self.parse(table, title=file_path.stem)

    def _find_column(self, index: dict[str, int], spellings: tuple[str, ...]) -> Optional[int]:
        for spelling in spellings:
            if spelling in index:
                return index[spelling]
        return None

    def _start_day(self, header: re.Match, name_text: str, day_ids: set[str]) -> Day:
        ordinal = int(header.group(1))
        label = header.group(2).strip() or name_text or f"Day {ordinal}"
        day_id = _unique(f"d{ordinal}", day_ids)
        day_ids.add(day_id)
        return Day(id=day_id, label=label)
