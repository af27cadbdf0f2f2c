"""API handlers for the trip planner.

Every handler takes the running PlannerSession plus the decoded request body
and returns a (payload, status) pair; the payload always carries "success".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import database as db
from planner import config
from planner.itinerary.editor import ItineraryEditor, UnknownDayError, ValidationError
from planner.itinerary.feed import FeedClient, FeedFetchError, FeedLoader
from planner.itinerary.forms import CatalogPicker, CustomVisitForm, EditVisitForm
from planner.itinerary.models import Catalog, Itinerary
from planner.itinerary.parser import FeedParser
from planner.itinerary.store import BlobStore, FeedCache, TripStore, load_builtin
from planner.itinerary.sync import ListMapSynchronizer

logger = logging.getLogger(__name__)

Response = Tuple[Dict[str, Any], int]


@dataclass
class PlannerSession:
    """Everything one running planner needs between requests."""

    editor: ItineraryEditor
    synchronizer: ListMapSynchronizer
    reference: Itinerary
    catalog: Catalog
    loader: Optional[FeedLoader] = None
    fetched_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def feed_mode(self) -> bool:
        return self.loader is not None


def build_session(
    feed_url: Optional[str] = None,
    data_dir: Optional[Path] = None,
    store: Optional[BlobStore] = None,
) -> PlannerSession:
    """Load the trip from the feed (if configured) or the built-in data.

    Built-in mode edits a persisted copy of the reference trip. Feed mode
    edits the parsed feed in memory; the last good parse is cached so a
    failed refresh falls back to it.
    """
    store = store if store is not None else db.KeyValueStore(config.get_database_path())
    feed_url = feed_url if feed_url is not None else config.get_feed_url()
    data_dir = Path(data_dir) if data_dir is not None else config.get_data_dir()

    catalog_path = data_dir / "catalog.json"
    if feed_url:
        catalog = Catalog()
        if catalog_path.exists():
            _, catalog = load_builtin(data_dir / "trip.json", catalog_path)
        loader = FeedLoader(
            FeedClient(feed_url, timeout=config.get_feed_timeout()),
            FeedParser(),
            FeedCache(store, config.get_feed_cache_key()),
        )
        try:
            result = loader.load()
            reference, fetched_at, error = result.itinerary, result.fetched_at, result.error
        except FeedFetchError as e:
            reference, fetched_at, error = Itinerary(version="feed"), None, str(e)

        editor = ItineraryEditor(reference.copy(), catalog=catalog)
        session = PlannerSession(
            editor=editor,
            synchronizer=ListMapSynchronizer(editor),
            reference=reference,
            catalog=catalog,
            loader=loader,
            fetched_at=fetched_at,
            error=error,
        )
    else:
        reference, catalog = load_builtin(data_dir / "trip.json", catalog_path)
        trip_store = TripStore(store, config.get_storage_key(), reference.version)
        editor = ItineraryEditor(trip_store.load_or_default(reference), trip_store, catalog)
        session = PlannerSession(
            editor=editor,
            synchronizer=ListMapSynchronizer(editor),
            reference=reference,
            catalog=catalog,
        )

    logger.info(
        "[SESSION] %s mode: %d days, %d locations",
        "Feed" if session.feed_mode else "Built-in",
        len(editor.itinerary.days),
        editor.itinerary.visit_count,
    )
    return session


def _trip_payload(session: PlannerSession) -> Dict[str, Any]:
    views = session.synchronizer.render()
    session.synchronizer.scheduler.flush()
    return {
        "success": True,
        "trip": session.editor.itinerary.to_dict(),
        "days": [view.to_dict() for view in views],
        "maps": {
            view.day_id: session.synchronizer.map_data(view.day_id)
            for view in views
        },
        "fetched_at": session.fetched_at.isoformat() if session.fetched_at else None,
    }


def _required(data: Dict[str, Any], name: str) -> Any:
    value = data.get(name)
    if value is None or value == "":
        raise ValidationError(name, f"{name} is required")
    return value


def _guard(action):
    """Turn the editor's errors into JSON error responses."""

    def wrapper(session: PlannerSession, data: Optional[Dict[str, Any]] = None) -> Response:
        data = data or {}
        try:
            return action(session, data)
        except ValidationError as e:
            return {"success": False, "error": str(e), "field": e.field}, 400
        except UnknownDayError as e:
            return {"success": False, "error": f"Day not found: {e.args[0]}"}, 404
        except KeyError as e:
            return {"success": False, "error": f"Location not found: {e.args[0]}"}, 404
        except (IndexError, TypeError, ValueError) as e:
            return {"success": False, "error": str(e)}, 400

    wrapper.__name__ = action.__name__
    wrapper.__doc__ = action.__doc__
    return wrapper


@_guard
def get_trip_handler(session: PlannerSession, data: Dict[str, Any]) -> Response:
    """Current itinerary with rendered rows and per-day map data."""
    payload = _trip_payload(session)
    if session.error:
        payload.update(warning=session.error, retry=session.feed_mode)
    return payload, 200


@_guard
def add_day_handler(session: PlannerSession, data: Dict[str, Any]) -> Response:
    day = session.editor.add_day()
    return {"success": True, "day": day.to_dict()}, 200


@_guard
def delete_day_handler(session: PlannerSession, data: Dict[str, Any]) -> Response:
    """Delete a day; a non-empty day needs "confirmed": true."""
    day_id = _required(data, "day_id")
    prompts = []

    def confirm(message: str) -> bool:
        prompts.append(message)
        return data.get("confirmed") is True

    if session.editor.delete_day(day_id, confirm=confirm):
        return {"success": True}, 200
    return {"success": False, "confirm": prompts[0] if prompts else None}, 409


@_guard
def rename_day_handler(session: PlannerSession, data: Dict[str, Any]) -> Response:
    day = session.editor.rename_day(_required(data, "day_id"), str(data.get("label") or ""))
    return {"success": True, "day": day.to_dict()}, 200


@_guard
def add_visit_handler(session: PlannerSession, data: Dict[str, Any]) -> Response:
    """Add a catalog location to a day."""
    day_id = _required(data, "day_id")
    identifier = _required(data, "id")
    if identifier not in session.catalog:
        return {"success": False, "error": f"Unknown location: {identifier}"}, 404

    visit = session.editor.add_visit(day_id, identifier)
    if visit is None:
        return {"success": True, "added": False}, 200
    return {"success": True, "added": True, "visit": visit.to_dict()}, 200


@_guard
def add_custom_visit_handler(session: PlannerSession, data: Dict[str, Any]) -> Response:
    form = CustomVisitForm(session.editor, _required(data, "day_id"))
    result = form.submit(data.get("fields") or {})
    if not result.saved:
        return {"success": False, "error": result.error, "field": result.focus}, 400
    return {"success": True, "visit": result.visit.to_dict()}, 200


@_guard
def edit_visit_handler(session: PlannerSession, data: Dict[str, Any]) -> Response:
    form = EditVisitForm(
        session.editor,
        _required(data, "day_id"),
        _required(data, "visit_id"),
        session.catalog,
    )
    result = form.submit(data.get("fields") or {})
    if not result.saved:
        return {"success": False, "error": result.error, "field": result.focus}, 400
    return {"success": True, "visit": result.visit.to_dict()}, 200


@_guard
def remove_visit_handler(session: PlannerSession, data: Dict[str, Any]) -> Response:
    removed = session.editor.remove_visit(_required(data, "day_id"), _required(data, "visit_id"))
    return {"success": True, "removed": removed}, 200


@_guard
def move_visit_handler(session: PlannerSession, data: Dict[str, Any]) -> Response:
    """Reorder within one day: {"day_id", "from_index", "to_index"}."""
    day_id = _required(data, "day_id")
    from_index = int(_required(data, "from_index"))
    to_index = int(_required(data, "to_index"))
    moved = session.editor.move_visit(day_id, from_index, to_index)
    return {"success": True, "moved": moved}, 200


@_guard
def reset_handler(session: PlannerSession, data: Dict[str, Any]) -> Response:
    """Drop local edits and reload the reference trip; needs "confirmed": true."""
    prompts = []

    def confirm(message: str) -> bool:
        prompts.append(message)
        return data.get("confirmed") is True

    if session.editor.reset_to_default(session.reference, confirm=confirm):
        return {"success": True}, 200
    return {"success": False, "confirm": prompts[0] if prompts else None}, 409


@_guard
def refresh_feed_handler(session: PlannerSession, data: Dict[str, Any]) -> Response:
    """Fetch the feed again (the retry affordance for a failed load)."""
    if not session.feed_mode:
        return {"success": False, "error": "No feed configured"}, 400

    try:
        result = session.loader.retry()
    except FeedFetchError as e:
        session.error = str(e)
        return {"success": False, "error": str(e), "retry": True}, 502

    session.reference = result.itinerary
    session.fetched_at = result.fetched_at
    session.error = result.error
    session.editor.replace(result.itinerary.copy())

    payload = {
        "success": True,
        "from_cache": result.from_cache,
        "fetched_at": result.fetched_at.isoformat(),
    }
    if result.error:
        payload.update(warning=result.error, retry=True)
    return payload, 200


@_guard
def catalog_handler(session: PlannerSession, data: Dict[str, Any]) -> Response:
    """City-grouped catalog entries for a day's picker, optionally filtered."""
    day = session.editor.day(_required(data, "day"))
    picker = CatalogPicker(session.catalog, day)
    groups = picker.groups(str(data.get("q") or ""))
    return {
        "success": True,
        "groups": [
            {
                "city": group.city,
                "entries": [
                    {"id": entry.id, "title": entry.title, "disabled": entry.disabled}
                    for entry in group.entries
                ],
            }
            for group in groups
        ],
    }, 200


# POST /api/trip/<action>
ACTIONS = {
    "add-day": add_day_handler,
    "delete-day": delete_day_handler,
    "rename-day": rename_day_handler,
    "add-visit": add_visit_handler,
    "add-custom-visit": add_custom_visit_handler,
    "edit-visit": edit_visit_handler,
    "remove-visit": remove_visit_handler,
    "move": move_visit_handler,
    "reset": reset_handler,
    "refresh-feed": refresh_feed_handler,
}
