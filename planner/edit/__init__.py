"""Edit API - JSON handlers that apply planner edits to the running session."""

from .handler import (
    PlannerSession,
    build_session,
    get_trip_handler,
    add_day_handler,
    delete_day_handler,
    rename_day_handler,
    add_visit_handler,
    add_custom_visit_handler,
    edit_visit_handler,
    remove_visit_handler,
    move_visit_handler,
    reset_handler,
    refresh_feed_handler,
    catalog_handler,
)

__all__ = [
    'PlannerSession',
    'build_session',
    'get_trip_handler',
    'add_day_handler',
    'delete_day_handler',
    'rename_day_handler',
    'add_visit_handler',
    'add_custom_visit_handler',
    'edit_visit_handler',
    'remove_visit_handler',
    'move_visit_handler',
    'reset_handler',
    'refresh_feed_handler',
    'catalog_handler',
]
