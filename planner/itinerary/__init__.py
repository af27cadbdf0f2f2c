"""Itinerary - Load, edit, and map day-by-day trip plans."""

from .models import Catalog, CatalogPlace, CustomPlace, Day, Itinerary, Visit
from .parser import FeedParser
from .store import FeedCache, TripStore
from .feed import FeedClient, FeedLoader
from .editor import ItineraryEditor
from .sync import ListMapSynchronizer
from .reorder import ReorderEngine
from .web_view import PlannerWebView

__all__ = [
    "Catalog",
    "CatalogPlace",
    "CustomPlace",
    "Day",
    "Itinerary",
    "Visit",
    "FeedParser",
    "FeedCache",
    "TripStore",
    "FeedClient",
    "FeedLoader",
    "ItineraryEditor",
    "ListMapSynchronizer",
    "ReorderEngine",
    "PlannerWebView",
]
