# planner/config.py
"""Configuration management for the itinerary planner."""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_FEED_TIMEOUT = 15.0


def get_feed_url():
    """Get the tabular feed URL (empty string when the planner runs on built-in data)."""
    return os.getenv("FEED_URL", "")


def get_feed_timeout():
    """Get the feed request timeout in seconds."""
    try:
        return float(os.getenv("FEED_TIMEOUT", DEFAULT_FEED_TIMEOUT))
    except ValueError:
        return DEFAULT_FEED_TIMEOUT


def get_storage_key():
    """Get the key the editable itinerary copy is stored under."""
    return os.getenv("TRIP_STORAGE_KEY", "itinerary-planner-v2")


def get_feed_cache_key():
    """Get the key the last successful feed parse is cached under."""
    return os.getenv("FEED_CACHE_KEY", "itinerary-feed-cache")


def get_data_dir():
    """Get the directory holding the built-in trip.json and catalog.json."""
    return Path(os.getenv("PLANNER_DATA_DIR", Path(__file__).parent / "data"))


def get_database_path():
    """Get the SQLite file used when no DATABASE_URL is configured."""
    return os.getenv("DATABASE_PATH", str(Path(__file__).parent.parent / "planner.db"))


def get_port():
    """Get port configuration."""
    return int(os.getenv("PORT", 8000))
