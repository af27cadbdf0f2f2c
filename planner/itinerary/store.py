"""Versioned persistence of the editable itinerary copy, plus the feed cache."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol, Union

from .models import Catalog, Itinerary

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    """Key-value store of opaque string blobs. Any call may raise."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> bool: ...


class TripStore:
    """Load/save the user-editable itinerary under a versioned key.

    Never raises: read problems mean "nothing stored", write problems are
    logged and the in-memory itinerary stays as it is.
    """

    def __init__(self, store: BlobStore, key: str, reference_version: str):
        self.store = store
        self.key = key
        self.reference_version = reference_version

    def load(self) -> Optional[Itinerary]:
        try:
            raw = self.store.get(self.key)
        except Exception as e:
            logger.warning("[STORE] Could not read stored trip data: %s", e)
            return None

        if not raw:
            return None

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("stored blob is not an object")
            if str(data.get("version", "")) != self.reference_version:
                logger.warning(
                    "[STORE] Trip data version mismatch (stored %r, expected %r), using reference data",
                    data.get("version"), self.reference_version,
                )
                return None
            return Itinerary.from_dict(data)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("[STORE] Could not parse stored trip data: %s", e)
            return None

    def save(self, itinerary: Itinerary) -> bool:
        try:
            self.store.set(self.key, json.dumps(itinerary.to_dict()))
            return True
        except Exception as e:
            logger.warning("[STORE] Could not save trip data: %s", e)
            return False

    def clear(self) -> bool:
        try:
            self.store.delete(self.key)
            return True
        except Exception as e:
            logger.warning("[STORE] Could not clear trip data: %s", e)
            return False

    def load_or_default(self, reference: Itinerary) -> Itinerary:
        """Persisted copy if usable, otherwise a deep copy of the reference."""
        stored = self.load()
        if stored is not None:
            return stored
        return reference.copy()


@dataclass
class CachedFeed:
    itinerary: Itinerary
    fetched_at: datetime


class FeedCache:
    """Read-through cache of the last successfully parsed feed."""

    def __init__(self, store: BlobStore, key: str):
        self.store = store
        self.key = key

    def get(self) -> Optional[CachedFeed]:
        try:
            raw = self.store.get(self.key)
        except Exception as e:
            logger.warning("[CACHE] Could not read feed cache: %s", e)
            return None

        if not raw:
            return None

        try:
            data = json.loads(raw)
            return CachedFeed(
                itinerary=Itinerary.from_dict(data["itinerary"]),
                fetched_at=datetime.fromisoformat(data["fetched_at"]),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("[CACHE] Could not parse feed cache: %s", e)
            return None

    def put(self, itinerary: Itinerary, fetched_at: Optional[datetime] = None) -> bool:
        fetched_at = fetched_at or datetime.now()
        try:
            self.store.set(self.key, json.dumps({
                "itinerary": itinerary.to_dict(),
                "fetched_at": fetched_at.isoformat(),
            }))
            return True
        except Exception as e:
            logger.warning("[CACHE] Could not write feed cache: %s", e)
            return False


def load_builtin(trip_path: Union[str, Path], catalog_path: Optional[Union[str, Path]] = None) -> tuple[Itinerary, Catalog]:
    """Load the embedded reference trip and its catalog from JSON files."""
    trip_path = Path(trip_path)
    if not trip_path.exists():
        raise FileNotFoundError(f"File not found: {trip_path}")
    itinerary = Itinerary.from_dict(json.loads(trip_path.read_text()))

    catalog = Catalog()
    if catalog_path is not None:
        catalog_path = Path(catalog_path)
        if not catalog_path.exists():
            raise FileNotFoundError(f"File not found: {catalog_path}")
        catalog = Catalog.from_records(json.loads(catalog_path.read_text()))

    return itinerary, catalog
