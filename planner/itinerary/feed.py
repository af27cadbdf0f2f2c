"""Fetch the itinerary feed over HTTP, falling back to the last cached parse."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import requests

from .models import Itinerary
from .parser import FeedFormatError, FeedParser, Table, table_from_gviz
from .store import FeedCache

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
CHUNK_SIZE = 8192


class FeedFetchError(Exception):
    """The feed could not be fetched or read."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class FeedTimeoutError(FeedFetchError):
    """The feed request did not finish within the configured timeout."""


class _Download(threading.Thread):
    """Streams one response body so the caller can give up on a deadline.

    requests' timeout only bounds each connect/read; a server that keeps
    trickling bytes would never trip it.
    """

    def __init__(self, getter, url: str, headers: dict, timeout: float):
        super().__init__(name="feed-download", daemon=True)
        self.getter = getter
        self.url = url
        self.headers = headers
        self.timeout = timeout
        self.response = None
        self.text: Optional[str] = None
        self.error: Optional[Exception] = None
        self.cancelled = threading.Event()

    def run(self):
        try:
            self.response = self.getter(self.url, headers=self.headers, timeout=self.timeout, stream=True)
            self.response.raise_for_status()
            chunks = []
            for chunk in self.response.iter_content(chunk_size=CHUNK_SIZE):
                if self.cancelled.is_set():
                    return
                chunks.append(chunk)
            self.text = b"".join(chunks).decode(self.response.encoding or "utf-8", errors="replace")
        except Exception as e:  # re-raised by FeedClient.fetch in the caller's thread
            self.error = e
        finally:
            if self.response is not None:
                self.response.close()

    def cancel(self):
        self.cancelled.set()
        if self.response is not None:
            self.response.close()


class FeedClient:
    """Read-only client for a gviz-style tabular feed endpoint."""

    def __init__(self, url: str, timeout: float = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None):
        if not url:
            raise ValueError("Feed URL required. Set FEED_URL env var or pass url.")
        self.url = url
        self.timeout = timeout
        self.session = session

    def fetch(self) -> Table:
        """Fetch and decode the feed into a Table.

        Raises FeedTimeoutError once the whole request (connect, headers and
        body) has taken longer than `timeout` seconds, and FeedFetchError for
        network, HTTP and payload problems.
        """
        headers = {
            "User-Agent": "Itinerary-Planner/1.0",
            "Accept": "application/json, text/plain, */*",
        }
        getter = self.session.get if self.session is not None else requests.get
        timed_out = f"Feed request timed out after {self.timeout:g}s"

        download = _Download(getter, self.url, headers, self.timeout)
        download.start()
        download.join(self.timeout)
        if download.is_alive():
            download.cancel()
            logger.warning("[FEED] Gave up on %s after %gs", self.url, self.timeout)
            raise FeedTimeoutError(timed_out, url=self.url)

        try:
            if download.error is not None:
                raise download.error
            return table_from_gviz(download.text)
        except requests.Timeout as e:
            raise FeedTimeoutError(timed_out, url=self.url) from e
        except requests.RequestException as e:
            raise FeedFetchError(f"Feed request failed: {e}", url=self.url) from e
        except FeedFormatError as e:
            raise FeedFetchError(f"Feed response was malformed: {e}", url=self.url) from e


@dataclass
class FeedResult:
    itinerary: Itinerary
    fetched_at: datetime
    from_cache: bool = False
    error: Optional[str] = None  # the fetch error hidden by a cache fallback


class FeedLoader:
    """Fetch + parse the feed, keeping a cache of the last good parse.

    On a failed refresh the cached itinerary is returned silently; without a
    cache the fetch error propagates so the caller can offer a retry.
    """

    def __init__(self, client: FeedClient, parser: Optional[FeedParser] = None, cache: Optional[FeedCache] = None):
        self.client = client
        self.parser = parser or FeedParser()
        self.cache = cache

    def load(self) -> FeedResult:
        try:
            table = self.client.fetch()
        except FeedFetchError as e:
            cached = self.cache.get() if self.cache else None
            if cached is None:
                logger.error("[FEED] %s (no cached copy)", e)
                raise
            logger.warning("[FEED] %s, using cached copy from %s", e, cached.fetched_at.isoformat())
            return FeedResult(
                itinerary=cached.itinerary,
                fetched_at=cached.fetched_at,
                from_cache=True,
                error=str(e),
            )

        itinerary = self.parser.parse(table)
        fetched_at = datetime.now()
        if self.cache:
            self.cache.put(itinerary, fetched_at)
        return FeedResult(itinerary=itinerary, fetched_at=fetched_at)

    def retry(self) -> FeedResult:
        """Retry affordance for a previously surfaced fetch error."""
        logger.info("[FEED] Retrying %s", self.client.url)
        return self.load()
