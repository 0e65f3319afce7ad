"""On-disk cache of fetched remote registry documents."""

import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)


class CacheStore:
    """
    One JSON file per source URL, holding ``{timestamp, url, data}``.

    Entries older than the TTL are ignored, never deleted. Cache failures are
    never raised to the caller: a failed read is a miss and a failed write is
    logged and dropped.
    """

    def __init__(
        self,
        directory: str | Path,
        ttl: float,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            directory: Directory holding the cache files.
            ttl: Time-to-live of an entry in seconds.
            clock: Wall-clock source returning seconds since the epoch.
        """
        self.directory = Path(directory)
        self.ttl = ttl
        self._clock = clock

    def path_for(self, url: str) -> Path:
        """Get the cache file path for a URL."""
        key = hashlib.sha256(url.encode("utf-8")).hexdigest()
        return self.directory / f"{key}.cache.json"

    def get(self, url: str) -> dict[str, Any] | None:
        """
        Get the cached document for ``url``.

        Returns:
            The cached document if a fresh entry exists, None otherwise.
        """
        path = self.path_for(url)
        try:
            with open(path, "r", encoding="utf-8") as f:
                entry = json.load(f)
            age = self._clock() - float(entry["timestamp"])
            data = entry["data"]
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.debug(f"Ignoring unreadable cache entry {path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.debug(f"Ignoring cache entry {path}: data is not a registry document")
            return None

        if age >= self.ttl:
            logger.debug(f"Cache entry for {url} is stale ({age:.0f}s old)")
            return None

        logger.debug(f"Cache hit for {url}")
        return data

    def put(self, url: str, document: dict[str, Any]) -> None:
        """Store ``document`` as the newest entry for ``url``."""
        path = self.path_for(url)
        entry = {"timestamp": self._clock(), "url": url, "data": document}
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(entry, f)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Could not write cache entry for {url}: {e}")
