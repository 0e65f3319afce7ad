"""Persistence backends for the local registry document."""

import copy
import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Storage(Protocol):
    """Loads and saves a whole registry document."""

    def load(self) -> dict[str, Any]: ...

    def save(self, document: dict[str, Any]) -> None: ...

    def last_modified(self) -> datetime | None: ...


class JsonFileStorage:
    """Registry document stored as a pretty-printed JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> dict[str, Any]:
        """
        Load the registry document.

        A missing file loads as an empty registry.

        Raises:
            ValueError: If the file is not a JSON object.
        """
        if not self.path.exists():
            logger.debug(f"No registry file at {self.path}, starting empty")
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Error parsing JSON in {self.path}: {e}")

        if not isinstance(data, dict):
            raise ValueError(f"Registry file {self.path} must contain a JSON object")
        return data

    def save(self, document: dict[str, Any]) -> None:
        """Write the document atomically. Concurrent saves are serialized."""
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, indent=2, ensure_ascii=False)
                    f.write("\n")
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

    def last_modified(self) -> datetime | None:
        try:
            mtime = self.path.stat().st_mtime
        except OSError:
            return None
        return datetime.fromtimestamp(mtime, tz=timezone.utc)


class MemoryStorage:
    """In-memory storage, used by tests and embedded registries."""

    def __init__(self, document: dict[str, Any] | None = None):
        self.document = copy.deepcopy(document) if document is not None else {}
        self.saves = 0
        self._modified: datetime | None = None

    def load(self) -> dict[str, Any]:
        return copy.deepcopy(self.document)

    def save(self, document: dict[str, Any]) -> None:
        self.document = copy.deepcopy(document)
        self.saves += 1
        self._modified = datetime.now(timezone.utc)

    def last_modified(self) -> datetime | None:
        return self._modified
