"""Key-value persistence backends for conversation state."""

import copy
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class DataStore(ABC):
    """Common interface for persistence backends."""

    @abstractmethod
    def load_data(self, key: str) -> Any:
        """Return the value stored under key, or None if nothing was saved."""

    @abstractmethod
    def save_data(self, key: str, data: Any) -> None:
        """Replace the value stored under key with a complete snapshot."""

    def register_interval(self, task: Any) -> Any:
        """Hand a recurring task to the host so it can be cancelled on teardown."""
        return task


class JsonFileDataStore(DataStore):
    """Stores each key as ``<data_dir>/<key>.json``."""

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def load_data(self, key: str) -> Any:
        path = self._path(key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def save_data(self, key: str, data: Any) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        target = self._path(key)
        # Temp file + rename: readers only ever see a complete snapshot.
        fd, tmp = tempfile.mkstemp(dir=self.data_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, target)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise


class MemoryDataStore(DataStore):
    """In-process backend; values are deep-copied in and out like a real store."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self.save_count = 0
        self.registered: list[Any] = []

    def load_data(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    def save_data(self, key: str, data: Any) -> None:
        self._data[key] = json.loads(json.dumps(data))
        self.save_count += 1

    def register_interval(self, task: Any) -> Any:
        self.registered.append(task)
        return task
