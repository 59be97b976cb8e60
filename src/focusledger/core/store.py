"""Durable key-value store backed by one JSON file per key."""

from __future__ import annotations

import fcntl
import json
import logging
import os
from pathlib import Path
from typing import Any

from focusledger.core.errors import PersistenceError

logger = logging.getLogger(__name__)

_DEFAULT_DATA_DIR = Path.home() / ".config" / "focusledger"


class JsonStore:
    """Whole-value JSON persistence under ``<directory>/<key>.json``.

    Every write replaces the full value: it is serialized to a sibling temp
    file under an exclusive lock and moved into place, so readers never see
    a partial write.
    """

    def __init__(self, directory: Path | None = None) -> None:
        self._directory: Path = directory if directory is not None else _DEFAULT_DATA_DIR

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def read(self, key: str, default: Any = None) -> Any:
        """Return the stored value for *key*, or *default* if missing or unreadable."""
        path = self.path_for(key)
        if not path.exists():
            return default
        try:
            with open(path) as f:
                fcntl.flock(f, fcntl.LOCK_SH)
                return json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Could not read %s, using default: %s", path, exc)
            return default

    def write(self, key: str, value: Any) -> None:
        """Serialize *value* under *key*.  Raises ``PersistenceError`` on failure."""
        path = self.path_for(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                fcntl.flock(f, fcntl.LOCK_EX)
                json.dump(value, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"could not write {path}: {exc}") from exc
