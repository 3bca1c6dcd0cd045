"""File-backed persistence for the EV ledger collections."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Iterable, List

from .exceptions import PersistenceError

RESOURCE_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class JSONStorage:
    """Simple file-based JSON storage with crash-safe writes.

    Each storage key maps to ``<base_path>/<key>.json`` holding one JSON list.
    """

    def __init__(self, base_path: Path) -> None:
        self._base_path = base_path
        self._base_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        if not RESOURCE_PATTERN.fullmatch(key) or key.startswith("."):
            raise PersistenceError(f"Invalid storage key {key!r}")
        return self._base_path / f"{key}.json"

    def exists(self, key: str) -> bool:
        return self.path_for(key).exists()

    def load(self, key: str) -> List[Any]:
        """Read the list stored under ``key``; callers check ``exists`` first."""
        path = self.path_for(key)
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupted JSON data in {path}") from exc
        except OSError as exc:
            raise PersistenceError(f"Unable to read from {path}") from exc

        if not isinstance(payload, list):
            raise PersistenceError(f"Expected list payload in {path}")
        return payload

    def save(self, key: str, records: Iterable[Any]) -> None:
        path = self.path_for(key)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(list(records), handle, indent=2)
                handle.flush()
            # Use replace for atomic move on POSIX; ensures crash-safe persistence.
            temp_path.replace(path)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Unable to write to {path}") from exc

    @property
    def base_path(self) -> Path:
        return self._base_path
