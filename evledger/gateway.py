"""Asynchronous key/value gateway with simulated network latency.

The gateway stands in for a remote backend: every key is loaded and saved
independently, after an artificial delay, and failures are reported rather
than crashing the caller. Keys scoped to no authenticated user (``*_null``)
never touch storage.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, List, Optional

from .exceptions import PersistenceError
from .storage import JSONStorage

logger = logging.getLogger(__name__)

NULL_USER = "null"


def storage_key(kind: str, username: Optional[str]) -> str:
    """Build ``{kind}_{username}``; a missing user yields the ``_null`` scope."""
    return f"{kind}_{username if username else NULL_USER}"


def is_null_key(key: str) -> bool:
    return key.endswith(f"_{NULL_USER}")


class StorageGateway:
    def __init__(
        self,
        storage: JSONStorage,
        *,
        load_latency: float = 0.5,
        save_latency: float = 0.3,
    ) -> None:
        self._storage = storage
        self._load_latency = load_latency
        self._save_latency = save_latency

    @property
    def storage(self) -> JSONStorage:
        return self._storage

    async def load(self, key: str, initial: List[Any]) -> List[Any]:
        """Return the stored list for ``key`` or a copy of ``initial``.

        Raises PersistenceError when the stored payload cannot be read.
        """
        if is_null_key(key):
            return copy.deepcopy(initial)
        logger.debug("Loading %s", key)
        await asyncio.sleep(self._load_latency)
        if not await asyncio.to_thread(self._storage.exists, key):
            return copy.deepcopy(initial)
        return await asyncio.to_thread(self._storage.load, key)

    async def save(self, key: str, value: List[Any]) -> bool:
        """Persist ``value`` under ``key``; returns False instead of raising on failure."""
        if is_null_key(key):
            return True
        logger.debug("Saving %d records to %s", len(value), key)
        await asyncio.sleep(self._save_latency)
        try:
            await asyncio.to_thread(self._storage.save, key, value)
        except PersistenceError:
            logger.warning("Could not save %s", key, exc_info=True)
            return False
        return True
