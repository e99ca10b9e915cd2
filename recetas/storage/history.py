"""Capped, most-recent-first history of past generations.

The whole history lives under ONE storage key as a JSON array of HistoryItem
(camelCase, most recent first, at most MAX_HISTORY entries). Every mutation is
write-through: storage is updated before the in-memory list is replaced, so the
two are identical whenever a call returns.
"""

import json
import os
import tempfile
import time
import uuid
from pathlib import Path
from typing import Optional, Protocol, Sequence

from pydantic import TypeAdapter

from recetas.models.models import HistoryItem, Recipe
from recetas.utils.config import config
from recetas.utils.errors import safe_execute_sync
from recetas.utils.logger import logger

_HISTORY_LIST = TypeAdapter(list[HistoryItem])


class KeyValueStorage(Protocol):
    """Minimal string key-value storage (localStorage-like)."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """In-process storage, used for stateless runs and tests."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove_item(self, key: str) -> None:
        self.data.pop(key, None)


class FileStorage:
    """One ``<key>.json`` file per key inside ``directory``.

    Writes go to a temporary file in the same directory and are moved into
    place with os.replace, so a crash never leaves a half-written value.
    """

    def __init__(self, directory: Optional[Path] = None) -> None:
        self.directory = Path(directory or config.HISTORY_DIR)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_path, self._path(key))
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


def new_history_id() -> str:
    return uuid.uuid4().hex


def now_ms() -> int:
    return int(time.time() * 1000)


class HistoryStore:
    """Owns the persisted history list.

    Args:
        storage: Key-value storage backend.
        key: Storage key. Default: config.HISTORY_STORAGE_KEY.
        limit: Maximum number of items kept. Default: config.MAX_HISTORY (10).
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> None:
        self.storage = storage
        self.key = config.HISTORY_STORAGE_KEY if key is None else key
        self.limit = config.MAX_HISTORY if limit is None else limit
        if not self.key:
            raise ValueError("History storage key must not be empty")
        if self.limit < 1:
            raise ValueError(f"History limit must be at least 1, got: {self.limit}")
        self._items: list[HistoryItem] = self.load()

    @property
    def items(self) -> list[HistoryItem]:
        return list(self._items)

    def load(self) -> list[HistoryItem]:
        """Read history from storage.

        Returns:
            Stored items, most recent first. Empty if nothing is stored or the
            stored value cannot be read or decoded (logged, never raised).
        """

        def _read() -> list[HistoryItem]:
            raw = self.storage.get_item(self.key)
            if raw is None:
                return []
            return _HISTORY_LIST.validate_json(raw)

        items = safe_execute_sync(
            _read,
            f"Discarding unreadable history under '{self.key}'",
            default_return=[],
        )
        self._items = items
        return list(items)

    def _persist(self, items: list[HistoryItem]) -> list[HistoryItem]:
        payload = json.dumps(
            [item.model_dump(mode="json", by_alias=True, exclude_none=True) for item in items],
            ensure_ascii=False,
        )
        self.storage.set_item(self.key, payload)
        self._items = items
        return list(items)

    def record(self, ingredients: Sequence[str], recipes: Sequence[Recipe]) -> list[HistoryItem]:
        """Prepend a new item for a successful generation and persist.

        The oldest items beyond ``limit`` are evicted.

        Returns:
            The updated history, most recent first.
        """
        item = HistoryItem(
            id=new_history_id(),
            timestamp=now_ms(),
            ingredients=list(ingredients),
            recipes=list(recipes),
        )
        updated = [item, *self._items][: self.limit]
        logger.debug(f"Recording history item {item.id} ({len(updated)}/{self.limit} stored)")
        return self._persist(updated)

    def remove(self, item_id: str) -> list[HistoryItem]:
        """Remove the item with ``item_id`` (no-op if absent) and persist."""
        return self._persist([item for item in self._items if item.id != item_id])

    def clear(self) -> list[HistoryItem]:
        """Discard every item and delete the storage key."""
        self.storage.remove_item(self.key)
        self._items = []
        return []

    def get(self, item_id: str) -> Optional[HistoryItem]:
        return next((item for item in self._items if item.id == item_id), None)
