"""In-memory view of the signed-in user's wardrobe items."""
from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, Optional, Tuple


class ItemCollection:
    """Holds item records as an immutable tuple that is swapped on change.

    Readers always see a complete snapshot; writers never mutate a record or
    the tuple in place.
    """

    def __init__(self, items: Iterable[Dict[str, Any]] = ()) -> None:
        self._items: Tuple[Dict[str, Any], ...] = tuple(dict(item) for item in items)
        self._lock = threading.Lock()

    @property
    def items(self) -> Tuple[Dict[str, Any], ...]:
        return self._items

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: str) -> Optional[Dict[str, Any]]:
        return next((item for item in self._items if item.get("item_id") == item_id), None)

    def append(self, record: Dict[str, Any]) -> None:
        with self._lock:
            self._items = self._items + (dict(record),)

    def replace(self, record: Dict[str, Any]) -> None:
        item_id = record.get("item_id")
        with self._lock:
            self._items = tuple(
                dict(record) if item.get("item_id") == item_id else item for item in self._items
            )

    def remove(self, item_id: str) -> None:
        with self._lock:
            self._items = tuple(item for item in self._items if item.get("item_id") != item_id)

    def reset(self, items: Iterable[Dict[str, Any]]) -> None:
        with self._lock:
            self._items = tuple(dict(item) for item in items)


__all__ = ["ItemCollection"]
