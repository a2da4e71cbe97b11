"""In-process lock store for single-host coordination and tests."""

from __future__ import annotations

import threading
from typing import Any, Dict, Optional, Sequence, Tuple

from dynolock.core.errors import ConditionFailedError
from dynolock.data.store import Item, LockStore


_ItemId = Tuple[str, Tuple[Any, ...]]


class MemoryLockStore(LockStore):
    """Dict-backed store; every operation runs under one mutex.

    All tables share the key schema given here, the way a DynamoDB table is
    created with a fixed hash and optional range key.
    """

    def __init__(self, *, partition_key: str = "PK", sort_key: str = "") -> None:
        self._key_names = (partition_key, sort_key) if sort_key else (partition_key,)
        self._items: Dict[_ItemId, Item] = {}
        self._lock = threading.Lock()

    def put_if_absent(self, table: str, item: Item, absent_attribute: str) -> None:
        item_id = self._item_id(table, item)
        with self._lock:
            current = self._items.get(item_id)
            if current is not None and absent_attribute in current:
                raise ConditionFailedError(f"{absent_attribute} already set")
            self._items[item_id] = dict(item)

    def replace_if_equal(self, table: str, item: Item, condition_attribute: str, expected: Any) -> None:
        item_id = self._item_id(table, item)
        with self._lock:
            self._check(self._items.get(item_id), condition_attribute, expected)
            self._items[item_id] = dict(item)

    def remove_if_equal(
        self,
        table: str,
        key: Item,
        attributes: Sequence[str],
        condition_attribute: str,
        expected: Any,
    ) -> None:
        item_id = self._item_id(table, key)
        with self._lock:
            current = self._items.get(item_id)
            self._check(current, condition_attribute, expected)
            for name in attributes:
                current.pop(name, None)

    def get(self, table: str, key: Item, attributes: Sequence[str]) -> Optional[Item]:
        with self._lock:
            current = self._items.get(self._item_id(table, key))
            if current is None:
                return None
            projected = {name: current[name] for name in attributes if name in current}
        return projected or None

    def snapshot(self, table: str, key: Item) -> Optional[Item]:
        """Copy of the full stored item, for inspection."""
        with self._lock:
            current = self._items.get(self._item_id(table, key))
            return dict(current) if current is not None else None

    def _item_id(self, table: str, item: Item) -> _ItemId:
        try:
            return table, tuple(item[name] for name in self._key_names)
        except KeyError as exc:
            raise ValueError(f"Item is missing key attribute {exc.args[0]!r}") from exc

    @staticmethod
    def _check(current: Optional[Item], condition_attribute: str, expected: Any) -> None:
        if current is None or current.get(condition_attribute) != expected:
            raise ConditionFailedError(f"{condition_attribute} does not match {expected!r}")
