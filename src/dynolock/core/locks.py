"""Factory for lock objects sharing one store and table layout."""

from __future__ import annotations

from typing import Optional

from dynolock.core.lock import DistributedLock
from dynolock.core.lock_async import AsyncDistributedLock
from dynolock.core.settings import LockSettings
from dynolock.data.store import LockStore
from dynolock.data.store_dynamodb import DynamoDBLockStore


class LockManager:
    """Hands out lock objects for names in the configured table.

    Every call returns a new object with its own ownership state, so two
    calls with the same name contend with each other like two processes.
    """

    def __init__(self, store: LockStore, settings: LockSettings) -> None:
        self.store = store
        self.settings = settings

    @classmethod
    def from_settings(cls, settings: LockSettings) -> "LockManager":
        store = DynamoDBLockStore.connect(region=settings.region, endpoint_url=settings.endpoint_url)
        return cls(store, settings)

    def lock(self, name: str, *, strict: Optional[bool] = None) -> DistributedLock:
        return DistributedLock(
            self.store,
            self.settings.table_name,
            self.settings.partition_key,
            self.settings.sort_key,
            name,
            key_prefix=self.settings.key_prefix,
            poll_interval=self.settings.poll_interval,
            strict=self.settings.strict if strict is None else strict,
        )

    def async_lock(self, name: str, *, strict: Optional[bool] = None) -> AsyncDistributedLock:
        return AsyncDistributedLock(
            self.store,
            self.settings.table_name,
            self.settings.partition_key,
            self.settings.sort_key,
            name,
            key_prefix=self.settings.key_prefix,
            poll_interval=self.settings.poll_interval,
            strict=self.settings.strict if strict is None else strict,
        )
