from __future__ import annotations

import os
from unittest import mock

import pytest

from dynolock.core.lock import DistributedLock
from dynolock.core.lock_async import AsyncDistributedLock
from dynolock.core.locks import LockManager
from dynolock.core.settings import LockSettings
from dynolock.data.store_dynamodb import DynamoDBLockStore
from dynolock.data.store_memory import MemoryLockStore


def test_settings_from_file(tmp_path):
    path = tmp_path / "lock.yml"
    path.write_text(
        "table_name: locks\n"
        "sort_key: SK\n"
        "endpoint_url: http://localhost:8000\n"
        "poll_interval_ms: 50\n"
    )

    settings = LockSettings.from_file(path)

    assert settings.table_name == "locks"
    assert settings.partition_key == "PK"
    assert settings.sort_key == "SK"
    assert settings.key_prefix == "Dyno"
    assert settings.poll_interval == pytest.approx(0.05)


def test_settings_from_file_rejects_bad_values(tmp_path):
    path = tmp_path / "lock.yml"
    path.write_text("table_name: locks\npoll_interval_ms: 0\n")

    with pytest.raises(ValueError, match="Invalid lock settings"):
        LockSettings.from_file(path)


def test_settings_from_env():
    env = {
        "DYNOLOCK_TABLE": "locks",
        "DYNOLOCK_SORT_KEY": "SK",
        "DYNOLOCK_REGION": "eu-west-1",
        "DYNOLOCK_POLL_INTERVAL_MS": "10",
        "DYNOLOCK_STRICT": "yes",
    }
    with mock.patch.dict(os.environ, env, clear=True):
        settings = LockSettings.from_env()

    assert settings.table_name == "locks"
    assert settings.sort_key == "SK"
    assert settings.region == "eu-west-1"
    assert settings.endpoint_url is None
    assert settings.poll_interval_ms == 10
    assert settings.strict is True


def test_settings_from_env_requires_table():
    with mock.patch.dict(os.environ, {}, clear=True):
        with pytest.raises(ValueError, match="Invalid lock settings"):
            LockSettings.from_env()


def test_manager_hands_out_independent_locks():
    settings = LockSettings(table_name="locks", sort_key="SK", poll_interval_ms=5, strict=True)
    manager = LockManager(MemoryLockStore(partition_key="PK", sort_key="SK"), settings)

    first = manager.lock("jobs")
    second = manager.lock("jobs", strict=False)

    assert isinstance(first, DistributedLock)
    assert first.strict is True and second.strict is False
    assert first.poll_interval == pytest.approx(0.005)
    assert isinstance(manager.async_lock("jobs"), AsyncDistributedLock)

    first.acquire(30)
    assert second.owned is None
    first.release()
    second.acquire_with_timeout(30, 1)
    assert second.owned is not None


def test_manager_from_settings_builds_dynamodb_store():
    settings = LockSettings(table_name="locks", region="us-east-1", endpoint_url="http://localhost:8000")

    manager = LockManager.from_settings(settings)

    assert isinstance(manager.store, DynamoDBLockStore)
    assert manager.store.client.meta.endpoint_url == "http://localhost:8000"
