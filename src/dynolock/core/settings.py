"""Lock settings loader."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from dynolock.core.lease import DEFAULT_KEY_PREFIX
from dynolock.utils.env import get_bool_env, get_env, get_int_env


class LockSettings(BaseModel):
    table_name: str = Field(min_length=1)
    partition_key: str = "PK"
    sort_key: str = ""  # empty string disables composite keys
    key_prefix: str = DEFAULT_KEY_PREFIX
    region: Optional[str] = None
    endpoint_url: Optional[str] = None  # e.g. http://localhost:8000 for DynamoDB Local
    poll_interval_ms: int = Field(default=25, ge=1)
    strict: bool = False

    @property
    def poll_interval(self) -> float:
        return self.poll_interval_ms / 1000

    @classmethod
    def from_file(cls, path: Path) -> "LockSettings":
        data = yaml.safe_load(path.read_text()) or {}
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid lock settings: {exc}") from exc

    @classmethod
    def from_env(cls) -> "LockSettings":
        data = {
            "table_name": get_env("DYNOLOCK_TABLE", default=""),
            "partition_key": get_env("DYNOLOCK_PARTITION_KEY", default="PK"),
            "sort_key": get_env("DYNOLOCK_SORT_KEY", default=""),
            "key_prefix": get_env("DYNOLOCK_KEY_PREFIX", default=DEFAULT_KEY_PREFIX),
            "region": get_env("DYNOLOCK_REGION"),
            "endpoint_url": get_env("DYNOLOCK_ENDPOINT_URL"),
            "poll_interval_ms": get_int_env("DYNOLOCK_POLL_INTERVAL_MS", default=25),
            "strict": get_bool_env("DYNOLOCK_STRICT"),
        }
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid lock settings: {exc}") from exc
