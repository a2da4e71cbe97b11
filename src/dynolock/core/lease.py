"""Lock record layout and lease bookkeeping shared by the sync and async locks."""

from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict


DEFAULT_KEY_PREFIX = "Dyno"
DEFAULT_POLL_INTERVAL = 0.025

Duration = Union[int, float, dt.timedelta]


def to_seconds(value: Duration) -> float:
    if isinstance(value, dt.timedelta):
        return value.total_seconds()
    return float(value)


def new_token() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class LeaseContext:
    """Token and lease read back from the store while the lock is contended."""

    token: str
    lease_seconds: int

    def expired(self, last_seen: Optional[str], started: float, now: float) -> bool:
        """Return True when this holder looks abandoned.

        The same token has to be observed on two consecutive polls, and the
        time since our own attempt began has to exceed the holder's lease.
        A single observation is never enough to steal.
        """
        return last_seen == self.token and started + self.lease_seconds < now


@dataclass(frozen=True, slots=True)
class ExpirationAnnotation:
    attribute_name: str
    epoch_seconds: int

    @classmethod
    def build(cls, attribute_name: str, at: Union[dt.datetime, int, float]) -> "ExpirationAnnotation":
        if not attribute_name:
            raise ValueError("Expiration attribute name must not be empty")
        if isinstance(at, dt.datetime):
            # naive datetimes are local time, as datetime.timestamp() reads them
            seconds = int(at.timestamp())
        else:
            seconds = int(at)
        return cls(attribute_name=attribute_name, epoch_seconds=seconds)


class LockIdentity(BaseModel):
    """Where a named lock lives in the store and how its record is spelled."""

    model_config = ConfigDict(frozen=True)

    table_name: str
    partition_key: str
    sort_key: str = ""
    name: str
    key_prefix: str = DEFAULT_KEY_PREFIX

    @property
    def token_attribute(self) -> str:
        return f"{self.key_prefix}_LockID"

    @property
    def lease_attribute(self) -> str:
        return f"{self.key_prefix}_Lease"

    def key(self) -> Dict[str, Any]:
        key: Dict[str, Any] = {self.partition_key: f"{self.key_prefix}_Lock/{self.name}"}
        if self.sort_key:
            key[self.sort_key] = f"{self.key_prefix}_LockSortKeyValue"
        return key

    def record(
        self,
        token: str,
        lease_seconds: int,
        annotation: Optional[ExpirationAnnotation] = None,
    ) -> Dict[str, Any]:
        item = self.key()
        item[self.token_attribute] = token
        item[self.lease_attribute] = lease_seconds
        if annotation is not None:
            item[annotation.attribute_name] = annotation.epoch_seconds
        return item

    def lease_context(self, raw: Optional[Dict[str, Any]]) -> Optional[LeaseContext]:
        """Turn a projected store read into a lease context, or None if unlocked."""
        if not raw or raw.get(self.token_attribute) is None:
            return None
        lease = raw.get(self.lease_attribute)
        if lease is None:
            raise ValueError(f"Lock record for {self.name!r} has a token but no lease")
        return LeaseContext(token=str(raw[self.token_attribute]), lease_seconds=int(lease))
