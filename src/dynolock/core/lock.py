"""Distributed mutual exclusion on top of a store's conditional writes.

Holders race to create a sentinel record; the store's condition check picks
the winner. There is no heartbeat: a holder that dies keeps its record until
a contender notices the same token twice and the holder's lease has run out,
at which point the contender replaces the record conditioned on that token.
"""

from __future__ import annotations

import datetime as dt
import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional, Union

from dynolock.core.errors import (
    ConditionFailedError,
    LockAcquireTimeoutError,
    LockAlreadyOwnedError,
    LockNotOwnedError,
    _AcquiredBeforeExpiry,
)
from dynolock.core.lease import (
    DEFAULT_KEY_PREFIX,
    DEFAULT_POLL_INTERVAL,
    Duration,
    ExpirationAnnotation,
    LeaseContext,
    LockIdentity,
    new_token,
    to_seconds,
)
from dynolock.data.store import Item, LockStore
from dynolock.utils.logging import get_logger


class DistributedLock:
    """One named lock, held by at most one lock object across all processes.

    Calls on the same object are serialized by a local mutex. Use one object
    per thread of control; sharing an object only queues its callers.
    """

    def __init__(
        self,
        store: LockStore,
        table_name: str,
        partition_key: str,
        sort_key: str,
        name: str,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        strict: bool = False,
    ) -> None:
        self.identity = LockIdentity(
            table_name=table_name,
            partition_key=partition_key,
            sort_key=sort_key,
            name=name,
            key_prefix=key_prefix,
        )
        self.poll_interval = poll_interval
        self.strict = strict
        self.logger = get_logger("DistributedLock")
        self._store = store
        self._local = threading.Lock()
        self._owned: Optional[str] = None
        self._annotation: Optional[ExpirationAnnotation] = None

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def owned(self) -> Optional[str]:
        """Token of the acquisition this object believes it holds."""
        return self._owned

    def set_expiration_annotation(self, attribute_name: str, at: Union[dt.datetime, int, float]) -> None:
        """Write ``attribute_name`` = epoch seconds of ``at`` on the next acquisitions.

        Only for external readers of the table (e.g. a DynamoDB TTL column);
        expiry detection never looks at it.
        """
        self._annotation = ExpirationAnnotation.build(attribute_name, at)

    def acquire(self, lease: Duration) -> None:
        self.acquire_with_timeout(lease, 0)

    def acquire_with_timeout(self, lease: Duration, wait_timeout: Duration) -> None:
        """Block until the lock is ours, ``wait_timeout`` passes, or the store fails.

        A ``wait_timeout`` of zero waits forever.
        """
        with self._local:
            if self.strict and self._owned is not None:
                raise LockAlreadyOwnedError(self.name)

            timeout = to_seconds(wait_timeout)
            token = new_token()
            record = self.identity.record(token, int(to_seconds(lease)), self._annotation)
            started = time.monotonic()
            last_seen: Optional[str] = None

            while True:
                sleep = True
                try:
                    self._store.put_if_absent(self.identity.table_name, record, self.identity.token_attribute)
                except ConditionFailedError:
                    context = self._lease_context()
                    if context is None:
                        # Released between our put and our read; try again right away.
                        sleep = False
                    else:
                        if context.expired(last_seen, started, time.monotonic()):
                            try:
                                self._take_over(context, record)
                            except _AcquiredBeforeExpiry:
                                self.logger.debug("Lost takeover race for %s", self.name)
                            else:
                                self._owned = token
                                self.logger.info(
                                    "Took over expired lock %s from %s (token %s)", self.name, context.token, token
                                )
                                return
                        last_seen = context.token
                else:
                    self._owned = token
                    self.logger.info("Acquired lock %s (token %s)", self.name, token)
                    return

                if timeout and time.monotonic() - started > timeout:
                    raise LockAcquireTimeoutError(self.name, timeout)

                if sleep:
                    time.sleep(self.poll_interval)

    def release(self) -> None:
        """Give the lock back. Losing it to a takeover beforehand is not an error."""
        with self._local:
            if self._owned is None:
                raise LockNotOwnedError(self.name)

            try:
                self._store.remove_if_equal(
                    self.identity.table_name,
                    self.identity.key(),
                    [self.identity.token_attribute, self.identity.lease_attribute],
                    self.identity.token_attribute,
                    self._owned,
                )
            except ConditionFailedError:
                self.logger.warning("Lock %s was taken over before release (token %s)", self.name, self._owned)
            else:
                self.logger.info("Released lock %s (token %s)", self.name, self._owned)
            self._owned = None

    @contextmanager
    def hold(self, lease: Duration, wait_timeout: Duration = 0) -> Iterator["DistributedLock"]:
        self.acquire_with_timeout(lease, wait_timeout)
        try:
            yield self
        finally:
            if self._owned is not None:
                self.release()

    def _lease_context(self) -> Optional[LeaseContext]:
        raw = self._store.get(
            self.identity.table_name,
            self.identity.key(),
            [self.identity.token_attribute, self.identity.lease_attribute],
        )
        return self.identity.lease_context(raw)

    def _take_over(self, context: LeaseContext, record: Item) -> None:
        try:
            self._store.replace_if_equal(
                self.identity.table_name,
                record,
                self.identity.token_attribute,
                context.token,
            )
        except ConditionFailedError as exc:
            raise _AcquiredBeforeExpiry(context.token) from exc

    def __repr__(self) -> str:
        state = "owned" if self._owned else "unowned"
        return f"<DistributedLock {self.identity.table_name}/{self.name} {state}>"
