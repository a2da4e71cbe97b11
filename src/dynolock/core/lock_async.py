"""Asyncio flavour of the distributed lock.

Store calls are blocking, so they run on the default executor; the poll wait
is an ``asyncio.sleep`` and can be cancelled like any other await.

A thread cannot be interrupted, so a write that is in flight when the task
is cancelled still runs to completion. Writes are shielded and, on
cancellation, awaited; if the record landed it is removed again before the
cancellation propagates.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional, Union

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


class AsyncDistributedLock:
    """Same protocol as ``DistributedLock`` for coroutines.

    Calls on one object are serialized by an ``asyncio.Lock``. Cancelling a
    waiting ``acquire`` leaves both the object and the store unowned.
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
        self.logger = get_logger("AsyncDistributedLock")
        self._store = store
        self._local = asyncio.Lock()
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
        """Write ``attribute_name`` = epoch seconds of ``at`` on the next acquisitions."""
        self._annotation = ExpirationAnnotation.build(attribute_name, at)

    async def acquire(self, lease: Duration) -> None:
        await self.acquire_with_timeout(lease, 0)

    async def acquire_with_timeout(self, lease: Duration, wait_timeout: Duration) -> None:
        """Wait until the lock is ours, ``wait_timeout`` passes, or the store fails.

        A ``wait_timeout`` of zero waits forever.
        """
        async with self._local:
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
                    await self._write(
                        token,
                        self._store.put_if_absent,
                        self.identity.table_name,
                        record,
                        self.identity.token_attribute,
                    )
                except ConditionFailedError:
                    context = await self._lease_context()
                    if context is None:
                        sleep = False
                    else:
                        if context.expired(last_seen, started, time.monotonic()):
                            try:
                                await self._take_over(context, record, token)
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
                    await asyncio.sleep(self.poll_interval)
                else:
                    # Let other tasks run between back-to-back retries.
                    await asyncio.sleep(0)

    async def release(self) -> None:
        """Give the lock back. Losing it to a takeover beforehand is not an error."""
        async with self._local:
            if self._owned is None:
                raise LockNotOwnedError(self.name)

            try:
                await asyncio.to_thread(self._remove, self._owned)
            except ConditionFailedError:
                self.logger.warning("Lock %s was taken over before release (token %s)", self.name, self._owned)
            else:
                self.logger.info("Released lock %s (token %s)", self.name, self._owned)
            self._owned = None

    @asynccontextmanager
    async def hold(self, lease: Duration, wait_timeout: Duration = 0) -> AsyncIterator["AsyncDistributedLock"]:
        await self.acquire_with_timeout(lease, wait_timeout)
        try:
            yield self
        finally:
            if self._owned is not None:
                await self.release()

    async def _lease_context(self) -> Optional[LeaseContext]:
        raw = await asyncio.to_thread(
            self._store.get,
            self.identity.table_name,
            self.identity.key(),
            [self.identity.token_attribute, self.identity.lease_attribute],
        )
        return self.identity.lease_context(raw)

    async def _take_over(self, context: LeaseContext, record: Item, token: str) -> None:
        try:
            await self._write(
                token,
                self._store.replace_if_equal,
                self.identity.table_name,
                record,
                self.identity.token_attribute,
                context.token,
            )
        except ConditionFailedError as exc:
            raise _AcquiredBeforeExpiry(context.token) from exc

    async def _write(self, token: str, operation: Callable[..., Any], *args: Any) -> None:
        """Run a write that installs ``token``; undo it if we get cancelled meanwhile."""
        write = asyncio.ensure_future(asyncio.to_thread(operation, *args))
        try:
            await asyncio.shield(write)
        except asyncio.CancelledError:
            await self._abandon(write, token)
            raise

    async def _abandon(self, write: "asyncio.Future[Any]", token: str) -> None:
        try:
            await write
        except ConditionFailedError:
            return
        except Exception:
            # Outcome unknown; the conditional remove below is a no-op if it never landed.
            self.logger.warning("Write for %s failed while cancelling (token %s)", self.name, token, exc_info=True)

        try:
            await asyncio.to_thread(self._remove, token)
        except ConditionFailedError:
            return
        except Exception:
            self.logger.warning(
                "Could not remove %s after cancellation (token %s); it expires with its lease",
                self.name,
                token,
                exc_info=True,
            )
        else:
            self.logger.info("Removed %s written by a cancelled acquire (token %s)", self.name, token)

    def _remove(self, token: str) -> None:
        self._store.remove_if_equal(
            self.identity.table_name,
            self.identity.key(),
            [self.identity.token_attribute, self.identity.lease_attribute],
            self.identity.token_attribute,
            token,
        )

    def __repr__(self) -> str:
        state = "owned" if self._owned else "unowned"
        return f"<AsyncDistributedLock {self.identity.table_name}/{self.name} {state}>"
