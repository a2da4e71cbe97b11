"""Exceptions raised by the lock protocol and its stores."""

from __future__ import annotations


class LockError(Exception):
    """Base class for errors a lock surfaces to its caller."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(message)
        self.name = name


class LockAcquireTimeoutError(LockError):
    """The lock could not be obtained before the wait timeout elapsed."""

    def __init__(self, name: str, wait_timeout: float) -> None:
        super().__init__(name, f"failed to acquire lock {name!r} within {wait_timeout:g}s")
        self.wait_timeout = wait_timeout


class LockNotOwnedError(LockError):
    """Release was requested on a lock object that holds no lock."""

    def __init__(self, name: str) -> None:
        super().__init__(name, f"lock {name!r} is not owned by this lock object")


class LockAlreadyOwnedError(LockError):
    """Raised in strict mode when acquiring a lock the object already holds."""

    def __init__(self, name: str) -> None:
        super().__init__(name, f"lock {name!r} is already owned by this lock object")


class ConditionFailedError(Exception):
    """A conditional write was rejected because its precondition did not hold."""


class _AcquiredBeforeExpiry(Exception):
    """Someone else replaced the expired record before our takeover landed."""
