"""Distributed locks built on conditional writes to DynamoDB."""

from .core import (
    AsyncDistributedLock,
    DistributedLock,
    LockAcquireTimeoutError,
    LockManager,
    LockNotOwnedError,
    LockSettings,
)

__all__ = [
    "__version__",
    "AsyncDistributedLock",
    "DistributedLock",
    "LockAcquireTimeoutError",
    "LockManager",
    "LockNotOwnedError",
    "LockSettings",
]

__version__ = "0.1.0"
