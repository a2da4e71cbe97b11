"""Lock protocol primitives."""

from .errors import (
    ConditionFailedError,
    LockAcquireTimeoutError,
    LockAlreadyOwnedError,
    LockError,
    LockNotOwnedError,
)
from .lease import ExpirationAnnotation, LeaseContext, LockIdentity
from .lock import DistributedLock
from .lock_async import AsyncDistributedLock
from .locks import LockManager
from .settings import LockSettings

__all__ = [
    "AsyncDistributedLock",
    "ConditionFailedError",
    "DistributedLock",
    "ExpirationAnnotation",
    "LeaseContext",
    "LockAcquireTimeoutError",
    "LockAlreadyOwnedError",
    "LockError",
    "LockIdentity",
    "LockManager",
    "LockNotOwnedError",
    "LockSettings",
]
