"""Contract for the key-value store a lock coordinates through."""

from __future__ import annotations

import abc
from typing import Any, Dict, Optional, Sequence


Item = Dict[str, Any]


class LockStore(abc.ABC):
    """Conditional-write primitives on single items identified by a key.

    Implementations raise ``ConditionFailedError`` when a precondition does
    not hold and let every other failure propagate as-is.
    """

    @abc.abstractmethod
    def put_if_absent(self, table: str, item: Item, absent_attribute: str) -> None:  # pragma: no cover - interface
        """Write ``item`` only if the stored item lacks ``absent_attribute``."""
        raise NotImplementedError

    @abc.abstractmethod
    def replace_if_equal(
        self, table: str, item: Item, condition_attribute: str, expected: Any
    ) -> None:  # pragma: no cover - interface
        """Replace the whole item only if ``condition_attribute`` equals ``expected``."""
        raise NotImplementedError

    @abc.abstractmethod
    def remove_if_equal(
        self,
        table: str,
        key: Item,
        attributes: Sequence[str],
        condition_attribute: str,
        expected: Any,
    ) -> None:  # pragma: no cover - interface
        """Drop ``attributes`` only if ``condition_attribute`` equals ``expected``."""
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, table: str, key: Item, attributes: Sequence[str]) -> Optional[Item]:  # pragma: no cover - interface
        """Consistent read of the projected attributes; None when none are present."""
        raise NotImplementedError
