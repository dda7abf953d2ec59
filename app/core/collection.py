"""In-memory cache of the rows a repository has loaded.

Each repository owns one :class:`EntityCollection`. Successful fetches merge
their rows by id, so a course-scoped module fetch never evicts modules loaded
for another course. A failed fetch only records its error message.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from app.core.identifiers import EntityKey, RawId, to_key

T = TypeVar("T")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _aware(value: Optional[datetime]) -> datetime:
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def display_order(item: Any) -> tuple:
    """Sort key: ordinal ascending (missing last), then creation time."""

    ordinal = getattr(item, "ordinal", None)
    return (
        ordinal is None,
        ordinal if ordinal is not None else 0,
        _aware(getattr(item, "created_at", None)),
    )


class EntityCollection(Generic[T]):
    def __init__(self, key_of: Callable[[T], RawId] = lambda item: item.id):  # type: ignore[attr-defined]
        self._items: Dict[EntityKey, T] = {}
        self._key_of = key_of
        self.status: str = "idle"
        self.error: Optional[str] = None

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        try:
            return to_key(key) in self._items  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return False

    def get(self, key: RawId) -> Optional[T]:
        return self._items.get(to_key(key))

    def keys(self) -> List[EntityKey]:
        return list(self._items)

    def merge(self, items: Iterable[T]) -> None:
        """Replace-by-id; entities not in ``items`` are kept."""
        for item in items:
            self._items[to_key(self._key_of(item))] = item
        self.status = "succeeded"
        self.error = None

    def fail(self, message: str) -> None:
        self.status = "failed"
        self.error = message

    def loading(self) -> None:
        self.status = "loading"

    def items(self) -> List[T]:
        """Entities in display order when they carry an ordinal, else insertion order."""
        values = list(self._items.values())
        if values and all(hasattr(value, "ordinal") for value in values):
            return sorted(values, key=display_order)
        return values
