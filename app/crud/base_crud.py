from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Generic, Optional, TypeVar

from app.core.collection import EntityCollection
from app.core.exceptions import BackendError, ValidationFailed
from app.db.row_store import RowStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def require_text(value: Optional[str], message: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationFailed(message)
    return cleaned


def clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class BaseRepository(Generic[T]):
    """Shared plumbing: a row store handle and the repository's collection."""

    table: str = ""

    def __init__(self, store: RowStore):
        self.store = store
        self.collection: EntityCollection[T] = EntityCollection()

    @asynccontextmanager
    async def tracking(self, collection: Optional[EntityCollection] = None) -> AsyncIterator[None]:
        """Record a failed fetch on ``collection`` without touching its items."""
        target = collection if collection is not None else self.collection
        target.loading()
        try:
            yield
        except BackendError as exc:
            target.fail(exc.message)
            logger.warning("Échec %s sur %s: %s", exc.code, self.table, exc.message)
            raise
        if target.status == "loading":
            target.status = "succeeded"
