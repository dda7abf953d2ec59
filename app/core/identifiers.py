"""Identifier normalisation.

Rows coming from the backend use integers for content tables and UUID strings
for auth identities. Every comparison between ids goes through :func:`to_key`
so ``1`` and ``"1"`` address the same entity.
"""

from __future__ import annotations

from typing import NewType, Union
from uuid import UUID

EntityKey = NewType("EntityKey", str)

RawId = Union[int, str, UUID]


def to_key(value: RawId) -> EntityKey:
    if value is None:
        raise ValueError("identifier is required")
    if isinstance(value, bool):
        raise TypeError("booleans are not identifiers")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError("identifier is required")
        return EntityKey(value)
    return EntityKey(str(value))


def to_row_id(key: RawId) -> int | str:
    """Convert a key back into the value sent to the backend.

    Integer-looking keys are sent as integers so that comparisons on integer
    primary keys do not depend on the driver casting strings.
    """

    text = str(key).strip()
    if text.isdigit():
        return int(text)
    return text
