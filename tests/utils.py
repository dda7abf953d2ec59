"""Utility helpers for test factories."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from app.db.row_store import RowStore
from app.schemas.user.auth_schema import AuthUser


def utc(days_ago: int = 0, **kwargs) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days_ago, **kwargs)


async def create_course(store: RowStore, **kwargs) -> dict:
    defaults = {
        "slug": f"course-{uuid.uuid4().hex[:8]}",
        "title": "Cours",
        "description": None,
    }
    defaults.update(kwargs)
    return await store.insert("courses", defaults)


async def create_module(store: RowStore, course_id: int, **kwargs) -> dict:
    defaults = {"course_id": course_id, "title": "Module", "ordinal": 1}
    defaults.update(kwargs)
    return await store.insert("modules", defaults)


async def create_lesson(store: RowStore, module_id: int, **kwargs) -> dict:
    defaults = {"module_id": module_id, "title": "Leçon", "ordinal": 1}
    defaults.update(kwargs)
    return await store.insert("lessons", defaults)


async def create_profile(store: RowStore, **kwargs) -> dict:
    defaults = {
        "id": str(uuid.uuid4()),
        "email": "student@example.com",
        "display_name": None,
    }
    defaults.update(kwargs)
    return await store.insert("profiles", defaults)


async def create_course_graph(store: RowStore, title: str = "C1", layout=(2, 1)) -> dict:
    """Cours avec ``len(layout)`` modules ; ``layout[i]`` leçons dans le module i."""
    course = await create_course(store, title=title)
    modules = []
    lessons = []
    for index, count in enumerate(layout, start=1):
        module = await create_module(store, course["id"], title=f"{title}-M{index}", ordinal=index)
        modules.append(module)
        for position in range(1, count + 1):
            lessons.append(
                await create_lesson(
                    store,
                    module["id"],
                    title=f"{title}-M{index}-L{position}",
                    ordinal=position,
                )
            )
    return {"course": course, "modules": modules, "lessons": lessons}


def make_user(user_id: str | None = None, email: str = "student@example.com") -> AuthUser:
    return AuthUser(id=user_id or str(uuid.uuid4()), email=email)
