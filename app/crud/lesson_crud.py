from __future__ import annotations

from typing import Any, Dict, List, Optional

from app.core.collection import EntityCollection
from app.core.exceptions import NotFound, ValidationFailed
from app.core.identifiers import EntityKey, RawId, to_key, to_row_id
from app.crud.base_crud import BaseRepository, clean_optional, require_text
from app.db.row_store import asc, eq, in_
from app.schemas.course.lesson_schema import (
    LessonCreate,
    LessonOut,
    LessonResourceCreate,
    LessonResourceOut,
    LessonResourceUpdate,
    LessonUpdate,
)


class LessonRepository(BaseRepository[LessonOut]):
    table = "lessons"

    def __init__(self, store):
        super().__init__(store)
        self.resources: EntityCollection[LessonResourceOut] = EntityCollection()
        # Identifiants des ressources de chaque leçon déjà chargée
        self._resource_ids: Dict[EntityKey, List[EntityKey]] = {}

    async def fetch_all(self, module_id: Optional[RawId] = None) -> List[LessonOut]:
        filters = []
        if module_id is not None:
            filters.append(eq("module_id", to_row_id(to_key(module_id))))
        async with self.tracking():
            rows = await self.store.select(
                self.table,
                filters=filters,
                order_by=[asc("ordinal"), asc("created_at")],
            )
            lessons = [LessonOut.model_validate(row) for row in rows]
            self.collection.merge(lessons)
        return lessons

    async def fetch_by_ids(self, ids: List[RawId]) -> List[LessonOut]:
        """Leçons dans l'ordre des identifiants demandés (inconnus ignorés)."""
        keys = list(dict.fromkeys(to_key(value) for value in ids))
        if not keys:
            return []
        async with self.tracking():
            rows = await self.store.select(
                self.table,
                filters=[in_("id", [to_row_id(key) for key in keys])],
                order_by=[asc("created_at")],
            )
            by_key = {to_key(row["id"]): LessonOut.model_validate(row) for row in rows}
            lessons = [by_key[key] for key in keys if key in by_key]
            self.collection.merge(lessons)
        return lessons

    async def fetch_by_id(self, lesson_id: RawId) -> Optional[LessonOut]:
        async with self.tracking():
            row = await self.store.select_one(self.table, filters=[eq("id", to_row_id(to_key(lesson_id)))])
            if row is None:
                return None
            lesson = LessonOut.model_validate(row)
            self.collection.merge([lesson])
        return lesson

    async def create(self, payload: LessonCreate) -> LessonOut:
        title = require_text(payload.title, "Title is required.")
        async with self.tracking():
            ordinal = payload.ordinal
            if ordinal is None:
                ordinal = await self.store.count(self.table, filters=[eq("module_id", payload.module_id)]) + 1
            row = await self.store.insert(
                self.table,
                {
                    "module_id": payload.module_id,
                    "title": title,
                    "slug": clean_optional(payload.slug),
                    "ordinal": ordinal,
                    "content": payload.content or None,
                    "video_url": clean_optional(payload.video_url),
                    "duration_seconds": payload.duration_seconds,
                },
            )
            lesson = LessonOut.model_validate(row)
            self.collection.merge([lesson])
        return lesson

    async def update(self, lesson_id: RawId, changes: LessonUpdate) -> LessonOut:
        values: Dict[str, Any] = changes.model_dump(exclude_unset=True)
        if "title" in values:
            values["title"] = require_text(values["title"], "Title is required.")
        for name in ("slug", "video_url"):
            if name in values:
                values[name] = clean_optional(values[name])
        if not values:
            existing = await self.fetch_by_id(lesson_id)
            if existing is None:
                raise NotFound("Lesson not found")
            return existing

        async with self.tracking():
            rows = await self.store.update(self.table, values, filters=[eq("id", to_row_id(to_key(lesson_id)))])
            if not rows:
                raise NotFound("Lesson not found after update")
            lesson = LessonOut.model_validate(rows[0])
            self.collection.merge([lesson])
        return lesson

    # ------------------------------------------------------------------
    # Ressources
    # ------------------------------------------------------------------
    def cached_resources(self, lesson_id: RawId) -> Optional[List[LessonResourceOut]]:
        """Ressources déjà en cache pour la leçon, ``None`` si jamais chargées."""
        ids = self._resource_ids.get(to_key(lesson_id))
        if ids is None:
            return None
        return [resource for resource in (self.resources.get(key) for key in ids) if resource is not None]

    async def fetch_resources(self, lesson_id: RawId, refresh: bool = False) -> List[LessonResourceOut]:
        """Ressources d'une leçon ; servies depuis le cache sauf ``refresh``."""
        key = to_key(lesson_id)
        if not refresh:
            cached = self.cached_resources(key)
            if cached is not None:
                return cached
        async with self.tracking(self.resources):
            rows = await self.store.select(
                "lesson_resources",
                filters=[eq("lesson_id", to_row_id(key))],
                order_by=[asc("created_at"), asc("id")],
            )
            resources = [LessonResourceOut.model_validate(row) for row in rows]
            self.resources.merge(resources)
            self._resource_ids[key] = [to_key(resource.id) for resource in resources]
        return resources

    async def create_resource(self, lesson_id: RawId, payload: LessonResourceCreate) -> LessonResourceOut:
        title = require_text(payload.title, "Resource title is required.")
        key = to_key(lesson_id)
        async with self.tracking(self.resources):
            row = await self.store.insert(
                "lesson_resources",
                {
                    "lesson_id": to_row_id(key),
                    "title": title,
                    "url": clean_optional(payload.url),
                    "resource_type": payload.resource_type or None,
                },
            )
            resource = LessonResourceOut.model_validate(row)
            self.resources.merge([resource])
            if key in self._resource_ids:
                self._resource_ids[key].append(to_key(resource.id))
        return resource

    async def update_resource(self, resource_id: RawId, changes: LessonResourceUpdate) -> LessonResourceOut:
        values: Dict[str, Any] = changes.model_dump(exclude_unset=True)
        if "title" in values:
            values["title"] = require_text(values["title"], "Resource title is required.")
        if "url" in values:
            values["url"] = clean_optional(values["url"])
        if not values:
            raise ValidationFailed("Nothing to update.")

        async with self.tracking(self.resources):
            rows = await self.store.update(
                "lesson_resources",
                values,
                filters=[eq("id", to_row_id(to_key(resource_id)))],
            )
            if not rows:
                raise NotFound("Resource not found after update")
            resource = LessonResourceOut.model_validate(rows[0])
            self.resources.merge([resource])
        return resource
