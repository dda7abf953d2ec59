from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Optional

from app.core.collection import EntityCollection
from app.core.exceptions import NotFound
from app.core.identifiers import EntityKey, RawId, to_key, to_row_id
from app.crud.base_crud import BaseRepository, clean_optional, require_text
from app.db.row_store import Filter, asc, eq, in_
from app.schemas.course.lesson_schema import LessonOut
from app.schemas.course.module_schema import (
    ModuleCreate,
    ModuleOut,
    ModuleTestCreate,
    ModuleTestOut,
    ModuleUpdate,
)


class ModuleRepository(BaseRepository[ModuleOut]):
    table = "modules"

    def __init__(self, store):
        super().__init__(store)
        self.tests: EntityCollection[ModuleTestOut] = EntityCollection()
        # Identifiants des tests de chaque module déjà chargé
        self._test_ids: Dict[EntityKey, List[EntityKey]] = {}

    async def fetch_all(self, course_id: Optional[RawId] = None) -> List[ModuleOut]:
        """Modules (tous ou ceux d'un cours) avec leurs leçons imbriquées.

        Les leçons sont chargées en une seule requête ``module_id IN (...)``
        puis regroupées par module, sans requête par module.
        """
        filters = []
        if course_id is not None:
            filters.append(eq("course_id", to_row_id(to_key(course_id))))
        return await self._fetch_with_lessons(filters)

    async def fetch_for_courses(self, course_ids: List[RawId]) -> List[ModuleOut]:
        if not course_ids:
            return []
        return await self._fetch_with_lessons(
            [in_("course_id", [to_row_id(to_key(value)) for value in course_ids])]
        )

    async def _fetch_with_lessons(self, filters: List[Filter]) -> List[ModuleOut]:
        async with self.tracking():
            rows = await self.store.select(
                self.table,
                filters=filters,
                order_by=[asc("ordinal"), asc("created_at")],
            )
            lessons_by_module = await self._lessons_for([row["id"] for row in rows])
            modules = [
                ModuleOut.model_validate({**row, "lessons": lessons_by_module.get(to_key(row["id"]), [])})
                for row in rows
            ]
            self.collection.merge(modules)
        return modules

    async def fetch_by_id(self, module_id: RawId) -> Optional[ModuleOut]:
        async with self.tracking():
            row = await self.store.select_one(self.table, filters=[eq("id", to_row_id(to_key(module_id)))])
            if row is None:
                return None
            lessons_by_module = await self._lessons_for([row["id"]])
            module = ModuleOut.model_validate({**row, "lessons": lessons_by_module.get(to_key(row["id"]), [])})
            self.collection.merge([module])
        return module

    async def create(self, payload: ModuleCreate) -> ModuleOut:
        title = require_text(payload.title, "Title is required.")
        async with self.tracking():
            ordinal = payload.ordinal
            if ordinal is None:
                ordinal = await self.store.count(self.table, filters=[eq("course_id", payload.course_id)]) + 1
            row = await self.store.insert(
                self.table,
                {
                    "course_id": payload.course_id,
                    "title": title,
                    "description": clean_optional(payload.description),
                    "ordinal": ordinal,
                },
            )
            module = ModuleOut.model_validate(row)
            self.collection.merge([module])
        return module

    async def update(self, module_id: RawId, changes: ModuleUpdate) -> ModuleOut:
        values: Dict[str, Any] = changes.model_dump(exclude_unset=True)
        if "title" in values:
            values["title"] = require_text(values["title"], "Title is required.")
        if "description" in values:
            values["description"] = clean_optional(values["description"])
        if not values:
            existing = await self.fetch_by_id(module_id)
            if existing is None:
                raise NotFound("Module not found")
            return existing

        async with self.tracking():
            rows = await self.store.update(self.table, values, filters=[eq("id", to_row_id(to_key(module_id)))])
            if not rows:
                raise NotFound("Module not found after update")
            lessons_by_module = await self._lessons_for([rows[0]["id"]])
            module = ModuleOut.model_validate(
                {**rows[0], "lessons": lessons_by_module.get(to_key(rows[0]["id"]), [])}
            )
            self.collection.merge([module])
        return module

    async def fetch_tests(self, module_id: RawId, refresh: bool = False) -> List[ModuleTestOut]:
        key = to_key(module_id)
        if not refresh and key in self._test_ids:
            return [test for test in (self.tests.get(test_id) for test_id in self._test_ids[key]) if test is not None]
        async with self.tracking(self.tests):
            rows = await self.store.select(
                "module_tests",
                filters=[eq("module_id", to_row_id(key))],
                order_by=[asc("id")],
            )
            tests = [ModuleTestOut.model_validate(row) for row in rows]
            self.tests.merge(tests)
            self._test_ids[key] = [to_key(test.id) for test in tests]
        return tests

    async def create_test(self, module_id: RawId, payload: ModuleTestCreate) -> ModuleTestOut:
        title = require_text(payload.title, "Test title is required.")
        key = to_key(module_id)
        async with self.tracking(self.tests):
            row = await self.store.insert(
                "module_tests",
                {
                    "module_id": to_row_id(key),
                    "title": title,
                    "description": clean_optional(payload.description),
                },
            )
            test = ModuleTestOut.model_validate(row)
            self.tests.merge([test])
            if key in self._test_ids:
                self._test_ids[key].append(to_key(test.id))
        return test

    async def _lessons_for(self, module_ids: List[Any]) -> Dict[EntityKey, List[LessonOut]]:
        if not module_ids:
            return {}
        rows = await self.store.select(
            "lessons",
            filters=[in_("module_id", module_ids)],
            order_by=[asc("ordinal"), asc("created_at")],
        )
        grouped: Dict[EntityKey, List[LessonOut]] = defaultdict(list)
        for row in rows:
            grouped[to_key(row["module_id"])].append(LessonOut.model_validate(row))
        return grouped
