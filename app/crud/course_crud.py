from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from app.core.exceptions import NotFound, ValidationFailed
from app.core.identifiers import RawId, to_key, to_row_id
from app.crud.base_crud import BaseRepository, clean_optional, require_text, utcnow
from app.db.row_store import asc, desc, eq, in_
from app.schemas.course.course_schema import CourseCreate, CourseDetail, CourseOut, CourseUpdate
from app.schemas.course.module_schema import ModuleOut

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """``"Intro à Python 3!"`` -> ``"intro-python-3"``."""
    return _NON_SLUG_CHARS.sub("-", value.lower()).strip("-")


class CourseRepository(BaseRepository[CourseOut]):
    table = "courses"

    async def fetch_all(self) -> List[CourseOut]:
        async with self.tracking():
            rows = await self.store.select(self.table, order_by=[desc("created_at")])
            courses = [CourseOut.model_validate(row) for row in rows]
            self.collection.merge(courses)
        return courses

    async def fetch_for_student(self, user_id: str) -> List[CourseOut]:
        """Cours pour lesquels l'étudiant possède une ligne de progression."""
        async with self.tracking():
            progress_rows = await self.store.select(
                "user_course_progress",
                columns=["course_id"],
                filters=[eq("user_id", user_id)],
            )
            ids = list(dict.fromkeys(row["course_id"] for row in progress_rows if row["course_id"] is not None))
            if not ids:
                return []
            rows = await self.store.select(
                self.table,
                filters=[in_("id", ids)],
                order_by=[desc("created_at")],
            )
            courses = [CourseOut.model_validate(row) for row in rows]
            self.collection.merge(courses)
        return courses

    async def fetch_by_id(self, course_id: RawId) -> Optional[CourseDetail]:
        async with self.tracking():
            row = await self.store.select_one(self.table, filters=[eq("id", to_row_id(to_key(course_id)))])
            if row is None:
                return None
            module_rows = await self.store.select(
                "modules",
                filters=[eq("course_id", row["id"])],
                order_by=[asc("ordinal"), asc("created_at")],
            )
            course = CourseDetail.model_validate(
                {**row, "modules": [ModuleOut.model_validate(item) for item in module_rows]}
            )
            self.collection.merge([CourseOut.model_validate(row)])
        return course

    async def fetch_titles(self, course_ids: List[RawId]) -> Dict[str, str]:
        if not course_ids:
            return {}
        rows = await self.store.select(
            self.table,
            columns=["id", "title"],
            filters=[in_("id", [to_row_id(to_key(value)) for value in course_ids])],
        )
        return {to_key(row["id"]): row["title"] for row in rows}

    async def create(self, payload: CourseCreate) -> CourseOut:
        title = (payload.title or "").strip()
        slug = slugify(payload.slug.strip()) if payload.slug and payload.slug.strip() else slugify(title)
        if not title or not slug:
            raise ValidationFailed("Title and slug are required.")

        async with self.tracking():
            row = await self.store.insert(
                self.table,
                {"title": title, "slug": slug, "description": clean_optional(payload.description)},
            )
            course = CourseOut.model_validate(row)
            self.collection.merge([course])
        return course

    async def update(self, course_id: RawId, changes: CourseUpdate) -> CourseOut:
        values: Dict[str, Any] = changes.model_dump(exclude_unset=True)
        if "title" in values:
            values["title"] = require_text(values["title"], "Title is required.")
        if "slug" in values:
            values["slug"] = slugify(values["slug"] or "")
            if not values["slug"]:
                raise ValidationFailed("Title and slug are required.")
        if "description" in values:
            values["description"] = clean_optional(values["description"])
        values["updated_at"] = utcnow()

        async with self.tracking():
            rows = await self.store.update(self.table, values, filters=[eq("id", to_row_id(to_key(course_id)))])
            if not rows:
                raise NotFound("Course not found after update")
            course = CourseOut.model_validate(rows[0])
            self.collection.merge([course])
        return course
