from __future__ import annotations

from typing import Any, Dict, List, Optional

from app.core.exceptions import NotFound
from app.core.identifiers import RawId, to_key
from app.crud.base_crud import BaseRepository, clean_optional
from app.db.row_store import desc, eq
from app.schemas.user.profile_schema import ProfileUpdate, StudentOut


class StudentRepository(BaseRepository[StudentOut]):
    """Étudiants = lignes de ``profiles`` (l'id est celui du compte d'authentification)."""

    table = "profiles"

    async def fetch_all(self) -> List[StudentOut]:
        async with self.tracking():
            rows = await self.store.select(self.table, order_by=[desc("created_at")])
            students = [StudentOut.model_validate(row) for row in rows]
            self.collection.merge(students)
        return students

    async def fetch_by_id(self, student_id: RawId) -> Optional[StudentOut]:
        async with self.tracking():
            row = await self.store.select_one(self.table, filters=[eq("id", str(to_key(student_id)))])
            if row is None:
                return None
            student = StudentOut.model_validate(row)
            self.collection.merge([student])
        return student

    async def update(self, student_id: RawId, changes: ProfileUpdate) -> StudentOut:
        values: Dict[str, Any] = {
            name: clean_optional(value) for name, value in changes.model_dump(exclude_unset=True).items()
        }
        if not values:
            existing = await self.fetch_by_id(student_id)
            if existing is None:
                raise NotFound("Profile not found")
            return existing

        async with self.tracking():
            rows = await self.store.update(self.table, values, filters=[eq("id", str(to_key(student_id)))])
            if not rows:
                raise NotFound("Profile not found after update")
            student = StudentOut.model_validate(rows[0])
            self.collection.merge([student])
        return student
