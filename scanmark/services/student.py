"""Student registry: student number to stable internal id."""

import logging
from collections.abc import Mapping

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from scanmark.core.database import upsert
from scanmark.models.base import utcnow
from scanmark.models.student import Student

logger = logging.getLogger(__name__)

# Rows per INSERT statement; keeps bind parameters well under backend limits
BATCH_SIZE = 1000


class StudentService:
    """Lazily creates students and reconciles display names (last non-empty name wins)."""

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, student_number: str, name: str | None = None) -> Student:
        """Find or create one student, updating the name when a different non-empty one is given."""
        self.resolve_many({student_number: name})
        student = self.get_by_number(student_number)
        # Upsert bypasses the identity map, reload any stale instance
        self.db.refresh(student)
        return student

    def resolve_many(self, names: Mapping[str, str | None]) -> dict[str, int]:
        """Upsert every student in ``names`` (number -> name) and return number -> id.

        An empty or missing name never clears a stored one. Rows are written
        in student number order so concurrent documents lock them in the same
        order.
        """
        if not names:
            return {}

        numbers = sorted(names)
        table = Student.__table__
        now = utcnow()
        for start in range(0, len(numbers), BATCH_SIZE):
            chunk = numbers[start:start + BATCH_SIZE]
            stmt = upsert(self.db, table).values([
                {
                    "student_number": number,
                    "name": names[number] or None,
                    "created_at": now,
                    "updated_at": now,
                }
                for number in chunk
            ])
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.student_number],
                set_={"name": stmt.excluded.name, "updated_at": now},
                where=and_(
                    stmt.excluded.name.is_not(None),
                    or_(table.c.name.is_(None), table.c.name != stmt.excluded.name),
                ),
            )
            self.db.execute(stmt)

        ids: dict[str, int] = {}
        for start in range(0, len(numbers), BATCH_SIZE):
            chunk = numbers[start:start + BATCH_SIZE]
            result = self.db.execute(
                select(Student.student_number, Student.id).where(Student.student_number.in_(chunk))
            )
            ids.update({number: student_id for number, student_id in result})

        logger.debug(f"[STUDENTS] Resolved {len(ids)} students")
        return ids

    def get_by_number(self, student_number: str) -> Student | None:
        result = self.db.execute(
            select(Student).where(Student.student_number == student_number)
        )
        return result.scalar_one_or_none()

    def list_all(self) -> list[Student]:
        result = self.db.execute(select(Student).order_by(Student.student_number))
        return list(result.scalars().all())
