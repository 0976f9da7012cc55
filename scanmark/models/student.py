"""Student model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scanmark.core.database import Base
from scanmark.models.base import IDMixin, TimestampMixin


class Student(Base, IDMixin, TimestampMixin):
    """A student, keyed by the immutable student number printed on scan sheets."""

    __tablename__ = "students"

    student_number: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Relationships
    test_results: Mapped[list["TestResult"]] = relationship(
        "TestResult",
        back_populates="student",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, number={self.student_number}, name={self.name})>"
