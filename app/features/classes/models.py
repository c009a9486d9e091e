"""
School class model and student enrolment association.
"""
from sqlalchemy import String, Integer, Boolean, ForeignKey, Table, Column, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid
from app.features.users.models import User


# Association table for class enrolment
class_students = Table(
    "class_students",
    Base.metadata,
    Column("class_id", String(26), ForeignKey("school_classes.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class SchoolClass(Base, TimestampMixin):
    """
    A class (grade level + section) of one tenant for one academic year.
    """
    __tablename__ = "school_classes"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", "section", "academic_year", name="uq_school_classes_name"),
    )

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    section: Mapped[str] = mapped_column(String(10), nullable=False)
    grade_level: Mapped[int] = mapped_column(Integer, nullable=False)
    academic_year: Mapped[str] = mapped_column(String(9), nullable=False, index=True)  # e.g. 2024-2025
    class_teacher_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id"), nullable=False, index=True
    )
    capacity: Mapped[int] = mapped_column(Integer, default=40, nullable=False)
    room: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    students: Mapped[list[User]] = relationship(
        User,
        secondary=class_students,
        lazy="selectin",
        order_by=User.last_name,
    )

    @property
    def student_ids(self) -> list[str]:
        return [student.id for student in self.students]

    @property
    def student_count(self) -> int:
        return len(self.students)

    def is_full(self) -> bool:
        return self.student_count >= self.capacity

    def __repr__(self) -> str:
        return f"<SchoolClass(id={self.id}, name={self.name!r}, section={self.section!r}, year={self.academic_year})>"
