"""
Grade sheet model: the marks of one class for one subject and exam.
"""
from datetime import datetime
from typing import Any, Dict, List
from sqlalchemy import String, Integer, Boolean, JSON, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class GradeSheet(Base, TimestampMixin):
    """
    Grade sheet with one entry per student.

    entries: [{"student_id", "marks_obtained", "percentage", "grade", "remarks", "is_absent"}]
    statistics is recomputed from entries on every write.
    """
    __tablename__ = "grade_sheets"
    __table_args__ = (
        UniqueConstraint("class_id", "subject", "exam_name", name="uq_grade_sheets_exam"),
    )

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    class_id: Mapped[str] = mapped_column(String(26), ForeignKey("school_classes.id"), nullable=False, index=True)
    teacher_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False, index=True)

    subject: Mapped[str] = mapped_column(String(100), nullable=False)
    exam_name: Mapped[str] = mapped_column(String(100), nullable=False)
    academic_year: Mapped[str] = mapped_column(String(9), nullable=False, index=True)
    total_marks: Mapped[int] = mapped_column(Integer, nullable=False)

    grading_scale: Mapped[Dict[str, Dict[str, float]]] = mapped_column(JSON, nullable=False)
    entries: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    statistics: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    is_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def entry_for(self, student_id: str) -> Dict[str, Any] | None:
        return next((e for e in self.entries if e["student_id"] == student_id), None)

    def __repr__(self) -> str:
        return f"<GradeSheet(id={self.id}, class_id={self.class_id}, subject={self.subject!r}, exam={self.exam_name!r})>"
