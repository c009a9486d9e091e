"""
Grade sheet service.
"""
from typing import Any, Optional, Sequence
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.features.classes.dependencies import get_class_by_id
from app.features.grades.grading import DEFAULT_GRADING_SCALE, grade_entry, summarize
from app.features.grades.models import GradeSheet
from app.features.grades.schemas import GradeEntryInput, GradeSheetCreate, GradeSheetUpdate
from app.features.permissions.dependencies import resolve_tenant, visible_tenants
from app.features.roles.hierarchy import Role
from app.features.users.models import User
from app.utils import get_logger, utcnow


log = get_logger(__name__)

PUPIL_ROLES = frozenset({Role.STUDENT, Role.PARENT})


class GradeService:
    """Grade sheet operations bound to one database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_sheet(self, actor: User, data: GradeSheetCreate) -> GradeSheet:
        """
        Grade a class for one subject and exam.

        Every entry must name a student enrolled in the class. Teachers become
        the sheet owner; staff create sheets on behalf of the class teacher.

        Raises:
            NotFoundError: class missing or outside the actor's tenants
            BadRequestError: unknown or duplicate students, marks above total
            ConflictError: sheet already exists for the class, subject and exam
        """
        school_class = await get_class_by_id(self.db, data.class_id, actor)
        scale = data.grading_scale.model_dump() if data.grading_scale else dict(DEFAULT_GRADING_SCALE)

        self._check_students(data.entries, set(school_class.student_ids))
        entries = self._grade_entries(data.entries, data.total_marks, scale)

        sheet = GradeSheet(
            tenant_id=school_class.tenant_id,
            class_id=school_class.id,
            teacher_id=actor.id if actor.role == Role.TEACHER else school_class.class_teacher_id,
            subject=data.subject,
            exam_name=data.exam_name,
            academic_year=data.academic_year,
            total_marks=data.total_marks,
            grading_scale=scale,
            entries=entries,
            statistics=summarize(entries),
        )
        self.db.add(sheet)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError("Grades already exist for this exam") from e
        await self.db.refresh(sheet)

        log.info(f"User {actor.id} created grade sheet {sheet.id} for class {school_class.id}")
        return sheet

    async def get_sheet(self, actor: User, sheet_id: str) -> GradeSheet:
        result = await self.db.execute(select(GradeSheet).where(GradeSheet.id == sheet_id))
        sheet = result.scalar_one_or_none()
        if sheet is None:
            raise NotFoundError("Grade record not found")

        tenant_ids = visible_tenants(actor)
        if tenant_ids is not None and sheet.tenant_id not in tenant_ids:
            raise NotFoundError("Grade record not found")
        if actor.role in PUPIL_ROLES:
            raise ForbiddenError("Use the student grades view")
        return sheet

    async def list_sheets(
        self,
        actor: User,
        tenant: Optional[str] = None,
        class_id: Optional[str] = None,
        subject: Optional[str] = None,
        academic_year: Optional[str] = None,
        is_published: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[Sequence[GradeSheet], int]:
        """Sheets visible to `actor`, newest first; teachers see their own."""
        if actor.role in PUPIL_ROLES:
            raise ForbiddenError("Use the student grades view")

        query = select(GradeSheet)
        if tenant is not None:
            query = query.where(GradeSheet.tenant_id == resolve_tenant(actor, tenant))
        else:
            tenant_ids = visible_tenants(actor)
            if tenant_ids is not None:
                query = query.where(GradeSheet.tenant_id.in_(list(tenant_ids)))

        if actor.role == Role.TEACHER:
            query = query.where(GradeSheet.teacher_id == actor.id)
        if class_id:
            query = query.where(GradeSheet.class_id == class_id)
        if subject:
            query = query.where(GradeSheet.subject == subject)
        if academic_year:
            query = query.where(GradeSheet.academic_year == academic_year)
        if is_published is not None:
            query = query.where(GradeSheet.is_published == is_published)

        total = (await self.db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
        result = await self.db.execute(
            query.order_by(GradeSheet.created_at.desc(), GradeSheet.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return result.scalars().all(), total

    async def update_sheet(self, actor: User, sheet_id: str, data: GradeSheetUpdate) -> GradeSheet:
        """Replace entries and/or scale of a draft sheet and recompute statistics."""
        sheet = await self._get_owned_sheet(actor, sheet_id)
        if sheet.is_published:
            raise BadRequestError("Cannot update published grades")

        scale = data.grading_scale.model_dump() if data.grading_scale else sheet.grading_scale
        if data.entries is not None:
            school_class = await get_class_by_id(self.db, sheet.class_id, actor)
            self._check_students(data.entries, set(school_class.student_ids))
            inputs = data.entries
        else:
            inputs = [GradeEntryInput(**{k: e[k] for k in ("student_id", "marks_obtained", "remarks", "is_absent")})
                      for e in sheet.entries]

        entries = self._grade_entries(inputs, sheet.total_marks, scale)
        sheet.grading_scale = scale
        sheet.entries = entries
        sheet.statistics = summarize(entries)
        await self.db.commit()
        await self.db.refresh(sheet)

        log.info(f"User {actor.id} updated grade sheet {sheet.id}")
        return sheet

    async def publish_sheet(self, actor: User, sheet_id: str) -> GradeSheet:
        sheet = await self._get_owned_sheet(actor, sheet_id)
        if sheet.is_published:
            raise BadRequestError("Grades are already published")

        sheet.is_published = True
        sheet.published_at = utcnow()
        await self.db.commit()
        await self.db.refresh(sheet)

        log.info(f"User {actor.id} published grade sheet {sheet.id}")
        return sheet

    async def delete_sheet(self, actor: User, sheet_id: str) -> None:
        sheet = await self._get_owned_sheet(actor, sheet_id)
        if sheet.is_published:
            raise BadRequestError("Cannot delete published grades")

        await self.db.delete(sheet)
        await self.db.commit()
        log.info(f"User {actor.id} deleted grade sheet {sheet_id}")

    async def student_grades(
        self,
        actor: User,
        student_id: str,
        academic_year: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """
        Published results of one student, newest first.

        Students may only read their own results.
        """
        if actor.role == Role.STUDENT and actor.id != student_id:
            raise ForbiddenError("Students can only view their own grades")
        if actor.role == Role.PARENT:
            raise ForbiddenError("No students are linked to this account")

        result = await self.db.execute(select(User).where(User.id == student_id, User.role == Role.STUDENT))
        student = result.scalar_one_or_none()
        if student is None:
            raise NotFoundError("Student not found")
        resolve_tenant(actor, student.tenant_id)

        query = select(GradeSheet).where(
            GradeSheet.tenant_id == student.tenant_id,
            GradeSheet.is_published == True  # noqa: E712
        )
        if academic_year:
            query = query.where(GradeSheet.academic_year == academic_year)
        if subject:
            query = query.where(GradeSheet.subject == subject)
        result = await self.db.execute(query.order_by(GradeSheet.created_at.desc(), GradeSheet.id.desc()))

        grades = []
        for sheet in result.scalars().all():
            entry = sheet.entry_for(student_id)
            if entry is None:
                continue
            grades.append({
                "sheet_id": sheet.id,
                "class_id": sheet.class_id,
                "subject": sheet.subject,
                "exam_name": sheet.exam_name,
                "academic_year": sheet.academic_year,
                "total_marks": sheet.total_marks,
                "published_at": sheet.published_at,
                **entry,
            })
        return grades

    async def _get_owned_sheet(self, actor: User, sheet_id: str) -> GradeSheet:
        sheet = await self.get_sheet(actor, sheet_id)
        if actor.role == Role.TEACHER and sheet.teacher_id != actor.id:
            raise ForbiddenError("Teachers can only modify their own grade sheets")
        return sheet

    @staticmethod
    def _check_students(entries: Sequence[GradeEntryInput], enrolled: set[str]) -> None:
        student_ids = [e.student_id for e in entries]
        if len(set(student_ids)) != len(student_ids):
            raise BadRequestError("Each student can only be graded once per sheet")
        if not set(student_ids) <= enrolled:
            raise BadRequestError("One or more students are not enrolled in this class")

    @staticmethod
    def _grade_entries(entries: Sequence[GradeEntryInput], total_marks: int, scale) -> list[dict[str, Any]]:
        graded = []
        for e in entries:
            if not e.is_absent and e.marks_obtained > total_marks:
                raise BadRequestError(f"Marks for student {e.student_id} exceed the total marks")
            graded.append(grade_entry(
                e.student_id, e.marks_obtained, total_marks, scale,
                remarks=e.remarks, is_absent=e.is_absent,
            ))
        return graded
