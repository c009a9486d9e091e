"""
School class routes: CRUD and student enrolment.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import BadRequestError, ConflictError
from app.features.classes.dependencies import get_class_by_id, get_tenant_member
from app.features.classes.models import SchoolClass
from app.features.classes.schemas import ClassCreate, ClassResponse, ClassUpdate, EnrollmentRequest
from app.features.permissions.dependencies import require_permission, resolve_tenant, visible_tenants
from app.features.roles.hierarchy import Role
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["classes"])


async def _commit(db: AsyncSession, school_class: SchoolClass) -> None:
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("Class with this name and section already exists for the academic year") from e
    await db.refresh(school_class)


@router.post("/", response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
async def create_class(
    class_data: ClassCreate,
    user: Annotated[User, Depends(require_permission("class", "create"))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Create a class in the caller's tenant (or a tenant within its scope).

    Raises:
        BadRequestError: class teacher is not an active teacher of the tenant
        ConflictError: name, section and academic year already taken
    """
    tenant_id = resolve_tenant(user, class_data.tenant_id)
    await get_tenant_member(db, class_data.class_teacher_id, tenant_id, Role.TEACHER, "class teacher")

    school_class = SchoolClass(tenant_id=tenant_id, **class_data.model_dump(exclude={"tenant_id"}))
    school_class.students = []
    db.add(school_class)
    await _commit(db, school_class)

    log.info(f"User {user.id} created class {school_class.id} in tenant {tenant_id}")
    return school_class


@router.get("/", response_model=list[ClassResponse])
async def list_classes(
    user: Annotated[User, Depends(require_permission("class", "read"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    tenant: Optional[str] = None,
    academic_year: Optional[str] = None,
    grade_level: Optional[int] = None,
    is_active: Optional[bool] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200)
):
    """List classes; teachers only see the classes they lead."""
    query = select(SchoolClass)
    if tenant is not None:
        query = query.where(SchoolClass.tenant_id == resolve_tenant(user, tenant))
    else:
        tenant_ids = visible_tenants(user)
        if tenant_ids is not None:
            query = query.where(SchoolClass.tenant_id.in_(list(tenant_ids)))

    if user.role == Role.TEACHER:
        query = query.where(SchoolClass.class_teacher_id == user.id)
    if academic_year:
        query = query.where(SchoolClass.academic_year == academic_year)
    if grade_level is not None:
        query = query.where(SchoolClass.grade_level == grade_level)
    if is_active is not None:
        query = query.where(SchoolClass.is_active == is_active)

    result = await db.execute(
        query.order_by(SchoolClass.grade_level, SchoolClass.section).offset(skip).limit(limit)
    )
    return result.scalars().all()


@router.get("/{class_id}", response_model=ClassResponse)
async def get_class(
    class_id: str,
    user: Annotated[User, Depends(require_permission("class", "read"))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get class by ID."""
    return await get_class_by_id(db, class_id, user)


@router.patch("/{class_id}", response_model=ClassResponse)
async def update_class(
    class_id: str,
    update_data: ClassUpdate,
    user: Annotated[User, Depends(require_permission("class", "update"))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update class information; capacity cannot drop below the enrolment."""
    school_class = await get_class_by_id(db, class_id, user)
    update_dict = update_data.model_dump(exclude_unset=True)

    if update_dict.get("class_teacher_id"):
        await get_tenant_member(
            db, update_dict["class_teacher_id"], school_class.tenant_id, Role.TEACHER, "class teacher"
        )
    if update_dict.get("capacity") is not None and update_dict["capacity"] < school_class.student_count:
        raise BadRequestError("Capacity cannot be lower than the number of enrolled students")

    for field, value in update_dict.items():
        if value is not None:
            setattr(school_class, field, value)
    await _commit(db, school_class)

    log.info(f"User {user.id} updated class {school_class.id}: {sorted(update_dict)}")
    return school_class


@router.delete("/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_class(
    class_id: str,
    user: Annotated[User, Depends(require_permission("class", "delete"))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Delete a class without enrolled students."""
    school_class = await get_class_by_id(db, class_id, user)
    if school_class.student_count > 0:
        raise BadRequestError("Cannot delete class with enrolled students")

    await db.delete(school_class)
    await db.commit()
    log.info(f"User {user.id} deleted class {class_id}")


# Enrolment
@router.post("/{class_id}/students", response_model=ClassResponse)
async def enroll_student(
    class_id: str,
    enrollment: EnrollmentRequest,
    user: Annotated[User, Depends(require_permission("class", "update"))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Enrol a student in a class.

    Raises:
        BadRequestError: class full, student invalid or inactive, already enrolled
    """
    school_class = await get_class_by_id(db, class_id, user)
    if school_class.is_full():
        raise BadRequestError("Class is at full capacity")

    student = await get_tenant_member(db, enrollment.student_id, school_class.tenant_id, Role.STUDENT, "student")
    if student.id in school_class.student_ids:
        raise BadRequestError("Student is already enrolled in this class")

    school_class.students.append(student)
    await _commit(db, school_class)

    log.info(f"User {user.id} enrolled {student.id} in class {school_class.id}")
    return school_class


@router.delete("/{class_id}/students/{student_id}", response_model=ClassResponse)
async def remove_student(
    class_id: str,
    student_id: str,
    user: Annotated[User, Depends(require_permission("class", "update"))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Remove a student from a class."""
    school_class = await get_class_by_id(db, class_id, user)
    student = next((s for s in school_class.students if s.id == student_id), None)
    if student is None:
        raise BadRequestError("Student is not enrolled in this class")

    school_class.students.remove(student)
    await _commit(db, school_class)

    log.info(f"User {user.id} removed {student_id} from class {school_class.id}")
    return school_class
