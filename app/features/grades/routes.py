"""
Grade sheet routes.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.grades.schemas import (
    GradeSheetCreate,
    GradeSheetListResponse,
    GradeSheetResponse,
    GradeSheetUpdate,
    StudentGradeResponse,
)
from app.features.grades.service import GradeService
from app.features.permissions.dependencies import require_permission
from app.features.users.models import User
from app.features.users.service import page_count


router = APIRouter(tags=["grades"])


def get_grade_service(db: Annotated[AsyncSession, Depends(get_db)]) -> GradeService:
    return GradeService(db)


@router.post("/", response_model=GradeSheetResponse, status_code=status.HTTP_201_CREATED)
async def create_grade_sheet(
    data: GradeSheetCreate,
    user: Annotated[User, Depends(require_permission("grade", "create"))],
    service: Annotated[GradeService, Depends(get_grade_service)]
):
    """Record the marks of a class for one subject and exam."""
    return await service.create_sheet(user, data)


@router.get("/", response_model=GradeSheetListResponse)
async def list_grade_sheets(
    user: Annotated[User, Depends(require_permission("grade", "read"))],
    service: Annotated[GradeService, Depends(get_grade_service)],
    tenant: Optional[str] = None,
    class_id: Optional[str] = None,
    subject: Optional[str] = None,
    academic_year: Optional[str] = None,
    is_published: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100)
):
    items, total = await service.list_sheets(
        user, tenant=tenant, class_id=class_id, subject=subject,
        academic_year=academic_year, is_published=is_published,
        page=page, page_size=page_size,
    )
    return GradeSheetListResponse(
        items=[GradeSheetResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        page_size=page_size,
        pages=page_count(total, page_size),
    )


@router.get("/students/{student_id}", response_model=list[StudentGradeResponse])
async def get_student_grades(
    student_id: str,
    user: Annotated[User, Depends(require_permission("grade", "read"))],
    service: Annotated[GradeService, Depends(get_grade_service)],
    academic_year: Optional[str] = None,
    subject: Optional[str] = None
):
    """Published results of one student."""
    return await service.student_grades(user, student_id, academic_year=academic_year, subject=subject)


@router.get("/{sheet_id}", response_model=GradeSheetResponse)
async def get_grade_sheet(
    sheet_id: str,
    user: Annotated[User, Depends(require_permission("grade", "read"))],
    service: Annotated[GradeService, Depends(get_grade_service)]
):
    return await service.get_sheet(user, sheet_id)


@router.patch("/{sheet_id}", response_model=GradeSheetResponse)
async def update_grade_sheet(
    sheet_id: str,
    data: GradeSheetUpdate,
    user: Annotated[User, Depends(require_permission("grade", "update"))],
    service: Annotated[GradeService, Depends(get_grade_service)]
):
    """Update a draft sheet; published sheets are read only."""
    return await service.update_sheet(user, sheet_id, data)


@router.post("/{sheet_id}/publish", response_model=GradeSheetResponse)
async def publish_grade_sheet(
    sheet_id: str,
    user: Annotated[User, Depends(require_permission("grade", "update"))],
    service: Annotated[GradeService, Depends(get_grade_service)]
):
    """Make a sheet visible to its students."""
    return await service.publish_sheet(user, sheet_id)


@router.delete("/{sheet_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_grade_sheet(
    sheet_id: str,
    user: Annotated[User, Depends(require_permission("grade", "delete"))],
    service: Annotated[GradeService, Depends(get_grade_service)]
):
    await service.delete_sheet(user, sheet_id)
