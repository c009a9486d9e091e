"""
Pydantic schemas for school classes.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


ACADEMIC_YEAR_PATTERN = r"^\d{4}-\d{4}$"


class ClassBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    section: str = Field(..., min_length=1, max_length=10)
    grade_level: int = Field(..., ge=1, le=12)
    academic_year: str = Field(..., pattern=ACADEMIC_YEAR_PATTERN, description="Format: YYYY-YYYY")
    capacity: int = Field(40, ge=1, le=100)
    room: Optional[str] = Field(None, max_length=50)

    @field_validator("section")
    @classmethod
    def section_uppercase(cls, v: str) -> str:
        return v.strip().upper()


class ClassCreate(ClassBase):
    class_teacher_id: str
    tenant_id: Optional[str] = Field(None, description="Defaults to the caller's tenant")


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    section: Optional[str] = Field(None, min_length=1, max_length=10)
    grade_level: Optional[int] = Field(None, ge=1, le=12)
    academic_year: Optional[str] = Field(None, pattern=ACADEMIC_YEAR_PATTERN)
    class_teacher_id: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1, le=100)
    room: Optional[str] = Field(None, max_length=50)
    is_active: Optional[bool] = None

    @field_validator("section")
    @classmethod
    def section_uppercase(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v is not None else v


class ClassResponse(ClassBase):
    id: str
    tenant_id: str
    class_teacher_id: str
    is_active: bool
    student_ids: List[str] = []
    student_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EnrollmentRequest(BaseModel):
    student_id: str
