"""
Pydantic schemas for grade sheets.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.features.classes.schemas import ACADEMIC_YEAR_PATTERN


class GradeBand(BaseModel):
    min: float = Field(..., ge=0, le=100)
    max: float = Field(..., ge=0, le=100)

    @model_validator(mode="after")
    def check_bounds(self) -> "GradeBand":
        if self.min > self.max:
            raise ValueError("Band minimum cannot exceed its maximum")
        return self


class GradingScale(BaseModel):
    A: GradeBand
    B: GradeBand
    C: GradeBand
    D: GradeBand
    F: GradeBand

    @model_validator(mode="after")
    def check_order(self) -> "GradingScale":
        if not (self.A.min > self.B.min > self.C.min > self.D.min >= self.F.min):
            raise ValueError("Grade bands must be in descending order")
        return self


class GradeEntryInput(BaseModel):
    student_id: str
    marks_obtained: float = Field(0, ge=0)
    remarks: Optional[str] = Field(None, max_length=200)
    is_absent: bool = False


class GradeEntryResponse(BaseModel):
    student_id: str
    marks_obtained: float
    percentage: float
    grade: str
    remarks: Optional[str] = None
    is_absent: bool


class GradeStatistics(BaseModel):
    total_students: int = 0
    absent_count: int = 0
    average_marks: float = 0
    average_percentage: float = 0
    pass_count: int = 0
    fail_count: int = 0
    highest_marks: float = 0
    lowest_marks: float = 0


class GradeSheetCreate(BaseModel):
    class_id: str
    subject: str = Field(..., min_length=1, max_length=100)
    exam_name: str = Field(..., min_length=1, max_length=100)
    academic_year: str = Field(..., pattern=ACADEMIC_YEAR_PATTERN)
    total_marks: int = Field(..., gt=0)
    grading_scale: Optional[GradingScale] = None
    entries: List[GradeEntryInput] = Field(..., min_length=1)


class GradeSheetUpdate(BaseModel):
    grading_scale: Optional[GradingScale] = None
    entries: Optional[List[GradeEntryInput]] = Field(None, min_length=1)


class GradeSheetResponse(BaseModel):
    id: str
    tenant_id: str
    class_id: str
    teacher_id: str
    subject: str
    exam_name: str
    academic_year: str
    total_marks: int
    grading_scale: GradingScale
    entries: List[GradeEntryResponse]
    statistics: GradeStatistics
    is_published: bool
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GradeSheetListResponse(BaseModel):
    items: List[GradeSheetResponse]
    total: int
    page: int
    page_size: int
    pages: int


class StudentGradeResponse(BaseModel):
    """One published result of a student."""
    sheet_id: str
    class_id: str
    subject: str
    exam_name: str
    academic_year: str
    total_marks: int
    marks_obtained: float
    percentage: float
    grade: str
    remarks: Optional[str] = None
    is_absent: bool
    published_at: Optional[datetime] = None
