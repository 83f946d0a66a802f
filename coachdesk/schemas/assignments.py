from pydantic import BaseModel, Field
from typing import List, Optional

ASSIGNMENT_TYPES = ("homework", "project", "quiz", "exam", "practical")


class SubmissionGrade(BaseModel):
    grade: float = Field(allow_inf_nan=False)
    feedback: Optional[str] = None


class BulkGradeItem(BaseModel):
    submission_id: str
    grade: float = Field(allow_inf_nan=False)
    feedback: Optional[str] = None


class BulkGrade(BaseModel):
    submissions: List[BulkGradeItem] = Field(min_length=1)
