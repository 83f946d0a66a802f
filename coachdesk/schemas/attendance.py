"""
Pydantic schemas for attendance marking.
"""

from pydantic import BaseModel, Field
from typing import Literal, Optional, List
from datetime import date as Date

AttendanceStatus = Literal["present", "absent", "late", "leave"]


class AttendanceEntry(BaseModel):
    student_id: str
    status: AttendanceStatus
    notes: Optional[str] = None


class AttendanceMark(BaseModel):
    batch_id: str
    date: Date
    attendance: List[AttendanceEntry] = Field(min_length=1)


class AttendanceUpdate(BaseModel):
    status: Optional[AttendanceStatus] = None
    notes: Optional[str] = None
