"""
Pydantic schemas for tenants, courses and batches.
"""

from pydantic import BaseModel, Field
from typing import Literal, Optional, List

Plan = Literal["trial", "starter", "pro"]


# ---- Tenant ----
class TenantCreate(BaseModel):
    name: str
    code: str
    subscription_plan: Plan = "trial"
    student_limit: Optional[int] = None


class TenantUpdate(BaseModel):
    name: Optional[str] = None
    subscription_plan: Optional[Plan] = None
    student_limit: Optional[int] = None
    is_active: Optional[bool] = None


# ---- Course ----
class CourseTopic(BaseModel):
    title: str
    description: Optional[str] = None
    order: Optional[int] = None


class CourseCreate(BaseModel):
    name: str
    description: Optional[str] = None
    duration: Optional[str] = None
    fee: float = Field(default=0, ge=0)
    topics: List[CourseTopic] = []


class CourseUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[str] = None
    fee: Optional[float] = Field(default=None, ge=0)
    topics: Optional[List[CourseTopic]] = None


class CourseBatchLink(BaseModel):
    batch_id: str


# ---- Batch ----
class BatchSchedule(BaseModel):
    days: List[str] = []
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class BatchCreate(BaseModel):
    name: str
    course_id: str
    teacher_id: Optional[str] = None
    students: List[str] = []
    schedule: Optional[BatchSchedule] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    status: Literal["active", "inactive", "completed"] = "active"
    capacity: Optional[int] = Field(default=None, gt=0)
    description: Optional[str] = None


class BatchUpdate(BaseModel):
    name: Optional[str] = None
    course_id: Optional[str] = None
    teacher_id: Optional[str] = None
    schedule: Optional[BatchSchedule] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    status: Optional[Literal["active", "inactive", "completed"]] = None
    capacity: Optional[int] = Field(default=None, gt=0)
    description: Optional[str] = None


class BatchStudentsAdd(BaseModel):
    student_ids: List[str]
