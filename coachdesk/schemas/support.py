"""
Pydantic schemas for class schedules, support tickets and contact messages.
"""

from pydantic import BaseModel, Field
from typing import Literal, Optional

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
Weekday = Literal["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

# 24h "HH:MM"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# ---- Schedule ----
class ScheduleCreate(BaseModel):
    batch_id: str
    day: Weekday
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    room: Optional[str] = None
    teacher_id: Optional[str] = None


class ScheduleUpdate(BaseModel):
    day: Optional[Weekday] = None
    start_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    room: Optional[str] = None


# ---- Support ticket ----
TicketStatus = Literal["pending", "in_progress", "resolved"]


class TicketStatusUpdate(BaseModel):
    status: TicketStatus


# ---- Contact message ----
MessageStatus = Literal["unread", "read", "replied"]


class ContactMessageCreate(BaseModel):
    center_code: str
    name: str = Field(min_length=1)
    email: str
    message: str = Field(min_length=1)


class StaffMessageCreate(BaseModel):
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1)
    priority: Literal["low", "medium", "high"] = "medium"


class MessageStatusUpdate(BaseModel):
    status: MessageStatus
    admin_reply: Optional[str] = None
