from pydantic import BaseModel
from typing import Literal, Optional, List

Audience = Literal["all", "students", "teachers", "batch"]


class NoticeCreate(BaseModel):
    title: str
    description: str
    target_audience: Audience = "all"
    target_batch_ids: List[str] = []
    is_active: bool = True
    is_scheduled: bool = False
    scheduled_at: Optional[str] = None
    is_important: bool = False


class NoticeUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    target_audience: Optional[Audience] = None
    target_batch_ids: Optional[List[str]] = None
    is_active: Optional[bool] = None
    is_scheduled: Optional[bool] = None
    scheduled_at: Optional[str] = None
    is_important: Optional[bool] = None
