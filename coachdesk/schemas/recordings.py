from pydantic import BaseModel
from typing import Literal, Optional


class RecordingUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    batch_id: Optional[str] = None
    recording_date: Optional[str] = None
    duration: Optional[int] = None
    status: Optional[Literal["processing", "ready", "error"]] = None
