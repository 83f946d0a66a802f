"""
Pydantic schemas for fee records and payments.
"""

from pydantic import BaseModel, Field
from typing import Literal, Optional
from datetime import date as Date


class FeeCreate(BaseModel):
    student_id: str
    amount: float = Field(gt=0, allow_inf_nan=False)
    due_date: Date
    batch_id: Optional[str] = None
    course_id: Optional[str] = None
    description: Optional[str] = None


class BulkFeeCreate(BaseModel):
    batch_id: str
    amount: float = Field(gt=0, allow_inf_nan=False)
    due_date: Date
    description: Optional[str] = None


class FeeUpdate(BaseModel):
    amount: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    due_date: Optional[Date] = None
    description: Optional[str] = None


class PaymentCreate(BaseModel):
    amount: float = Field(gt=0, allow_inf_nan=False)
    method: Literal["cash", "card", "upi", "bank_transfer"] = "cash"
    date: Optional[Date] = None
    note: Optional[str] = None


class DiscountApply(BaseModel):
    discount: float = Field(ge=0, allow_inf_nan=False)
    reason: Optional[str] = None
