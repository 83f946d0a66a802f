"""
Pydantic schemas for authentication and user management.
"""

from pydantic import BaseModel
from typing import Optional


class UserLogin(BaseModel):
    email: str
    password: str


class CenterRegister(BaseModel):
    center_name: str
    center_code: str
    admin_name: str
    admin_email: str
    admin_password: str
    phone: Optional[str] = None


class ChangePassword(BaseModel):
    old_password: str
    new_password: str


class ResetPassword(BaseModel):
    email: str
    old_password: str
    new_password: str


class UserCreate(BaseModel):
    email: str
    name: str
    role: str
    password: Optional[str] = None
    phone: Optional[str] = None
    batch_id: Optional[str] = None
    # student fields
    roll_number: Optional[str] = None
    parent_name: Optional[str] = None
    parent_phone: Optional[str] = None
    address: Optional[str] = None
    # teacher fields
    subject: Optional[str] = None
    qualification: Optional[str] = None


class UserUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    roll_number: Optional[str] = None
    parent_name: Optional[str] = None
    parent_phone: Optional[str] = None
    address: Optional[str] = None
    subject: Optional[str] = None
    qualification: Optional[str] = None


class UserStatusUpdate(BaseModel):
    is_active: bool


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    parent_name: Optional[str] = None
    parent_phone: Optional[str] = None
    subject: Optional[str] = None
    qualification: Optional[str] = None
