from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

from ..enums import UserRole


class BaseUser(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=30)
    department: Optional[str] = Field(default=None, max_length=100)
    address: Optional[str] = Field(default=None, max_length=255)


class CreateUser(BaseUser):
    """ This is a schema to create a user account. """
    password: str = Field(min_length=8, max_length=72)


class UserResponse(BaseModel):
    id: int
    name: str
    email: EmailStr
    role: UserRole
    is_active: bool

    class Config:
        from_attributes = True


class UserProfileResponse(UserResponse):
    phone: Optional[str] = None
    department: Optional[str] = None
    address: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
