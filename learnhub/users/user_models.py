from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

# ==================== ENUMS ====================

class UserRole(str, Enum):
    LEARNER = "learner"
    PUBLISHER = "publisher"
    ADMIN = "admin"

# ==================== DATABASE MODELS ====================

class UserProfile(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    user_id: str  # USR_XXXXXX, also the JWT "sub"
    name: str
    email: EmailStr
    role: UserRole = UserRole.LEARNER
    photo: Optional[str] = None
    created_at: datetime
    updated_at: datetime

# ==================== REQUEST MODELS ====================

class UserCreate(BaseModel):
    user_id: Optional[str] = None  # identity-provider id when the account already exists there
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    role: UserRole = UserRole.LEARNER


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    photo: Optional[str] = None

# Fields other users get to see (member lists, post authors, audit performers)
PUBLIC_USER_FIELDS = {"_id": 0, "user_id": 1, "name": 1, "email": 1, "role": 1, "photo": 1, "created_at": 1}
