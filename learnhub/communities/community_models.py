from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

# ==================== DATABASE MODELS ====================

class Community(BaseModel):
    community_id: str  # COM_XXXXXX
    name: str
    slug: str
    description: str
    website: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    topics: List[str] = []  # topic ids
    has_mentorship: bool = False
    has_live_events: bool = False
    is_paid: bool = False
    photo: Optional[str] = None
    owner_id: str

    # Derived, recomputed on review / course writes
    average_rating: Optional[float] = None
    average_cost: Optional[int] = None

    created_at: datetime
    updated_at: datetime

# ==================== REQUEST MODELS ====================

class CommunityCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: str = Field(..., min_length=1, max_length=500)
    website: Optional[str] = Field(None, pattern=r"^https?://")
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    topics: List[str] = []  # topic ids or names
    has_mentorship: bool = False
    has_live_events: bool = False
    is_paid: bool = False
    photo: Optional[str] = None


class CommunityUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    website: Optional[str] = Field(None, pattern=r"^https?://")
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    topics: Optional[List[str]] = None
    has_mentorship: Optional[bool] = None
    has_live_events: Optional[bool] = None
    is_paid: Optional[bool] = None
    photo: Optional[str] = None


class OwnershipTransfer(BaseModel):
    new_owner_id: str

# fields a client may sort the community list by
SORTABLE_FIELDS = {"name", "created_at", "updated_at", "average_rating", "average_cost"}
