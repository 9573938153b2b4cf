from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class Post(BaseModel):
    post_id: str  # PST_XXXXXX
    community_id: str
    user_id: str
    content: str
    attachments: List[str] = []  # urls from the upload service
    created_at: datetime
    updated_at: datetime


class PostCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    attachments: List[str] = []


class PostUpdate(BaseModel):
    content: Optional[str] = Field(None, min_length=1, max_length=5000)
    attachments: Optional[List[str]] = None

# author fields embedded in timeline entries
AUTHOR_FIELDS = {"_id": 0, "user_id": 1, "name": 1, "photo": 1}
