from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Topic(BaseModel):
    topic_id: str  # TOP_XXXXXX
    name: str
    slug: str
    created_at: datetime


class TopicCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("A topic must have a name")
        return v


class TopicUpdate(TopicCreate):
    pass


class TopicReplace(BaseModel):
    replace_with_id: Optional[str] = None  # None removes the references
