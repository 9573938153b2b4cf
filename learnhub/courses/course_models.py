from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

# ==================== ENUMS ====================

class LessonType(str, Enum):
    VIDEO = "video"
    PDF = "pdf"
    ARTICLE = "article"

class MinimumSkill(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

class LessonState(str, Enum):
    """Derived on every read, never stored"""
    BLOCKED = "blocked"
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

# ==================== DATABASE MODELS ====================

class Lesson(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    lesson_id: str  # LES_XXXXXX, stable across course edits
    title: str
    type: LessonType
    url: Optional[str] = None
    content: Optional[str] = None  # article body
    duration: float = 0  # seconds
    order: int = 0

class Course(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    course_id: str  # CRS_XXXXXX
    community_id: str
    owner_id: str
    title: str
    description: str
    weeks: int
    membership: float = 0  # 0 = free
    minimum_skill: MinimumSkill
    scholarship_available: bool = False
    lessons: List[Lesson] = []
    created_at: datetime
    updated_at: datetime

# ==================== REQUEST MODELS ====================

class LessonInput(BaseModel):
    lesson_id: Optional[str] = None  # keep an existing lesson's identity
    title: str = Field(..., min_length=1, max_length=200)
    type: LessonType
    url: Optional[str] = None
    content: Optional[str] = None
    duration: float = Field(0, ge=0)
    order: Optional[int] = None  # defaults to position in the list


class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    weeks: int = Field(..., ge=1)
    membership: float = Field(0, ge=0)
    minimum_skill: MinimumSkill
    scholarship_available: bool = False
    lessons: List[LessonInput] = []


class CourseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1)
    weeks: Optional[int] = Field(None, ge=1)
    membership: Optional[float] = Field(None, ge=0)
    minimum_skill: Optional[MinimumSkill] = None
    scholarship_available: Optional[bool] = None
    lessons: Optional[List[LessonInput]] = None

# lesson fields shown on public course reads
LESSON_SUMMARY_FIELDS = ("lesson_id", "title", "type", "duration", "order")
