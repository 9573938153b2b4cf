from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

# ==================== ENUMS ====================

class TargetKind(str, Enum):
    COMMUNITY = "community"
    COURSE = "course"

class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"  # course only, set by the learner

# statuses that keep access to a course's gated content
ACCESS_STATUSES = (EnrollmentStatus.ACTIVE.value, EnrollmentStatus.COMPLETED.value)

# ==================== DATABASE MODELS ====================

class LessonProgress(BaseModel):
    lesson_id: str
    last_position_seconds: float = 0
    completed: bool = False
    updated_at: datetime

class Enrollment(BaseModel):
    """
    A user's membership in a community or a course.
    Unique on (user_id, target_kind, target_id); leaving flips status, rejoining flips it back.
    """
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    enrollment_id: str  # ENR_XXXXXX
    user_id: str
    target_kind: TargetKind
    target_id: str
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    enrolled_at: datetime
    updated_at: datetime
    rejoined_at: Optional[datetime] = None  # latest re-activation, enrolled_at keeps the first join
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    progress: List[LessonProgress] = []

# ==================== REQUEST MODELS ====================

class ProgressUpdate(BaseModel):
    last_position_seconds: Optional[float] = Field(None, ge=0, alias="lastPositionSeconds")
    completed: Optional[bool] = None

    model_config = ConfigDict(populate_by_name=True)
