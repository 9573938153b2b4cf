from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class AuditLog(BaseModel):
    audit_id: str  # AUD_XXXXXX
    action: str  # community.transfer_ownership, enrollment.remove, topic.replace, ...
    resource_type: str  # community, course, enrollment, topic, user
    resource_id: str
    performed_by: str  # user_id of the actor
    previous_value: Optional[Any] = None
    new_value: Optional[Any] = None
    metadata: dict = Field(default_factory=dict)
    created_at: datetime
