from typing import Optional

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.auth.auth_utils import verify_token, verify_token_optional
from learnhub.core.database import get_db
from learnhub.core.exceptions import AuthenticationException, PermissionDeniedException
from learnhub.core.logging_config import user_id_ctx
from learnhub.enrollments.enrollment_models import ACCESS_STATUSES
from learnhub.users.user_models import UserRole


class UserContext:
    """
    Validated caller profile
    """
    def __init__(self, user_id: str, profile: dict):
        self.user_id = user_id
        self.name = profile.get("name")
        self.email = profile.get("email")
        self.role = profile.get("role", UserRole.LEARNER.value)
        self.profile = profile

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self):
        return f"UserContext({self.user_id!r}, role={self.role!r})"


# ==================== PREDICATES ====================

def is_admin(user: Optional[UserContext]) -> bool:
    return user is not None and user.is_admin


def is_owner_or_admin(user: Optional[UserContext], owner_id: Optional[str]) -> bool:
    if user is None:
        return False
    return user.is_admin or (owner_id is not None and owner_id == user.user_id)


def is_enrolled_or_free(enrollment: Optional[dict], course: dict) -> bool:
    """Gated course content: free course, or an enrollment that still grants access"""
    if (course.get("membership") or 0) <= 0:
        return True
    return enrollment is not None and enrollment.get("status") in ACCESS_STATUSES


# ==================== DEPENDENCIES ====================

async def _load_user(db: AsyncIOMotorDatabase, user_id: str) -> UserContext:
    profile = await db.users_profile.find_one({"user_id": user_id}, {"_id": 0})
    if not profile:
        raise AuthenticationException("No user profile found for this token")
    user_id_ctx.set(user_id)
    return UserContext(user_id, profile)


async def get_current_user(
    token_payload: dict = Depends(verify_token),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> UserContext:
    """
    Dependency: authenticated caller

    Raises:
        401: missing/invalid token, or no profile for the token subject
    """
    return await _load_user(db, token_payload["sub"])


async def get_optional_user(
    token_payload: Optional[dict] = Depends(verify_token_optional),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> Optional[UserContext]:
    if token_payload is None:
        return None
    return await _load_user(db, token_payload["sub"])


def require_roles(*roles: UserRole):
    """Dependency factory: caller must hold one of the given roles"""
    allowed = {role.value for role in roles}

    async def dependency(user: UserContext = Depends(get_current_user)) -> UserContext:
        if user.role not in allowed:
            raise PermissionDeniedException(
                f"User role {user.role} is not authorized to access this route"
            )
        return user

    return dependency


require_admin = require_roles(UserRole.ADMIN)
require_publisher = require_roles(UserRole.PUBLISHER, UserRole.ADMIN)
