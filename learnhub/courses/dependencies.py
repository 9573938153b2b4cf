from typing import Optional

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.auth.permissions import UserContext, get_current_user, is_enrolled_or_free, is_owner_or_admin
from learnhub.core.database import get_db
from learnhub.core.exceptions import PermissionDeniedException
from learnhub.courses import course_service
from learnhub.enrollments import enrollment_service
from learnhub.enrollments.enrollment_models import ACCESS_STATUSES, TargetKind


class CourseAccess:
    """Course, caller and the caller's enrollment (None when not enrolled)"""

    def __init__(self, user: UserContext, course: dict, enrollment: Optional[dict]):
        self.user = user
        self.course = course
        self.enrollment = enrollment
        # owners and admins see everything without the unlock policy
        self.is_manager = is_owner_or_admin(user, course.get("owner_id"))

    @property
    def lessons(self):
        return self.course.get("lessons", [])


async def verify_course_access(
    course_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> CourseAccess:
    """Gated content: free course, enrolled learner, or course owner/admin"""
    course = await course_service.get_course(db, course_id)
    enrollment = await enrollment_service.get_enrollment(db, user.user_id, TargetKind.COURSE, course_id)

    access = CourseAccess(user, course, enrollment)
    if not access.is_manager and not is_enrolled_or_free(enrollment, course):
        raise PermissionDeniedException("User is not enrolled in this course")
    return access


async def verify_enrollment(access: CourseAccess = Depends(verify_course_access)) -> CourseAccess:
    """Progress writes need an enrollment row even on free courses"""
    if access.enrollment is None or access.enrollment.get("status") not in ACCESS_STATUSES:
        raise PermissionDeniedException("Enroll in this course to track progress")
    return access
