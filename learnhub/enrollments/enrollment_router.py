from typing import Optional

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.auth.permissions import UserContext, get_current_user
from learnhub.core.database import Pagination, get_db, paginated_response, pagination_params
from learnhub.enrollments import enrollment_service as service
from learnhub.enrollments.enrollment_models import EnrollmentStatus, TargetKind

router = APIRouter(tags=["Enrollments"])


def _joined(enrollment: dict, count: int) -> dict:
    return {"success": True, "data": enrollment, "enrollmentCount": count}


def _left(count: int) -> dict:
    return {"success": True, "data": {}, "enrollmentCount": count}

# ==================== COMMUNITY MEMBERSHIP ====================

@router.post("/communities/{community_id}/enroll", status_code=201)
async def join_community(
    community_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Join a community
    """
    enrollment, count = await service.join(db, user, TargetKind.COMMUNITY, community_id)
    return _joined(enrollment, count)


@router.delete("/communities/{community_id}/enroll")
async def leave_community(
    community_id: str,
    user_id: Optional[str] = Query(None, alias="userId"),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Leave a community, or remove a member (?userId=, owner/admin only)
    """
    count = await service.leave(db, user, TargetKind.COMMUNITY, community_id, user_id)
    return _left(count)


@router.get("/communities/{community_id}/enrolled")
async def get_community_members(
    community_id: str,
    pagination: Pagination = Depends(pagination_params()),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Active members of a community (owner/admin only)
    """
    members, total = await service.list_members(
        db, user, TargetKind.COMMUNITY, community_id, pagination.skip, pagination.limit
    )
    return paginated_response(members, pagination, total)


@router.get("/communities/{community_id}/enrollment-status")
async def get_community_enrollment_status(
    community_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    status = await service.get_status(db, user, TargetKind.COMMUNITY, community_id)
    return {"success": True, "data": status}

# ==================== COURSE ENROLLMENT ====================

@router.post("/courses/{course_id}/enroll", status_code=201)
async def join_course(
    course_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Enroll in a course

    Requires an active membership in the course's community
    (community owner and admins are exempt).
    """
    enrollment, count = await service.join(db, user, TargetKind.COURSE, course_id)
    return _joined(enrollment, count)


@router.delete("/courses/{course_id}/enroll")
async def leave_course(
    course_id: str,
    user_id: Optional[str] = Query(None, alias="userId"),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    count = await service.leave(db, user, TargetKind.COURSE, course_id, user_id)
    return _left(count)


@router.get("/courses/{course_id}/enrolled")
async def get_course_members(
    course_id: str,
    pagination: Pagination = Depends(pagination_params()),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    members, total = await service.list_members(
        db, user, TargetKind.COURSE, course_id, pagination.skip, pagination.limit
    )
    return paginated_response(members, pagination, total)


@router.get("/courses/{course_id}/enrollment-status")
async def get_course_enrollment_status(
    course_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    status = await service.get_status(db, user, TargetKind.COURSE, course_id)
    return {"success": True, "data": status}

# ==================== MY ENROLLMENTS ====================

@router.get("/enrollments/my-enrollments")
async def get_my_enrollments(
    status: Optional[EnrollmentStatus] = None,
    pagination: Pagination = Depends(pagination_params()),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Communities and courses the caller is enrolled in, newest first
    """
    rows, total = await service.list_user_enrollments(
        db, user, pagination.skip, pagination.limit, status.value if status else None
    )
    return paginated_response(rows, pagination, total)
