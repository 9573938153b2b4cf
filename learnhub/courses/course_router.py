from typing import Optional

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.auth.permissions import UserContext, get_current_user, require_publisher
from learnhub.core.database import Pagination, get_db, paginated_response, pagination_params
from learnhub.courses import course_service as service
from learnhub.courses.course_models import CourseCreate, CourseUpdate, MinimumSkill

router = APIRouter(tags=["Courses"])

# ==================== PUBLIC ====================

@router.get("/courses")
async def get_courses(
    community_id: Optional[str] = None,
    minimum_skill: Optional[MinimumSkill] = None,
    max_membership: Optional[float] = Query(None, ge=0),
    pagination: Pagination = Depends(pagination_params()),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Browse courses

    Filters: community_id, minimum_skill, max_membership (0 = free only)
    """
    courses, total = await service.list_courses(
        db,
        pagination.skip,
        pagination.limit,
        community_id=community_id,
        minimum_skill=minimum_skill.value if minimum_skill else None,
        max_membership=max_membership,
    )
    return paginated_response(courses, pagination, total)


@router.get("/courses/{course_id}")
async def get_course(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    course = await service.get_course(db, course_id)
    community = await db.communities.find_one(
        {"community_id": course["community_id"]},
        {"_id": 0, "community_id": 1, "name": 1, "description": 1},
    )
    return {"success": True, "data": {**service.summarize(course), "community": community}}


@router.get("/communities/{community_id}/courses")
async def get_community_courses(community_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    courses = await service.list_community_courses(db, community_id)
    return {"success": True, "count": len(courses), "data": courses}

# ==================== PUBLISHER ====================

@router.post("/communities/{community_id}/courses", status_code=201)
async def add_course(
    community_id: str,
    data: CourseCreate,
    user: UserContext = Depends(require_publisher),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Add a course to a community (community owner or admin)
    """
    course = await service.create_course(db, user, community_id, data)
    return {"success": True, "data": course}


@router.put("/courses/{course_id}")
async def update_course(
    course_id: str,
    data: CourseUpdate,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Update a course (owner or admin)

    Lessons sent without a lesson_id keep the id of an existing lesson with the
    same title, url and type, so learners' progress survives edits.
    """
    course = await service.update_course(db, user, course_id, data)
    return {"success": True, "data": course}


@router.delete("/courses/{course_id}")
async def delete_course(
    course_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await service.delete_course(db, user, course_id)
    return {"success": True, "data": {}}
