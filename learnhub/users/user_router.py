from typing import Optional

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.auth.permissions import UserContext, get_current_user, require_admin
from learnhub.core.database import Pagination, get_db, paginated_response, pagination_params
from learnhub.users import user_service as service
from learnhub.users.user_models import UserCreate, UserRole, UserUpdate

router = APIRouter(tags=["Users"])

# ==================== CURRENT USER ====================

@router.get("/auth/me")
async def get_me(user: UserContext = Depends(get_current_user)):
    """
    Profile of the caller (resolved from the bearer token)
    """
    return {"success": True, "data": user.profile}

# ==================== ADMIN ====================

@router.get("/users")
async def get_users(
    role: Optional[UserRole] = None,
    pagination: Pagination = Depends(pagination_params()),
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    users, total = await service.list_users(db, pagination.skip, pagination.limit, role.value if role else None)
    return paginated_response(users, pagination, total)


@router.get("/users/{user_id}")
async def get_user(
    user_id: str,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return {"success": True, "data": await service.get_user(db, user_id)}


@router.post("/users", status_code=201)
async def create_user(
    data: UserCreate,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return {"success": True, "data": await service.create_user(db, admin, data)}


@router.put("/users/{user_id}")
async def update_user(
    user_id: str,
    data: UserUpdate,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return {"success": True, "data": await service.update_user(db, admin, user_id, data)}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Delete a user profile; their active enrollments are cancelled
    """
    await service.delete_user(db, admin, user_id)
    return {"success": True, "data": {}}
