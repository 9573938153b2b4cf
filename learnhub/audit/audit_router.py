from typing import Optional

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.audit.common_audit import get_audit_trail
from learnhub.auth.permissions import UserContext, require_admin
from learnhub.core.database import Pagination, get_db, paginated_response, pagination_params

router = APIRouter(prefix="/audit-logs", tags=["Audit"])


@router.get("")
async def get_audit_logs(
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
    performed_by: Optional[str] = None,
    pagination: Pagination = Depends(pagination_params()),
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Audit trail, newest first (admin only)
    """
    logs, total = await get_audit_trail(
        db,
        action=action,
        resource_type=resource_type,
        performed_by=performed_by,
        skip=pagination.skip,
        limit=pagination.limit,
    )
    return paginated_response(logs, pagination, total)
