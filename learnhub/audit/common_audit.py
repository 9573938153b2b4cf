import logging
from typing import Any, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from learnhub.audit.audit_models import AuditLog
from learnhub.core.database import generate_id, utcnow
from learnhub.users.user_models import PUBLIC_USER_FIELDS

logger = logging.getLogger(__name__)


async def log_audit(
    db: AsyncIOMotorDatabase,
    performed_by: str,
    action: str,
    resource_type: str,
    resource_id: str,
    previous_value: Any = None,
    new_value: Any = None,
    metadata: dict = None,
) -> Optional[str]:
    """
    Append a sensitive action to the audit trail

    Best effort: a failed write is logged and swallowed so the mutation being
    recorded still goes through. Returns the audit_id, or None when the write failed.
    """
    entry = AuditLog(
        audit_id=generate_id("AUD"),
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        performed_by=performed_by,
        previous_value=previous_value,
        new_value=new_value,
        metadata=metadata or {},
        created_at=utcnow(),
    )
    try:
        await db.audit_logs.insert_one(entry.model_dump())
    except PyMongoError:
        logger.exception(
            "Audit write failed: %s on %s %s by %s",
            action,
            resource_type,
            resource_id,
            performed_by,
        )
        return None

    logger.info("Audit: %s on %s %s by %s", action, resource_type, resource_id, performed_by)
    return entry.audit_id


async def get_audit_trail(
    db: AsyncIOMotorDatabase,
    action: str = None,
    resource_type: str = None,
    performed_by: str = None,
    skip: int = 0,
    limit: int = 25,
) -> Tuple[List[dict], int]:
    """
    Retrieve audit logs, newest first, with the performer's display fields

    Returns:
        (page of entries, total matching entries)
    """
    query = {}
    if action:
        query["action"] = action
    if resource_type:
        query["resource_type"] = resource_type
    if performed_by:
        query["performed_by"] = performed_by

    total = await db.audit_logs.count_documents(query)
    cursor = db.audit_logs.find(query, {"_id": 0}).sort("created_at", -1).skip(skip).limit(limit)
    logs = await cursor.to_list(length=limit)

    actor_ids = list({log["performed_by"] for log in logs})
    actors = {}
    if actor_ids:
        async for profile in db.users_profile.find({"user_id": {"$in": actor_ids}}, PUBLIC_USER_FIELDS):
            actors[profile["user_id"]] = profile

    for log in logs:
        log["performer"] = actors.get(log["performed_by"])

    return logs, total
