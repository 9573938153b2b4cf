import logging

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from learnhub.core.database import get_db, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["System"])


@router.get("/health")
async def health(db: AsyncIOMotorDatabase = Depends(get_db)):
    """
    Liveness plus a MongoDB ping
    """
    try:
        await db.command("ping")
        database = "UP"
    except PyMongoError as e:
        logger.warning("Health check: MongoDB ping failed: %s", e)
        database = "DOWN"

    return {
        "status": "ok" if database == "UP" else "degraded",
        "database": database,
        "timestamp": utcnow().isoformat(),
    }
