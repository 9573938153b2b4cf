from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.auth.permissions import UserContext, require_admin
from learnhub.core.database import get_db
from learnhub.topics import topic_service as service
from learnhub.topics.topic_models import TopicCreate, TopicReplace, TopicUpdate

router = APIRouter(prefix="/topics", tags=["Topics"])


@router.get("")
async def get_topics(db: AsyncIOMotorDatabase = Depends(get_db)):
    topics = await service.list_topics(db)
    return {"success": True, "count": len(topics), "data": topics}


@router.get("/{topic_id}")
async def get_topic(topic_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return {"success": True, "data": await service.get_topic(db, topic_id)}


@router.post("", status_code=201)
async def create_topic(
    data: TopicCreate,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return {"success": True, "data": await service.create_topic(db, admin, data)}


@router.put("/{topic_id}")
async def update_topic(
    topic_id: str,
    data: TopicUpdate,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return {"success": True, "data": await service.update_topic(db, admin, topic_id, data)}


@router.delete("/{topic_id}")
async def delete_topic(
    topic_id: str,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Delete a topic; communities tagged with it lose the tag
    """
    await service.delete_topic(db, admin, topic_id)
    return {"success": True, "data": {}}


@router.post("/{topic_id}/replace")
async def replace_topic_references(
    topic_id: str,
    data: TopicReplace,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Replace a topic across communities with another one, or remove it

    Body: {"replace_with_id": "TOP_..."} or {"replace_with_id": null}
    """
    outcome = await service.replace_topic(db, admin, topic_id, data.replace_with_id)
    return {"success": True, **outcome}
