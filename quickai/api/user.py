"""User and community API: creation history, published feed, likes."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from quickai.core.auth import get_current_user_id
from quickai.features.creations import service as creations_service
from quickai.models.creation import Creation

router = APIRouter(prefix="/api/user", tags=["user"])


class ToggleLikeRequest(BaseModel):
    id: int = Field(gt=0)


def _serialize(creation: Creation) -> dict:
    payload = creation.model_dump(mode="json")
    payload["likes_count"] = creation.likes_count
    return payload


@router.get("/get-user-creations")
async def get_user_creations(user_id: str = Depends(get_current_user_id)):
    items = await run_in_threadpool(creations_service.list_user_creations, user_id)
    return {"success": True, "creations": [_serialize(c) for c in items]}


@router.get("/get-published-creations")
async def get_published_creations(user_id: str = Depends(get_current_user_id)):
    items = await run_in_threadpool(creations_service.list_published_creations)
    return {"success": True, "creations": [_serialize(c) for c in items]}


@router.post("/toggle-like-creation")
async def toggle_like_creation(body: ToggleLikeRequest, user_id: str = Depends(get_current_user_id)):
    result = await run_in_threadpool(creations_service.toggle_like, body.id, user_id)
    return {
        "success": True,
        "message": result.message,
        "liked": result.liked,
        "likes_count": len(result.likes),
    }
