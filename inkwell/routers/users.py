"""
User profile and social graph endpoints:
  GET    /users/{id}           — public profile
  GET    /users/{id}/posts     — the user's posts (drafts only for themselves)
  GET    /users/{id}/followers — who follows the user
  GET    /users/{id}/following — who the user follows
  POST   /users/{id}/follow    — follow (signed in)
  DELETE /users/{id}/follow    — unfollow (signed in)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from opentelemetry import trace

from inkwell.dependencies import get_current_user_id, get_storage, require_auth
from inkwell.models import User
from inkwell.schemas import FollowStatus, PostResponse, PublicUserResponse
from inkwell.storage import Storage

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


async def _user_or_404(storage: Storage, user_id: int) -> User:
    user = await storage.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/{user_id}", response_model=PublicUserResponse)
async def get_user(user_id: int, storage: Storage = Depends(get_storage)):
    return await _user_or_404(storage, user_id)


@router.get("/{user_id}/posts", response_model=list[PostResponse])
async def list_user_posts(
    user_id: int,
    viewer_id: Optional[int] = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    await _user_or_404(storage, user_id)
    return await storage.list_user_posts(user_id, published_only=viewer_id != user_id)


@router.get("/{user_id}/followers", response_model=list[PublicUserResponse])
async def list_followers(user_id: int, storage: Storage = Depends(get_storage)):
    await _user_or_404(storage, user_id)
    return await storage.list_followers(user_id)


@router.get("/{user_id}/following", response_model=list[PublicUserResponse])
async def list_following(user_id: int, storage: Storage = Depends(get_storage)):
    await _user_or_404(storage, user_id)
    return await storage.list_following(user_id)


@router.post("/{user_id}/follow", response_model=FollowStatus)
async def follow_user(
    user_id: int,
    follower_id: int = Depends(require_auth),
    storage: Storage = Depends(get_storage),
):
    """Create a follower → followee edge; following twice is a no-op."""
    with tracer.start_as_current_span("follow_user"):
        if follower_id == user_id:
            raise HTTPException(status_code=400, detail="Cannot follow yourself")
        await _user_or_404(storage, user_id)

        if await storage.create_follow(follower_id, user_id):
            logger.info("%s followed %s", follower_id, user_id)
        return FollowStatus(user_id=user_id, following=True)


@router.delete("/{user_id}/follow", response_model=FollowStatus)
async def unfollow_user(
    user_id: int,
    follower_id: int = Depends(require_auth),
    storage: Storage = Depends(get_storage),
):
    with tracer.start_as_current_span("unfollow_user"):
        if await storage.delete_follow(follower_id, user_id):
            logger.info("%s unfollowed %s", follower_id, user_id)
        return FollowStatus(user_id=user_id, following=False)
