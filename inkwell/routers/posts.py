"""
Post endpoints:
  GET    /posts               — published posts, newest first
  GET    /posts/search?q=     — case-insensitive title/content search
  GET    /posts/featured      — curated list
  GET    /posts/{id}          — post + tags + clap total
  POST   /posts               — create (signed in)
  PUT    /posts/{id}          — full replace (author only)
  DELETE /posts/{id}          — delete (author only)
  GET    /posts/{id}/comments — comments, oldest first
  POST   /posts/{id}/comments — add a comment (signed in)
  POST   /posts/{id}/clap     — clap (signed in)

Drafts (published = false) are visible only to their author; everyone else
gets 404, including on the comment and clap routes.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool
from opentelemetry import trace

from inkwell.dependencies import (
    get_current_user_id,
    get_file_storage,
    get_storage,
    require_auth,
)
from inkwell.models import Post, utcnow
from inkwell.schemas import (
    ClapRequest,
    ClapResponse,
    CommentCreate,
    CommentResponse,
    PostCreate,
    PostDetail,
    PostResponse,
    PostUpdate,
    TagResponse,
)
from inkwell.storage import Storage
from inkwell.telemetry import CLAPS_TOTAL, POSTS_CREATED_TOTAL
from inkwell.uploads import FileStorage

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def is_visible(post: Post, viewer_id: Optional[int]) -> bool:
    return post.published or post.author_id == viewer_id


async def _visible_post(storage: Storage, post_id: int, viewer_id: Optional[int]) -> Post:
    post = await storage.get_post(post_id)
    if post is None or not is_visible(post, viewer_id):
        raise HTTPException(status_code=404, detail="Post not found")
    return post


async def _owned_post(storage: Storage, post_id: int, user_id: int) -> Post:
    post = await storage.get_post(post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    if post.author_id != user_id:
        raise HTTPException(status_code=403, detail="Only the author can modify this post")
    return post


def _post_data(body: PostCreate, current: Optional[Post] = None) -> dict:
    data = body.model_dump(exclude={"featured"})
    if body.featured is True:
        data["featured_at"] = current.featured_at if current and current.featured_at else utcnow()
    elif body.featured is False:
        data["featured_at"] = None
    return data


async def _build_post_detail(storage: Storage, post: Post) -> PostDetail:
    tags = await storage.get_post_tags(post.id)
    clap_count = await storage.get_clap_total(post.id)
    return PostDetail(
        **PostResponse.model_validate(post).model_dump(),
        tags=[TagResponse.model_validate(t) for t in tags],
        clap_count=clap_count,
    )


async def _discard_cover(storage: Storage, files: FileStorage, reference: Optional[str]) -> None:
    """Best-effort removal of a cover image we stored, once no post uses it."""
    if files.name_from_reference(reference) is None:
        return
    users = await storage.count_posts_with_cover(reference)
    if users:
        logger.info("Keeping cover %s, still used by %d post(s)", reference, users)
        return
    await run_in_threadpool(files.delete, reference)


@router.get("", response_model=list[PostResponse])
async def list_posts(storage: Storage = Depends(get_storage)):
    return await storage.list_posts(published_only=True)


@router.get("/search", response_model=list[PostResponse])
async def search_posts(
    q: str = Query("", max_length=200, description="Text to look for in titles and content"),
    storage: Storage = Depends(get_storage),
):
    with tracer.start_as_current_span("search_posts") as span:
        results = await storage.search_posts(q, published_only=True)
        span.set_attribute("search.results", len(results))
        return results


@router.get("/featured", response_model=list[PostResponse])
async def featured_posts(storage: Storage = Depends(get_storage)):
    return await storage.get_featured_posts()


@router.get("/{post_id}", response_model=PostDetail)
async def get_post(
    post_id: int,
    viewer_id: Optional[int] = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    post = await _visible_post(storage, post_id, viewer_id)
    return await _build_post_detail(storage, post)


@router.post("", response_model=PostDetail, status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostCreate,
    user_id: int = Depends(require_auth),
    storage: Storage = Depends(get_storage),
):
    with tracer.start_as_current_span("create_post") as span:
        post = await storage.create_post(_post_data(body), author_id=user_id)
        span.set_attribute("post.id", post.id)
        span.set_attribute("post.author_id", user_id)

        POSTS_CREATED_TOTAL.inc()
        logger.info("Post created: %s by user %s", post.id, user_id)
        return await _build_post_detail(storage, post)


@router.put("/{post_id}", response_model=PostDetail)
async def update_post(
    post_id: int,
    body: PostUpdate,
    user_id: int = Depends(require_auth),
    storage: Storage = Depends(get_storage),
    files: FileStorage = Depends(get_file_storage),
):
    with tracer.start_as_current_span("update_post"):
        current = await _owned_post(storage, post_id, user_id)
        old_cover = current.cover_image_url

        post = await storage.update_post(post_id, _post_data(body, current))
        if post is None:
            raise HTTPException(status_code=404, detail="Post not found")
        if old_cover and old_cover != post.cover_image_url:
            await _discard_cover(storage, files, old_cover)

        logger.info("Post updated: %s by user %s", post_id, user_id)
        return await _build_post_detail(storage, post)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: int,
    user_id: int = Depends(require_auth),
    storage: Storage = Depends(get_storage),
    files: FileStorage = Depends(get_file_storage),
):
    with tracer.start_as_current_span("delete_post"):
        post = await _owned_post(storage, post_id, user_id)
        if not await storage.delete_post(post_id):
            raise HTTPException(status_code=404, detail="Post not found")
        await _discard_cover(storage, files, post.cover_image_url)
        logger.info("Post deleted: %s by user %s", post_id, user_id)


@router.get("/{post_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    post_id: int,
    viewer_id: Optional[int] = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    await _visible_post(storage, post_id, viewer_id)
    return await storage.get_post_comments(post_id)


@router.post("/{post_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: int,
    body: CommentCreate,
    user_id: int = Depends(require_auth),
    storage: Storage = Depends(get_storage),
):
    await _visible_post(storage, post_id, user_id)
    comment = await storage.create_comment(post_id, user_id, body.content.strip())
    logger.info("Comment %s added to post %s by user %s", comment.id, post_id, user_id)
    return comment


@router.post("/{post_id}/clap", response_model=ClapResponse)
async def clap(
    post_id: int,
    body: Optional[ClapRequest] = None,
    user_id: int = Depends(require_auth),
    storage: Storage = Depends(get_storage),
):
    """Add claps from the signed-in user; repeated claps accumulate."""
    count = body.count if body else 1
    with tracer.start_as_current_span("clap") as span:
        await _visible_post(storage, post_id, user_id)
        row = await storage.create_or_update_clap(user_id, post_id, count)
        total = await storage.get_clap_total(post_id)
        span.set_attribute("clap.count", row.count)

        CLAPS_TOTAL.inc(count)
        return ClapResponse(
            post_id=post_id,
            user_id=user_id,
            count=row.count,
            total=total,
            updated_at=row.updated_at,
        )
