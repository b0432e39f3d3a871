"""
Comment moderation:
  DELETE /comments/{id} — remove a comment (its author or the post's author)
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from inkwell.dependencies import get_storage, require_auth
from inkwell.storage import Storage

logger = logging.getLogger(__name__)
router = APIRouter()


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: int,
    user_id: int = Depends(require_auth),
    storage: Storage = Depends(get_storage),
):
    comment = await storage.get_comment(comment_id)
    if comment is None:
        raise HTTPException(status_code=404, detail="Comment not found")

    if comment.author_id != user_id:
        post = await storage.get_post(comment.post_id)
        if post is None or post.author_id != user_id:
            raise HTTPException(status_code=403, detail="Not allowed to delete this comment")

    if not await storage.delete_comment(comment_id):
        raise HTTPException(status_code=404, detail="Comment not found")
    logger.info("Comment %s deleted by user %s", comment_id, user_id)
