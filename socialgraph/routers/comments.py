"""
Comment endpoints addressed by comment id:
  GET    /comments/{id} - fetch a single comment
  PATCH  /comments/{id} - edit own comment
  DELETE /comments/{id} - delete own comment
"""
from fastapi import APIRouter, Depends, status

from socialgraph.core import SocialGraph
from socialgraph.deps import current_account_id, get_core
from socialgraph.schemas import CommentResponse, CommentUpdate

router = APIRouter()


@router.get("/{comment_id}", response_model=CommentResponse)
async def get_comment(comment_id: str, core: SocialGraph = Depends(get_core)):
    return await core.engagement.get_comment(comment_id)


@router.patch("/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: str,
    body: CommentUpdate,
    viewer: str = Depends(current_account_id),
    core: SocialGraph = Depends(get_core),
):
    return await core.engagement.update_comment(viewer, comment_id, body.content)


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: str,
    viewer: str = Depends(current_account_id),
    core: SocialGraph = Depends(get_core),
):
    await core.engagement.delete_comment(viewer, comment_id)
