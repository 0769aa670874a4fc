"""
Post and engagement endpoints:
  POST   /posts                  - create a post
  GET    /posts/{id}             - fetch a single post
  DELETE /posts/{id}             - delete own post
  POST   /posts/{id}/like        - like a post
  DELETE /posts/{id}/like        - unlike
  GET    /posts/{id}/likes       - like count + whether the caller liked it
  GET    /posts/{id}/likers      - paginated likers, most recent first
  POST   /posts/{id}/comments    - comment on a post
  GET    /posts/{id}/comments    - paginated comments, oldest first
"""
from typing import Optional

from fastapi import APIRouter, Depends, status

from socialgraph.core import SocialGraph
from socialgraph.deps import (
    PageParams,
    current_account_id,
    get_core,
    optional_account_id,
    page_params,
)
from socialgraph.schemas import (
    CommentCreate,
    CommentPage,
    CommentResponse,
    LikerPage,
    LikeResponse,
    LikeStats,
    PostCreate,
    PostResponse,
)

router = APIRouter()


@router.post("/", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostCreate,
    viewer: str = Depends(current_account_id),
    core: SocialGraph = Depends(get_core),
):
    return await core.posts.create_post(viewer, body.caption, body.media_url)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: str, core: SocialGraph = Depends(get_core)):
    return await core.posts.get_post(post_id)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: str,
    viewer: str = Depends(current_account_id),
    core: SocialGraph = Depends(get_core),
):
    await core.posts.delete_post(viewer, post_id)


@router.post("/{post_id}/like", response_model=LikeResponse, status_code=status.HTTP_201_CREATED)
async def like_post(
    post_id: str,
    viewer: str = Depends(current_account_id),
    core: SocialGraph = Depends(get_core),
):
    return await core.engagement.like(viewer, post_id)


@router.delete("/{post_id}/like", status_code=status.HTTP_204_NO_CONTENT)
async def unlike_post(
    post_id: str,
    viewer: str = Depends(current_account_id),
    core: SocialGraph = Depends(get_core),
):
    await core.engagement.unlike(viewer, post_id)


@router.get("/{post_id}/likes", response_model=LikeStats)
async def like_stats(
    post_id: str,
    viewer: Optional[str] = Depends(optional_account_id),
    core: SocialGraph = Depends(get_core),
):
    return await core.engagement.like_stats(post_id, viewer)


@router.get("/{post_id}/likers", response_model=LikerPage)
async def list_likers(
    post_id: str,
    paging: PageParams = Depends(page_params),
    core: SocialGraph = Depends(get_core),
):
    return await core.engagement.list_likers(post_id, paging.page, paging.page_size)


@router.post(
    "/{post_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    post_id: str,
    body: CommentCreate,
    viewer: str = Depends(current_account_id),
    core: SocialGraph = Depends(get_core),
):
    return await core.engagement.add_comment(viewer, post_id, body.content)


@router.get("/{post_id}/comments", response_model=CommentPage)
async def list_comments(
    post_id: str,
    paging: PageParams = Depends(page_params),
    core: SocialGraph = Depends(get_core),
):
    return await core.engagement.list_comments(post_id, paging.page, paging.page_size)
