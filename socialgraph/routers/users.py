"""
Account and follow-graph endpoints:
  POST   /users                       - register an account
  PATCH  /users/me                    - update the caller's profile
  GET    /users/{username}            - profile + counters (+ is_following)
  GET    /users/{username}/followers  - paginated followers
  GET    /users/{username}/following  - paginated followees
  GET    /users/{username}/posts      - the account's posts, newest first
  POST   /users/{account_id}/follow   - follow
  DELETE /users/{account_id}/follow   - unfollow
  GET    /users/{account_id}/follow   - is the caller following?
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
    AccountCreate,
    AccountPage,
    AccountResponse,
    FollowEdgeResponse,
    FollowStatus,
    PostPage,
    Profile,
    ProfileUpdate,
)

router = APIRouter()


@router.post("/", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def register(body: AccountCreate, core: SocialGraph = Depends(get_core)):
    return await core.accounts.register(
        username=body.username,
        email=body.email,
        display_name=body.display_name,
        bio=body.bio,
    )


@router.patch("/me", response_model=AccountResponse)
async def update_profile(
    body: ProfileUpdate,
    viewer: str = Depends(current_account_id),
    core: SocialGraph = Depends(get_core),
):
    return await core.accounts.update_profile(viewer, body.display_name, body.bio)


@router.get("/{username}", response_model=Profile)
async def get_profile(
    username: str,
    viewer: Optional[str] = Depends(optional_account_id),
    core: SocialGraph = Depends(get_core),
):
    return await core.accounts.profile(username, viewer)


@router.get("/{username}/followers", response_model=AccountPage)
async def list_followers(
    username: str,
    paging: PageParams = Depends(page_params),
    core: SocialGraph = Depends(get_core),
):
    return await core.graph.list_followers(username, paging.page, paging.page_size)


@router.get("/{username}/following", response_model=AccountPage)
async def list_following(
    username: str,
    paging: PageParams = Depends(page_params),
    core: SocialGraph = Depends(get_core),
):
    return await core.graph.list_following(username, paging.page, paging.page_size)


@router.get("/{username}/posts", response_model=PostPage)
async def get_user_posts(
    username: str,
    paging: PageParams = Depends(page_params),
    core: SocialGraph = Depends(get_core),
):
    return await core.feed.get_user_posts(username, paging.page, paging.page_size)


@router.post(
    "/{account_id}/follow",
    response_model=FollowEdgeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def follow(
    account_id: str,
    viewer: str = Depends(current_account_id),
    core: SocialGraph = Depends(get_core),
):
    return await core.graph.follow(viewer, account_id)


@router.delete("/{account_id}/follow", status_code=status.HTTP_204_NO_CONTENT)
async def unfollow(
    account_id: str,
    viewer: str = Depends(current_account_id),
    core: SocialGraph = Depends(get_core),
):
    await core.graph.unfollow(viewer, account_id)


@router.get("/{account_id}/follow", response_model=FollowStatus)
async def is_following(
    account_id: str,
    viewer: str = Depends(current_account_id),
    core: SocialGraph = Depends(get_core),
):
    following = await core.graph.is_following(viewer, account_id)
    return FollowStatus(follower_id=viewer, followee_id=account_id, following=following)
