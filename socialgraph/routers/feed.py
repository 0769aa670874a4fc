"""
Feed retrieval endpoint - GET /feed?page=<n>&page_size=<m>

The caller's own posts plus everything from accounts they follow, newest
first. See socialgraph.feed for the fan-out-on-read pipeline.
"""
from fastapi import APIRouter, Depends

from socialgraph.core import SocialGraph
from socialgraph.deps import PageParams, current_account_id, get_core, page_params
from socialgraph.schemas import FeedResponse

router = APIRouter()


@router.get("/", response_model=FeedResponse)
async def get_feed(
    paging: PageParams = Depends(page_params),
    viewer: str = Depends(current_account_id),
    core: SocialGraph = Depends(get_core),
):
    return await core.feed.get_feed(viewer, paging.page, paging.page_size)
