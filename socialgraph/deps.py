"""
FastAPI dependencies.

The auth collaborator in front of this service resolves credentials and
forwards the caller's account id in ``X-Account-Id``; it is trusted as an
opaque string.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, Query, Request, status

from socialgraph.core import SocialGraph


def get_core(request: Request) -> SocialGraph:
    return request.app.state.core


@dataclass
class PageParams:
    page: int
    page_size: int


def page_params(
    request: Request,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
) -> PageParams:
    """``page_size`` falls back to the configured default; the core enforces the max."""
    if page_size is None:
        page_size = request.app.state.settings.default_page_size
    return PageParams(page=page, page_size=page_size)


async def current_account_id(x_account_id: Optional[str] = Header(None)) -> str:
    if not x_account_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity",
        )
    return x_account_id


async def optional_account_id(x_account_id: Optional[str] = Header(None)) -> Optional[str]:
    return x_account_id or None
