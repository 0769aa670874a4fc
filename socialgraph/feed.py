"""
Feed fan-out engine - fan-out on READ.

  Stage 1 │ Candidate authors
  ────────┼──────────────────────────────────────────────────────────────
          │  {viewer} ∪ {followee : edge(viewer → followee)}, read from the
          │  follows table in the same transaction as the post query.
          │  The viewer is always a candidate, so with no followees the
          │  feed degenerates to the viewer's own posts.

  Stage 2 │ Post query
  ────────┼──────────────────────────────────────────────────────────────
          │  posts WHERE user_id IN candidates
          │  ORDER BY created_at DESC, post_id DESC   (stable on collisions)
          │  OFFSET (page-1)*page_size LIMIT page_size

Nothing is materialised per follower: following someone exposes their whole
history on the next read, and unfollowing hides it just as fast. Ordering is
strictly reverse-chronological; there is no ranking stage.
"""
import logging
import time

from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from socialgraph.database import Store
from socialgraph.errors import NotFound
from socialgraph.graph import GraphEdgeManager
from socialgraph.models import Account, Post
from socialgraph.pagination import page_window
from socialgraph.posts import build_post_response
from socialgraph.schemas import FeedResponse, PostPage, PostResponse
from socialgraph.telemetry import FEED_LATENCY

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class FeedEngine:
    def __init__(self, store: Store, graph: GraphEdgeManager, max_page_size: int = 100):
        self._store = store
        self._graph = graph
        self._max_page_size = max_page_size

    async def get_feed(self, viewer_id: str, page: int, page_size: int) -> FeedResponse:
        offset, limit = page_window(page, page_size, self._max_page_size)
        start_time = time.perf_counter()

        with tracer.start_as_current_span("feed.get_feed") as span:
            span.set_attribute("user.id", viewer_id)

            async with self._store.transaction() as session:
                authors = await self._graph.followee_ids(session, viewer_id)
                authors.add(viewer_id)
                span.set_attribute("feed.candidate_authors", len(authors))

                items = await self._page(session, Post.user_id.in_(sorted(authors)), offset, limit)

            latency = time.perf_counter() - start_time
            FEED_LATENCY.observe(latency)
            span.set_attribute("feed.posts_returned", len(items))
            logger.debug(
                "Feed for %s: %d authors, %d posts (%.1fms)",
                viewer_id, len(authors), len(items), latency * 1000,
            )

            return FeedResponse(
                viewer_id=viewer_id,
                candidate_authors=len(authors),
                items=items,
                page=page,
                page_size=page_size,
            )

    async def get_user_posts(self, username: str, page: int, page_size: int) -> PostPage:
        offset, limit = page_window(page, page_size, self._max_page_size)

        with tracer.start_as_current_span("feed.get_user_posts"):
            async with self._store.transaction() as session:
                account_id = await session.scalar(
                    select(Account.account_id).where(Account.username == username)
                )
                if account_id is None:
                    raise NotFound("Account not found")

                items = await self._page(session, Post.user_id == account_id, offset, limit)

        return PostPage(items=items, page=page, page_size=page_size)

    async def _page(self, session: AsyncSession, criterion, offset: int, limit: int) -> list[PostResponse]:
        rows = await session.execute(
            select(Post, Account.username, Account.display_name)
            .join(Account, Account.account_id == Post.user_id)
            .where(criterion)
            .order_by(Post.created_at.desc(), Post.post_id.desc())
            .offset(offset)
            .limit(limit)
        )
        return [build_post_response(*row) for row in rows.all()]
