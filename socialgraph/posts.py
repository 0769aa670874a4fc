"""
Post lifecycle.

Creating a post bumps the owner's post_count; deleting one removes its
likes and comments, the post row, and decrements post_count, in one
transaction. Only the owner may delete.
"""
import logging
from typing import Optional

from opentelemetry import trace
from sqlalchemy import delete, select

from socialgraph.clock import SystemClock
from socialgraph.counters import CounterField, CounterReconciler
from socialgraph.database import Store
from socialgraph.errors import Forbidden, NotFound
from socialgraph.models import Account, Comment, Like, Post
from socialgraph.schemas import PostResponse
from socialgraph.telemetry import ENGAGEMENT_MUTATIONS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def build_post_response(
    post: Post,
    username: Optional[str] = None,
    display_name: Optional[str] = None,
) -> PostResponse:
    return PostResponse(
        post_id=post.post_id,
        user_id=post.user_id,
        username=username,
        display_name=display_name,
        caption=post.caption,
        media_url=post.media_url,
        like_count=post.like_count,
        comment_count=post.comment_count,
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


class PostService:
    def __init__(self, store: Store, counters: CounterReconciler, clock=None):
        self._store = store
        self._counters = counters
        self._clock = clock or SystemClock()

    async def create_post(
        self,
        owner_id: str,
        caption: Optional[str] = None,
        media_url: Optional[str] = None,
    ) -> PostResponse:
        with tracer.start_as_current_span("posts.create") as span:
            async with self._store.transaction() as session:
                owner = await session.get(Account, owner_id, with_for_update=True)
                if owner is None:
                    raise NotFound("Author not found")

                now = self._clock.now()
                post = Post(
                    user_id=owner_id,
                    caption=caption,
                    media_url=media_url,
                    like_count=0,
                    comment_count=0,
                    created_at=now,
                    updated_at=now,
                )
                session.add(post)
                await session.flush()  # materialise post_id

                await self._counters.adjust(session, owner_id, CounterField.POST_COUNT, +1)
                response = build_post_response(post, owner.username, owner.display_name)

            span.set_attribute("post.id", response.post_id)
            span.set_attribute("post.user_id", owner_id)
            ENGAGEMENT_MUTATIONS_TOTAL.labels(op="create_post").inc()
            logger.info("Post created: %s by user %s", response.post_id, owner_id)
            return response

    async def get_post(self, post_id: str) -> PostResponse:
        async with self._store.transaction() as session:
            row = (
                await session.execute(
                    select(Post, Account.username, Account.display_name)
                    .join(Account, Account.account_id == Post.user_id)
                    .where(Post.post_id == post_id)
                )
            ).first()
            if row is None:
                raise NotFound("Post not found")
            return build_post_response(*row)

    async def delete_post(self, account_id: str, post_id: str) -> None:
        with tracer.start_as_current_span("posts.delete") as span:
            span.set_attribute("post.id", post_id)

            async with self._store.transaction() as session:
                post = await session.get(Post, post_id)
                if post is None:
                    raise NotFound("Post not found")
                if post.user_id != account_id:
                    raise Forbidden("You can only delete your own posts")

                # The post's own like/comment counters go away with it.
                await session.execute(delete(Like).where(Like.post_id == post_id))
                await session.execute(delete(Comment).where(Comment.post_id == post_id))
                result = await session.execute(delete(Post).where(Post.post_id == post_id))
                if result.rowcount == 0:
                    raise NotFound("Post not found")

                await self._counters.adjust(session, account_id, CounterField.POST_COUNT, -1)

            ENGAGEMENT_MUTATIONS_TOTAL.labels(op="delete_post").inc()
            logger.info("Post deleted: %s by user %s", post_id, account_id)
