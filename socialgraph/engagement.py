"""
Engagement aggregators - likes and comments.

Same shape as the graph edge manager, scoped to a post: a like edge or a
comment row is written together with a ±1 on posts.like_count /
posts.comment_count in one transaction. The (user_id, post_id) primary key
on likes backs up the duplicate-like pre-check under concurrency.
"""
import logging
from typing import Optional

from opentelemetry import trace
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from socialgraph.clock import SystemClock
from socialgraph.counters import CounterField, CounterReconciler
from socialgraph.database import Store, is_duplicate_key
from socialgraph.errors import Conflict, Forbidden, NotFound
from socialgraph.models import Account, Comment, Like, Post
from socialgraph.pagination import page_window
from socialgraph.schemas import (
    CommentPage,
    CommentResponse,
    Liker,
    LikerPage,
    LikeResponse,
    LikeStats,
)
from socialgraph.telemetry import ENGAGEMENT_MUTATIONS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class EngagementAggregator:
    def __init__(
        self,
        store: Store,
        counters: CounterReconciler,
        clock=None,
        max_page_size: int = 100,
    ):
        self._store = store
        self._counters = counters
        self._clock = clock or SystemClock()
        self._max_page_size = max_page_size

    # ── Likes ────────────────────────────────────────────────────────────

    async def like(self, account_id: str, post_id: str) -> LikeResponse:
        with tracer.start_as_current_span("engagement.like") as span:
            span.set_attribute("post.id", post_id)

            try:
                async with self._store.transaction() as session:
                    # Exclusive lock before the FK check's shared one; see graph.lock_accounts_stmt.
                    if await session.get(Post, post_id, with_for_update=True) is None:
                        raise NotFound("Post not found")
                    if await session.get(Account, account_id) is None:
                        raise NotFound("Account not found")
                    if await session.get(Like, (account_id, post_id)) is not None:
                        raise Conflict("You have already liked this post")

                    like = Like(user_id=account_id, post_id=post_id, created_at=self._clock.now())
                    session.add(like)
                    await session.flush()

                    await self._counters.adjust_post(session, post_id, CounterField.LIKE_COUNT, +1)
                    created = LikeResponse.model_validate(like)
            except IntegrityError as exc:
                if not is_duplicate_key(exc):
                    logger.warning("Like of %s rejected by the store: %s", post_id, exc.orig)
                    raise NotFound("Post not found") from exc
                logger.info("Concurrent like of %s by %s lost the race", post_id, account_id)
                raise Conflict("You have already liked this post") from exc

            ENGAGEMENT_MUTATIONS_TOTAL.labels(op="like").inc()
            logger.info("%s liked post %s", account_id, post_id)
            return created

    async def unlike(self, account_id: str, post_id: str) -> None:
        with tracer.start_as_current_span("engagement.unlike") as span:
            span.set_attribute("post.id", post_id)

            async with self._store.transaction() as session:
                result = await session.execute(
                    delete(Like).where(Like.user_id == account_id, Like.post_id == post_id)
                )
                if result.rowcount == 0:
                    raise NotFound("You have not liked this post")

                await self._counters.adjust_post(session, post_id, CounterField.LIKE_COUNT, -1)

            ENGAGEMENT_MUTATIONS_TOTAL.labels(op="unlike").inc()
            logger.info("%s unliked post %s", account_id, post_id)

    async def like_stats(self, post_id: str, viewer_id: Optional[str] = None) -> LikeStats:
        async with self._store.transaction() as session:
            like_count = await session.scalar(
                select(Post.like_count).where(Post.post_id == post_id)
            )
            if like_count is None:
                raise NotFound("Post not found")

            liked = False
            if viewer_id:
                liked = await session.get(Like, (viewer_id, post_id)) is not None

        return LikeStats(post_id=post_id, like_count=like_count, liked=liked)

    async def list_likers(self, post_id: str, page: int, page_size: int) -> LikerPage:
        """Accounts that liked ``post_id``, most recent like first."""
        offset, limit = page_window(page, page_size, self._max_page_size)

        async with self._store.transaction() as session:
            if await session.get(Post, post_id) is None:
                raise NotFound("Post not found")

            rows = await session.execute(
                select(Like.user_id, Account.username, Account.display_name, Like.created_at)
                .join(Account, Account.account_id == Like.user_id)
                .where(Like.post_id == post_id)
                .order_by(Like.created_at.desc(), Like.user_id.desc())
                .offset(offset)
                .limit(limit)
            )
            items = [
                Liker(user_id=r.user_id, username=r.username,
                      display_name=r.display_name, liked_at=r.created_at)
                for r in rows.all()
            ]

        return LikerPage(items=items, page=page, page_size=page_size)

    # ── Comments ─────────────────────────────────────────────────────────

    async def add_comment(self, account_id: str, post_id: str, content: str) -> CommentResponse:
        with tracer.start_as_current_span("engagement.add_comment") as span:
            span.set_attribute("post.id", post_id)

            async with self._store.transaction() as session:
                if await session.get(Post, post_id, with_for_update=True) is None:
                    raise NotFound("Post not found")
                if await session.get(Account, account_id) is None:
                    raise NotFound("Account not found")

                now = self._clock.now()
                comment = Comment(
                    post_id=post_id,
                    user_id=account_id,
                    content=content,
                    created_at=now,
                    updated_at=now,
                )
                session.add(comment)
                await session.flush()

                await self._counters.adjust_post(session, post_id, CounterField.COMMENT_COUNT, +1)
                created = CommentResponse.model_validate(comment)

            ENGAGEMENT_MUTATIONS_TOTAL.labels(op="add_comment").inc()
            logger.info("Comment %s added to post %s", created.comment_id, post_id)
            return created

    async def get_comment(self, comment_id: str) -> CommentResponse:
        async with self._store.transaction() as session:
            comment = await session.get(Comment, comment_id)
            if comment is None:
                raise NotFound("Comment not found")
            return CommentResponse.model_validate(comment)

    async def update_comment(self, account_id: str, comment_id: str, content: str) -> CommentResponse:
        async with self._store.transaction() as session:
            comment = await self._owned_comment(session, account_id, comment_id, "edit")
            comment.content = content
            comment.updated_at = self._clock.now()
            await session.flush()
            return CommentResponse.model_validate(comment)

    async def delete_comment(self, account_id: str, comment_id: str) -> None:
        with tracer.start_as_current_span("engagement.delete_comment"):
            async with self._store.transaction() as session:
                comment = await self._owned_comment(session, account_id, comment_id, "delete")
                post_id = comment.post_id

                result = await session.execute(
                    delete(Comment).where(Comment.comment_id == comment_id)
                )
                if result.rowcount == 0:
                    raise NotFound("Comment not found")

                await self._counters.adjust_post(session, post_id, CounterField.COMMENT_COUNT, -1)

            ENGAGEMENT_MUTATIONS_TOTAL.labels(op="delete_comment").inc()
            logger.info("Comment %s deleted from post %s", comment_id, post_id)

    async def list_comments(self, post_id: str, page: int, page_size: int) -> CommentPage:
        offset, limit = page_window(page, page_size, self._max_page_size)

        async with self._store.transaction() as session:
            if await session.get(Post, post_id) is None:
                raise NotFound("Post not found")

            rows = await session.scalars(
                select(Comment)
                .where(Comment.post_id == post_id)
                .order_by(Comment.created_at.asc(), Comment.comment_id.asc())
                .offset(offset)
                .limit(limit)
            )
            items = [CommentResponse.model_validate(c) for c in rows.all()]

        return CommentPage(items=items, page=page, page_size=page_size)

    async def _owned_comment(self, session, account_id: str, comment_id: str, verb: str) -> Comment:
        comment = await session.get(Comment, comment_id)
        if comment is None:
            raise NotFound("Comment not found")
        if comment.user_id != account_id:
            raise Forbidden(f"You can only {verb} your own comments")
        return comment
