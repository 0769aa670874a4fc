"""
Counter reconciliation.

Denormalized counters on accounts and posts are a cache over relationship
rows. They change in exactly two ways:

  • ``adjust`` / ``adjust_post`` - one atomic ``SET c = c ± 1`` issued inside
    the caller's transaction, next to the edge/row write it mirrors.
  • ``repair`` / ``recompute_*`` - offline recompute from the authoritative
    relationship counts, overwriting whatever is cached.

Nothing else writes a counter column.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from opentelemetry import trace
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from socialgraph.errors import InvalidOperation, NotFound
from socialgraph.models import Account, Comment, Follow, Like, Post
from socialgraph.telemetry import COUNTER_DRIFT_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class CounterField(str, Enum):
    FOLLOWER_COUNT = "follower_count"
    FOLLOWING_COUNT = "following_count"
    POST_COUNT = "post_count"
    LIKE_COUNT = "like_count"
    COMMENT_COUNT = "comment_count"


ACCOUNT_FIELDS = {
    CounterField.FOLLOWER_COUNT: Account.follower_count,
    CounterField.FOLLOWING_COUNT: Account.following_count,
    CounterField.POST_COUNT: Account.post_count,
}

POST_FIELDS = {
    CounterField.LIKE_COUNT: Post.like_count,
    CounterField.COMMENT_COUNT: Post.comment_count,
}


@dataclass(frozen=True)
class CounterDrift:
    table: str
    row_id: str
    field: CounterField
    cached: int
    actual: int


class CounterReconciler:
    """Stateless; every method works inside a session the caller owns."""

    async def adjust(
        self,
        session: AsyncSession,
        account_id: str,
        field: CounterField,
        delta: int,
    ) -> None:
        """Apply ±1 to one of an account's counters."""
        column = ACCOUNT_FIELDS.get(field)
        if column is None:
            raise InvalidOperation(f"{field} is not an account counter")
        await self._apply(session, Account, Account.account_id, account_id, field, column, delta)

    async def adjust_post(
        self,
        session: AsyncSession,
        post_id: str,
        field: CounterField,
        delta: int,
    ) -> None:
        """Apply ±1 to one of a post's counters."""
        column = POST_FIELDS.get(field)
        if column is None:
            raise InvalidOperation(f"{field} is not a post counter")
        await self._apply(session, Post, Post.post_id, post_id, field, column, delta)

    async def _apply(self, session, model, key, row_id, field, column, delta) -> None:
        if delta not in (1, -1):
            raise InvalidOperation("Counter delta must be +1 or -1")

        stmt = (
            update(model)
            .where(key == row_id)
            .values({column: column + delta})
            .execution_options(synchronize_session=False)
        )
        if delta < 0:
            # Floor at zero; a miss here means the cache had already drifted.
            stmt = stmt.where(column > 0)

        result = await session.execute(stmt)
        if result.rowcount == 1:
            return

        exists = await session.scalar(select(key).where(key == row_id))
        if exists is None:
            raise NotFound()

        COUNTER_DRIFT_TOTAL.labels(field=field.value).inc()
        logger.warning(
            "Counter drift: %s.%s for %s is already 0; left for repair",
            model.__tablename__, field.value, row_id,
        )

    # ── Offline audit / repair ────────────────────────────────────────────

    async def audit(self, session: AsyncSession) -> list[CounterDrift]:
        """Compare every cached counter with its relationship count."""
        with tracer.start_as_current_span("counters.audit"):
            drifts = await self._account_drifts(session)
            drifts += await self._post_drifts(session)
        for drift in drifts:
            COUNTER_DRIFT_TOTAL.labels(field=drift.field.value).inc()
        return drifts

    async def repair(self, session: AsyncSession) -> list[CounterDrift]:
        """Audit, then overwrite each drifted counter with the recomputed value."""
        drifts = await self.audit(session)
        await self._overwrite(session, drifts)
        return drifts

    async def recompute_account(self, session: AsyncSession, account_id: str) -> list[CounterDrift]:
        drifts = await self._account_drifts(session, account_id)
        await self._overwrite(session, drifts)
        return drifts

    async def recompute_post(self, session: AsyncSession, post_id: str) -> list[CounterDrift]:
        drifts = await self._post_drifts(session, post_id)
        await self._overwrite(session, drifts)
        return drifts

    async def _overwrite(self, session: AsyncSession, drifts: list[CounterDrift]) -> None:
        for drift in drifts:
            if drift.table == Account.__tablename__:
                model, key, column = Account, Account.account_id, ACCOUNT_FIELDS[drift.field]
            else:
                model, key, column = Post, Post.post_id, POST_FIELDS[drift.field]
            await session.execute(
                update(model)
                .where(key == drift.row_id)
                .values({column: drift.actual})
                .execution_options(synchronize_session=False)
            )
            logger.info(
                "Repaired %s.%s for %s: %d → %d",
                drift.table, drift.field.value, drift.row_id, drift.cached, drift.actual,
            )

    async def _account_drifts(
        self, session: AsyncSession, account_id: Optional[str] = None
    ) -> list[CounterDrift]:
        actual: dict[str, dict[CounterField, int]] = defaultdict(dict)

        sources = [
            (CounterField.FOLLOWER_COUNT, Follow.followee_id),
            (CounterField.FOLLOWING_COUNT, Follow.follower_id),
            (CounterField.POST_COUNT, Post.user_id),
        ]
        for field, owner in sources:
            stmt = select(owner, func.count()).group_by(owner)
            if account_id is not None:
                stmt = stmt.where(owner == account_id)
            for row_id, count in (await session.execute(stmt)).all():
                actual[row_id][field] = count

        stmt = select(
            Account.account_id,
            Account.follower_count,
            Account.following_count,
            Account.post_count,
        )
        if account_id is not None:
            stmt = stmt.where(Account.account_id == account_id)

        drifts = []
        for row in (await session.execute(stmt)).all():
            cached = {
                CounterField.FOLLOWER_COUNT: row.follower_count,
                CounterField.FOLLOWING_COUNT: row.following_count,
                CounterField.POST_COUNT: row.post_count,
            }
            for field, value in cached.items():
                true_value = actual[row.account_id].get(field, 0)
                if value != true_value:
                    drifts.append(
                        CounterDrift(Account.__tablename__, row.account_id, field, value, true_value)
                    )
        return drifts

    async def _post_drifts(
        self, session: AsyncSession, post_id: Optional[str] = None
    ) -> list[CounterDrift]:
        actual: dict[str, dict[CounterField, int]] = defaultdict(dict)

        sources = [
            (CounterField.LIKE_COUNT, Like.post_id),
            (CounterField.COMMENT_COUNT, Comment.post_id),
        ]
        for field, owner in sources:
            stmt = select(owner, func.count()).group_by(owner)
            if post_id is not None:
                stmt = stmt.where(owner == post_id)
            for row_id, count in (await session.execute(stmt)).all():
                actual[row_id][field] = count

        stmt = select(Post.post_id, Post.like_count, Post.comment_count)
        if post_id is not None:
            stmt = stmt.where(Post.post_id == post_id)

        drifts = []
        for row in (await session.execute(stmt)).all():
            cached = {
                CounterField.LIKE_COUNT: row.like_count,
                CounterField.COMMENT_COUNT: row.comment_count,
            }
            for field, value in cached.items():
                true_value = actual[row.post_id].get(field, 0)
                if value != true_value:
                    drifts.append(
                        CounterDrift(Post.__tablename__, row.post_id, field, value, true_value)
                    )
        return drifts
