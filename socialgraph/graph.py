"""
Graph edge manager - owns the follows table.

An edge's existence is the single source of truth for "is-following".
Creating or destroying an edge adjusts follower_count on the followee and
following_count on the follower inside the same transaction, so a reader
never sees an edge without its counters or the reverse.

Duplicate detection is a pre-check followed by the insert; the composite
primary key on (follower_id, followee_id) catches the concurrent case the
pre-check cannot, and is reported as the same Conflict.
"""
import logging

from opentelemetry import trace
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from socialgraph.clock import SystemClock
from socialgraph.counters import CounterField, CounterReconciler
from socialgraph.database import Store, is_duplicate_key
from socialgraph.errors import Conflict, InvalidOperation, NotFound
from socialgraph.models import Account, Follow
from socialgraph.pagination import page_window
from socialgraph.schemas import AccountPage, AccountSummary, FollowEdgeResponse
from socialgraph.telemetry import GRAPH_MUTATIONS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class GraphEdgeManager:
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

    async def follow(self, follower_id: str, followee_id: str) -> FollowEdgeResponse:
        with tracer.start_as_current_span("graph.follow") as span:
            span.set_attribute("follow.follower_id", follower_id)
            span.set_attribute("follow.followee_id", followee_id)

            if follower_id == followee_id:
                raise InvalidOperation("Cannot follow yourself")

            try:
                async with self._store.transaction() as session:
                    found = await self._lock_accounts(session, follower_id, followee_id)
                    if follower_id not in found:
                        raise NotFound("Follower not found")
                    if followee_id not in found:
                        raise NotFound("Account not found")

                    if await session.get(Follow, (follower_id, followee_id)) is not None:
                        raise Conflict("Already following")

                    edge = Follow(
                        follower_id=follower_id,
                        followee_id=followee_id,
                        created_at=self._clock.now(),
                    )
                    session.add(edge)
                    await session.flush()

                    await self._counters.adjust(
                        session, follower_id, CounterField.FOLLOWING_COUNT, +1
                    )
                    await self._counters.adjust(
                        session, followee_id, CounterField.FOLLOWER_COUNT, +1
                    )
                    created = FollowEdgeResponse.model_validate(edge)
            except IntegrityError as exc:
                if not is_duplicate_key(exc):
                    logger.warning(
                        "Follow %s → %s rejected by the store: %s",
                        follower_id, followee_id, exc.orig,
                    )
                    raise NotFound("Account not found") from exc
                logger.info(
                    "Concurrent follow %s → %s lost the race", follower_id, followee_id
                )
                raise Conflict("Already following") from exc

            GRAPH_MUTATIONS_TOTAL.labels(op="follow").inc()
            logger.info("%s followed %s", follower_id, followee_id)
            return created

    async def unfollow(self, follower_id: str, followee_id: str) -> None:
        with tracer.start_as_current_span("graph.unfollow") as span:
            span.set_attribute("follow.follower_id", follower_id)
            span.set_attribute("follow.followee_id", followee_id)

            if follower_id == followee_id:
                raise InvalidOperation("Cannot unfollow yourself")

            async with self._store.transaction() as session:
                await self._lock_accounts(session, follower_id, followee_id)
                result = await session.execute(
                    delete(Follow).where(
                        Follow.follower_id == follower_id,
                        Follow.followee_id == followee_id,
                    )
                )
                # Zero rows also covers a concurrent unfollow that got there first.
                if result.rowcount == 0:
                    raise NotFound("Not following")

                await self._counters.adjust(
                    session, follower_id, CounterField.FOLLOWING_COUNT, -1
                )
                await self._counters.adjust(
                    session, followee_id, CounterField.FOLLOWER_COUNT, -1
                )

            GRAPH_MUTATIONS_TOTAL.labels(op="unfollow").inc()
            logger.info("%s unfollowed %s", follower_id, followee_id)

    async def is_following(self, follower_id: str, followee_id: str) -> bool:
        # A user does not "follow" themselves; no lookup needed.
        if not follower_id or not followee_id or follower_id == followee_id:
            return False
        async with self._store.transaction() as session:
            return await self.edge_exists(session, follower_id, followee_id)

    async def edge_exists(self, session: AsyncSession, follower_id: str, followee_id: str) -> bool:
        found = await session.scalar(
            select(Follow.follower_id).where(
                Follow.follower_id == follower_id,
                Follow.followee_id == followee_id,
            )
        )
        return found is not None

    async def followee_ids(self, session: AsyncSession, account_id: str) -> set[str]:
        """Accounts ``account_id`` follows, read inside the caller's transaction."""
        rows = await session.scalars(
            select(Follow.followee_id).where(Follow.follower_id == account_id)
        )
        return set(rows.all())

    async def list_followers(self, username: str, page: int, page_size: int) -> AccountPage:
        return await self._list_edges(username, page, page_size, incoming=True)

    async def list_following(self, username: str, page: int, page_size: int) -> AccountPage:
        return await self._list_edges(username, page, page_size, incoming=False)

    async def _list_edges(self, username, page, page_size, incoming: bool) -> AccountPage:
        offset, limit = page_window(page, page_size, self._max_page_size)

        async with self._store.transaction() as session:
            account_id = await session.scalar(
                select(Account.account_id).where(Account.username == username)
            )
            if account_id is None:
                raise NotFound("Account not found")

            if incoming:
                anchor, other = Follow.followee_id, Follow.follower_id
            else:
                anchor, other = Follow.follower_id, Follow.followee_id

            rows = await session.scalars(
                select(Account)
                .join(Follow, Account.account_id == other)
                .where(anchor == account_id)
                .order_by(Follow.created_at.desc(), other.desc())
                .offset(offset)
                .limit(limit)
            )
            items = [AccountSummary.model_validate(a) for a in rows.all()]

        return AccountPage(items=items, page=page, page_size=page_size)

    async def _lock_accounts(self, session: AsyncSession, *account_ids: str) -> set[str]:
        """Row-lock both endpoints before the edge write; returns the ids that exist."""
        rows = await session.scalars(lock_accounts_stmt(account_ids))
        return set(rows.all())


def lock_accounts_stmt(account_ids):
    """
    SELECT ... FOR UPDATE over the given accounts in ascending id order.

    The FK check on a follows insert takes shared locks on both account
    rows, and the counter UPDATEs then need exclusive ones. Taking the
    exclusive locks up front, always in the same order, keeps concurrent
    follows of one account (and A→B racing B→A) queued instead of
    deadlocked on InnoDB/TiDB. SQLite ignores FOR UPDATE.
    """
    return (
        select(Account.account_id)
        .where(Account.account_id.in_(sorted(set(account_ids))))
        .order_by(Account.account_id)
        .with_for_update()
    )
