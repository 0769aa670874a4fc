"""
Account directory: registration and profile reads.

Identity (who is calling) is resolved upstream; this module only owns the
accounts rows. Counters are created at zero here and are never writable
through profile updates.
"""
import logging
from typing import Optional

from opentelemetry import trace
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from socialgraph.clock import SystemClock
from socialgraph.database import Store
from socialgraph.errors import Conflict, NotFound
from socialgraph.graph import GraphEdgeManager
from socialgraph.models import Account
from socialgraph.schemas import AccountResponse, Profile

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class AccountService:
    def __init__(self, store: Store, graph: GraphEdgeManager, clock=None):
        self._store = store
        self._graph = graph
        self._clock = clock or SystemClock()

    async def register(
        self,
        username: str,
        email: str,
        display_name: Optional[str] = None,
        bio: Optional[str] = None,
    ) -> AccountResponse:
        with tracer.start_as_current_span("accounts.register"):
            try:
                async with self._store.transaction() as session:
                    existing = await session.scalar(
                        select(Account.account_id).where(
                            or_(Account.username == username, Account.email == email)
                        )
                    )
                    if existing is not None:
                        raise Conflict("Username or email already taken")

                    now = self._clock.now()
                    account = Account(
                        username=username,
                        email=email,
                        display_name=display_name,
                        bio=bio,
                        post_count=0,
                        follower_count=0,
                        following_count=0,
                        created_at=now,
                        updated_at=now,
                    )
                    session.add(account)
                    await session.flush()  # get account_id before commit
                    created = AccountResponse.model_validate(account)
            except IntegrityError as exc:
                raise Conflict("Username or email already taken") from exc

            logger.info("Created account %s (id=%s)", created.username, created.account_id)
            return created

    async def get(self, account_id: str) -> AccountResponse:
        async with self._store.transaction() as session:
            account = await session.get(Account, account_id)
            if account is None:
                raise NotFound("Account not found")
            return AccountResponse.model_validate(account)

    async def get_by_username(self, username: str) -> AccountResponse:
        async with self._store.transaction() as session:
            account = await session.scalar(select(Account).where(Account.username == username))
            if account is None:
                raise NotFound("Account not found")
            return AccountResponse.model_validate(account)

    async def profile(self, username: str, viewer_id: Optional[str] = None) -> Profile:
        """Counters as cached on the row, plus whether ``viewer_id`` follows them."""
        async with self._store.transaction() as session:
            account = await session.scalar(select(Account).where(Account.username == username))
            if account is None:
                raise NotFound("Account not found")

            following = False
            if viewer_id and viewer_id != account.account_id:
                following = await self._graph.edge_exists(session, viewer_id, account.account_id)

            return Profile.model_validate(account).model_copy(update={"is_following": following})

    async def update_profile(
        self,
        account_id: str,
        display_name: Optional[str] = None,
        bio: Optional[str] = None,
    ) -> AccountResponse:
        async with self._store.transaction() as session:
            account = await session.get(Account, account_id)
            if account is None:
                raise NotFound("Account not found")
            if display_name is not None:
                account.display_name = display_name
            if bio is not None:
                account.bio = bio
            account.updated_at = self._clock.now()
            await session.flush()
            return AccountResponse.model_validate(account)
