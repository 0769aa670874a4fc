from __future__ import annotations

import os

# Settings are read at import time; keep tests off the OTLP exporter.
os.environ.setdefault("TRACING_ENABLED", "false")

import pytest

from socialgraph.clock import ManualClock
from socialgraph.core import SocialGraph
from socialgraph.database import Store


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
async def store(tmp_path):
    # A file, not :memory:, so concurrent sessions get separate connections.
    store = Store(f"sqlite+aiosqlite:///{tmp_path / 'social.db'}")
    await store.init_db()
    try:
        yield store
    finally:
        await store.dispose()


@pytest.fixture()
def core(store, clock) -> SocialGraph:
    return SocialGraph.build(store, clock=clock, max_page_size=50)


@pytest.fixture()
async def alice(core):
    return await core.accounts.register("alice", "alice@example.com", "Alice")


@pytest.fixture()
async def bob(core):
    return await core.accounts.register("bob", "bob@example.com", "Bob")


@pytest.fixture()
async def carol(core):
    return await core.accounts.register("carol", "carol@example.com", "Carol")


@pytest.fixture()
def assert_consistent(core):
    """Every cached counter matches a fresh recount of its relationship rows."""

    async def check():
        async with core.store.transaction() as session:
            drifts = await core.counters.audit(session)
        assert drifts == []

    return check
