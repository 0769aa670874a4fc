from __future__ import annotations

import sqlite3

import pytest
from sqlalchemy import event, text
from sqlalchemy.dialects import mysql
from sqlalchemy.exc import IntegrityError
from sqlalchemy.schema import CreateTable

from socialgraph.database import Store, is_duplicate_key
from socialgraph.errors import NotFound, StoreUnavailable
from socialgraph.graph import lock_accounts_stmt
from socialgraph.models import Account, Comment, Follow, Like, Post


@pytest.mark.parametrize("model", [Account, Follow, Post, Like, Comment])
def test_timestamps_keep_microseconds_on_mysql(model):
    ddl = str(CreateTable(model.__table__).compile(dialect=mysql.dialect()))
    assert "created_at DATETIME(6) NOT NULL" in ddl
    assert "DATETIME NOT NULL" not in ddl


def test_account_lock_is_exclusive_and_ordered():
    stmt = lock_accounts_stmt(["bbb", "aaa", "bbb"])
    sql = str(stmt.compile(dialect=mysql.dialect(), compile_kwargs={"literal_binds": True}))
    assert "IN ('aaa', 'bbb')" in sql
    assert "ORDER BY accounts.account_id" in sql
    assert sql.rstrip().endswith("FOR UPDATE")


async def test_query_failure_becomes_store_unavailable(store):
    with pytest.raises(StoreUnavailable) as info:
        async with store.transaction() as session:
            await session.execute(text("SELECT * FROM no_such_table"))

    assert info.value.status_code == 503
    assert info.value.detail == "Store unavailable"
    assert "no_such_table" not in str(info.value)


async def test_unreachable_store_becomes_store_unavailable(tmp_path):
    broken = Store(f"sqlite+aiosqlite:///{tmp_path / 'absent' / 'social.db'}")
    try:
        with pytest.raises(StoreUnavailable):
            async with broken.transaction() as session:
                await session.execute(text("SELECT 1"))
    finally:
        await broken.dispose()


class _MySQLError(Exception):
    pass


@pytest.mark.parametrize(
    "orig, duplicate",
    [
        (sqlite3.IntegrityError("UNIQUE constraint failed: follows.follower_id, follows.followee_id"), True),
        (sqlite3.IntegrityError("FOREIGN KEY constraint failed"), False),
        (sqlite3.IntegrityError("CHECK constraint failed: ck_follows_no_self"), False),
        (_MySQLError(1062, "Duplicate entry 'a-b' for key 'PRIMARY'"), True),
        (_MySQLError(1452, "Cannot add or update a child row"), False),
    ],
)
def test_is_duplicate_key(orig, duplicate):
    assert is_duplicate_key(IntegrityError("INSERT", {}, orig)) is duplicate


async def test_follow_of_vanished_account_is_not_found(core, store, alice, monkeypatch):
    @event.listens_for(store.engine.sync_engine, "connect")
    def _enforce_fks(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # Reconnect so every pooled connection enforces foreign keys.
    await store.engine.dispose()

    async def everyone_exists(session, *account_ids):
        return set(account_ids)

    # The followee disappears between the existence check and the insert.
    monkeypatch.setattr(core.graph, "_lock_accounts", everyone_exists)

    with pytest.raises(NotFound):
        await core.graph.follow(alice.account_id, "ghost")

    assert (await core.accounts.get(alice.account_id)).following_count == 0
