from __future__ import annotations

from datetime import timedelta

import pytest

from socialgraph.errors import InvalidOperation, NotFound


def _ids(page):
    return [p.post_id for p in page.items]


async def test_feed_scenario_alice_follows_bob(core, alice, bob):
    p1 = await core.posts.create_post(bob.account_id, "P1")
    p2 = await core.posts.create_post(bob.account_id, "P2")
    await core.graph.follow(alice.account_id, bob.account_id)

    feed = await core.feed.get_feed(alice.account_id, 1, 10)
    assert _ids(feed) == [p2.post_id, p1.post_id]
    assert feed.candidate_authors == 2

    p3 = await core.posts.create_post(alice.account_id, "P3")
    feed = await core.feed.get_feed(alice.account_id, 1, 10)
    assert _ids(feed) == [p3.post_id, p2.post_id, p1.post_id]
    assert [p.username for p in feed.items] == ["alice", "bob", "bob"]


async def test_feed_always_includes_own_posts(core, alice, bob):
    mine = await core.posts.create_post(alice.account_id, "mine")
    await core.posts.create_post(bob.account_id, "not followed")

    feed = await core.feed.get_feed(alice.account_id, 1, 10)
    assert _ids(feed) == [mine.post_id]
    assert feed.candidate_authors == 1


async def test_feed_for_account_without_posts_or_followees(core, alice):
    feed = await core.feed.get_feed(alice.account_id, 1, 10)
    assert feed.items == []
    assert feed.viewer_id == alice.account_id


async def test_unfollow_removes_authors_posts(core, alice, bob):
    await core.graph.follow(alice.account_id, bob.account_id)
    before = await core.posts.create_post(bob.account_id, "seen")
    assert before.post_id in _ids(await core.feed.get_feed(alice.account_id, 1, 10))

    await core.graph.unfollow(alice.account_id, bob.account_id)
    after = await core.posts.create_post(bob.account_id, "unseen")

    feed_ids = _ids(await core.feed.get_feed(alice.account_id, 1, 10))
    assert after.post_id not in feed_ids
    assert before.post_id not in feed_ids


async def test_new_followee_history_is_visible_immediately(core, alice, bob):
    old = [await core.posts.create_post(bob.account_id, f"old {i}") for i in range(3)]
    await core.graph.follow(alice.account_id, bob.account_id)

    feed = await core.feed.get_feed(alice.account_id, 1, 10)
    assert set(_ids(feed)) == {p.post_id for p in old}


async def test_pagination_is_disjoint_and_complete(core, clock, alice, bob, carol):
    await core.graph.follow(alice.account_id, bob.account_id)
    await core.graph.follow(alice.account_id, carol.account_id)

    # Force timestamp collisions so only the post_id tie-break orders them.
    clock.step = timedelta(0)
    created = []
    for i in range(6):
        created.append(await core.posts.create_post(bob.account_id, f"b{i}"))
        created.append(await core.posts.create_post(carol.account_id, f"c{i}"))
    clock.step = timedelta(seconds=1)
    clock.advance(timedelta(seconds=1))
    created.append(await core.posts.create_post(alice.account_id, "latest"))

    pages = [await core.feed.get_feed(alice.account_id, n, 5) for n in (1, 2, 3)]
    seen = [pid for page in pages for pid in _ids(page)]

    assert [len(p.items) for p in pages] == [5, 5, 3]
    assert len(seen) == len(set(seen))
    assert set(seen) == {p.post_id for p in created}
    assert seen[0] == created[-1].post_id
    tied = seen[1:]
    assert tied == sorted(tied, reverse=True)

    # Same snapshot, same answer.
    again = await core.feed.get_feed(alice.account_id, 2, 5)
    assert _ids(again) == _ids(pages[1])


async def test_feed_rejects_bad_page_arguments(core, alice):
    with pytest.raises(InvalidOperation):
        await core.feed.get_feed(alice.account_id, 0, 10)
    with pytest.raises(InvalidOperation):
        await core.feed.get_feed(alice.account_id, 1, 0)
    with pytest.raises(InvalidOperation):
        await core.feed.get_feed(alice.account_id, 1, 51)


async def test_get_user_posts(core, alice, bob):
    a1 = await core.posts.create_post(alice.account_id, "a1")
    await core.posts.create_post(bob.account_id, "b1")
    a2 = await core.posts.create_post(alice.account_id, "a2")

    page = await core.feed.get_user_posts("alice", 1, 10)
    assert _ids(page) == [a2.post_id, a1.post_id]

    page = await core.feed.get_user_posts("alice", 2, 1)
    assert _ids(page) == [a1.post_id]

    with pytest.raises(NotFound):
        await core.feed.get_user_posts("nobody", 1, 10)


async def test_deleted_posts_leave_the_feed(core, alice, bob):
    await core.graph.follow(alice.account_id, bob.account_id)
    post = await core.posts.create_post(bob.account_id, "gone soon")
    await core.posts.delete_post(bob.account_id, post.post_id)

    assert _ids(await core.feed.get_feed(alice.account_id, 1, 10)) == []
    assert (await core.accounts.get(bob.account_id)).post_count == 0
