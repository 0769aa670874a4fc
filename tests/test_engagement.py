from __future__ import annotations

import asyncio

import pytest

from socialgraph.errors import Conflict, Forbidden, NotFound


@pytest.fixture()
async def post(core, bob):
    return await core.posts.create_post(bob.account_id, "a post", "https://cdn.example/1.jpg")


async def test_create_post_bumps_post_count(core, bob, post, assert_consistent):
    assert post.like_count == 0 and post.comment_count == 0
    assert post.username == "bob"
    assert (await core.accounts.get(bob.account_id)).post_count == 1
    await assert_consistent()


async def test_create_post_for_unknown_owner(core):
    with pytest.raises(NotFound):
        await core.posts.create_post("ghost", "boo")


async def test_like_unlike_round_trip(core, alice, post, assert_consistent):
    like = await core.engagement.like(alice.account_id, post.post_id)
    assert like.user_id == alice.account_id

    stats = await core.engagement.like_stats(post.post_id, alice.account_id)
    assert (stats.like_count, stats.liked) == (1, True)
    assert (await core.engagement.like_stats(post.post_id)).liked is False
    await assert_consistent()

    await core.engagement.unlike(alice.account_id, post.post_id)
    stats = await core.engagement.like_stats(post.post_id, alice.account_id)
    assert (stats.like_count, stats.liked) == (0, False)
    await assert_consistent()


async def test_like_errors(core, alice, post):
    with pytest.raises(NotFound):
        await core.engagement.like(alice.account_id, "no-such-post")
    with pytest.raises(NotFound):
        await core.engagement.unlike(alice.account_id, post.post_id)
    with pytest.raises(NotFound):
        await core.engagement.like_stats("no-such-post")

    await core.engagement.like(alice.account_id, post.post_id)
    with pytest.raises(Conflict):
        await core.engagement.like(alice.account_id, post.post_id)
    assert (await core.posts.get_post(post.post_id)).like_count == 1


async def test_concurrent_duplicate_like_counts_once(core, alice, post, assert_consistent):
    results = await asyncio.gather(
        core.engagement.like(alice.account_id, post.post_id),
        core.engagement.like(alice.account_id, post.post_id),
        return_exceptions=True,
    )

    assert sum(1 for r in results if not isinstance(r, Exception)) == 1
    assert sum(1 for r in results if isinstance(r, Conflict)) == 1
    assert (await core.posts.get_post(post.post_id)).like_count == 1
    await assert_consistent()


async def test_concurrent_likes_from_many_accounts_all_land(core, post, assert_consistent):
    fans = [
        await core.accounts.register(f"fan{i}", f"fan{i}@example.com")
        for i in range(6)
    ]

    await asyncio.gather(*[core.engagement.like(f.account_id, post.post_id) for f in fans])

    assert (await core.posts.get_post(post.post_id)).like_count == len(fans)
    await assert_consistent()


async def test_list_likers_newest_first(core, alice, carol, post):
    await core.engagement.like(alice.account_id, post.post_id)
    await core.engagement.like(carol.account_id, post.post_id)

    page = await core.engagement.list_likers(post.post_id, 1, 10)
    assert [liker.username for liker in page.items] == ["carol", "alice"]
    assert page.items[0].display_name == "Carol"
    assert page.items[0].liked_at > page.items[1].liked_at

    second = await core.engagement.list_likers(post.post_id, 2, 1)
    assert [liker.username for liker in second.items] == ["alice"]

    await core.engagement.unlike(carol.account_id, post.post_id)
    page = await core.engagement.list_likers(post.post_id, 1, 10)
    assert [liker.user_id for liker in page.items] == [alice.account_id]

    with pytest.raises(NotFound):
        await core.engagement.list_likers("no-such-post", 1, 10)


async def test_get_comment(core, alice, post):
    created = await core.engagement.add_comment(alice.account_id, post.post_id, "nice")

    fetched = await core.engagement.get_comment(created.comment_id)
    assert fetched == created

    await core.engagement.delete_comment(alice.account_id, created.comment_id)
    with pytest.raises(NotFound):
        await core.engagement.get_comment(created.comment_id)


async def test_comment_lifecycle(core, alice, bob, post, assert_consistent):
    first = await core.engagement.add_comment(alice.account_id, post.post_id, "nice")
    second = await core.engagement.add_comment(bob.account_id, post.post_id, "thanks")
    assert (await core.posts.get_post(post.post_id)).comment_count == 2

    page = await core.engagement.list_comments(post.post_id, 1, 10)
    assert [c.comment_id for c in page.items] == [first.comment_id, second.comment_id]

    edited = await core.engagement.update_comment(alice.account_id, first.comment_id, "very nice")
    assert edited.content == "very nice"
    assert edited.updated_at > edited.created_at

    with pytest.raises(Forbidden):
        await core.engagement.delete_comment(bob.account_id, first.comment_id)
    with pytest.raises(Forbidden):
        await core.engagement.update_comment(bob.account_id, first.comment_id, "hijack")
    assert (await core.posts.get_post(post.post_id)).comment_count == 2

    await core.engagement.delete_comment(alice.account_id, first.comment_id)
    assert (await core.posts.get_post(post.post_id)).comment_count == 1
    with pytest.raises(NotFound):
        await core.engagement.delete_comment(alice.account_id, first.comment_id)
    await assert_consistent()


async def test_comment_on_missing_post(core, alice):
    with pytest.raises(NotFound):
        await core.engagement.add_comment(alice.account_id, "no-such-post", "hi")
    with pytest.raises(NotFound):
        await core.engagement.list_comments("no-such-post", 1, 10)


async def test_delete_post_owner_only_and_cascades(core, alice, bob, post, assert_consistent):
    await core.engagement.like(alice.account_id, post.post_id)
    await core.engagement.add_comment(alice.account_id, post.post_id, "hey")

    with pytest.raises(Forbidden):
        await core.posts.delete_post(alice.account_id, post.post_id)

    await core.posts.delete_post(bob.account_id, post.post_id)
    with pytest.raises(NotFound):
        await core.posts.get_post(post.post_id)
    with pytest.raises(NotFound):
        await core.posts.delete_post(bob.account_id, post.post_id)

    assert (await core.accounts.get(bob.account_id)).post_count == 0
    await assert_consistent()
