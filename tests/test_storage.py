"""Persistence behaviour, shared by the in-memory and SQL backends."""
import asyncio
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell.errors import ConstraintViolation
from inkwell.models import Follow, utcnow
from inkwell.storage.base import derive_excerpt, reading_time


async def make_user(storage, tag: str = "ada"):
    return await storage.create_user(f"{tag}@mail.com", "hash", username=tag)


async def make_post(storage, author_id: int, **data):
    values = {"title": "Hello World", "content": "body text", "published": True}
    values.update(data)
    return await storage.create_post(values, author_id)


def test_reading_time_rounds_up():
    assert reading_time("word " * 200) == 1
    assert reading_time("word " * 201) == 2
    assert reading_time("") == 0


def test_derive_excerpt_truncates_long_content():
    assert derive_excerpt("short  text\n here") == "short text here"
    excerpt = derive_excerpt("x" * 500)
    assert len(excerpt) == 201
    assert excerpt.endswith("…")


async def test_post_round_trip(storage):
    user = await make_user(storage)
    tech = await storage.create_tag("tech")
    python = await storage.create_tag("python")
    category = await storage.create_category("Engineering", "How we build")

    created = await make_post(
        storage,
        user.id,
        subtitle="Sub",
        category_id=category.id,
        tag_ids=[tech.id, python.id, tech.id],
    )
    fetched = await storage.get_post(created.id)

    assert fetched is not None
    assert fetched.title == "Hello World"
    assert fetched.subtitle == "Sub"
    assert fetched.author_id == user.id
    assert fetched.category_id == category.id
    assert fetched.excerpt == "body text"
    assert fetched.reading_time == 1
    assert [t.name for t in await storage.get_post_tags(created.id)] == ["python", "tech"]


async def test_update_replaces_tag_set(storage):
    user = await make_user(storage)
    a, b, c = [await storage.create_tag(name) for name in ("a", "b", "c")]
    post = await make_post(storage, user.id, tag_ids=[a.id, b.id])

    updated = await storage.update_post(
        post.id, {"title": "New", "content": "new body", "published": True, "tag_ids": [b.id, c.id]}
    )

    assert updated.title == "New"
    assert {t.name for t in await storage.get_post_tags(post.id)} == {"b", "c"}


async def test_update_without_tag_ids_keeps_tags(storage):
    user = await make_user(storage)
    tag = await storage.create_tag("keep")
    post = await make_post(storage, user.id, tag_ids=[tag.id])

    await storage.update_post(post.id, {"title": "New", "content": "body", "tag_ids": None})

    assert [t.name for t in await storage.get_post_tags(post.id)] == ["keep"]


async def test_update_missing_post_returns_none(storage):
    assert await storage.update_post(999, {"title": "x", "content": "y"}) is None


async def test_delete_post_cascades(storage):
    author = await make_user(storage, "author")
    reader = await make_user(storage, "reader")
    tag = await storage.create_tag("gone")
    post = await make_post(storage, author.id, tag_ids=[tag.id])
    await storage.create_comment(post.id, reader.id, "Nice")
    await storage.create_or_update_clap(reader.id, post.id)

    assert await storage.delete_post(post.id) is True

    assert await storage.get_post(post.id) is None
    assert await storage.get_post_comments(post.id) == []
    assert await storage.get_post_tags(post.id) == []
    assert await storage.get_clap_total(post.id) == 0
    assert await storage.get_tag(tag.id) is not None
    assert await storage.delete_post(post.id) is False


async def test_repeated_claps_accumulate_in_one_row(storage):
    author = await make_user(storage, "author")
    reader = await make_user(storage, "reader")
    post = await make_post(storage, author.id)

    for _ in range(3):
        clap = await storage.create_or_update_clap(reader.id, post.id)

    assert clap.count == 3
    assert await storage.get_clap_total(post.id) == 3


async def test_clap_total_sums_across_users(storage):
    author = await make_user(storage, "author")
    reader = await make_user(storage, "reader")
    post = await make_post(storage, author.id)

    await storage.create_or_update_clap(reader.id, post.id, count=5)
    await storage.create_or_update_clap(author.id, post.id, count=2)

    assert await storage.get_clap_total(post.id) == 7


async def test_concurrent_claps_are_not_lost(storage):
    author = await make_user(storage, "author")
    reader = await make_user(storage, "reader")
    post = await make_post(storage, author.id)

    await asyncio.gather(
        storage.create_or_update_clap(reader.id, post.id),
        storage.create_or_update_clap(reader.id, post.id),
    )

    assert await storage.get_clap_total(post.id) == 2


async def test_clap_rejects_non_positive_count(storage):
    author = await make_user(storage)
    post = await make_post(storage, author.id)

    with pytest.raises(ConstraintViolation):
        await storage.create_or_update_clap(author.id, post.id, count=0)


async def test_search_blank_query_returns_nothing(storage):
    user = await make_user(storage)
    await make_post(storage, user.id)

    assert await storage.search_posts("") == []
    assert await storage.search_posts("   ") == []


async def test_search_is_case_insensitive_on_title_and_content(storage):
    user = await make_user(storage)
    by_title = await make_post(storage, user.id, title="hello world", content="nothing")
    by_content = await make_post(storage, user.id, title="Other", content="They said HELLO twice")
    await make_post(storage, user.id, title="Unrelated", content="nope")

    found = {p.id for p in await storage.search_posts("Hello")}

    assert found == {by_title.id, by_content.id}


async def test_search_treats_wildcards_literally(storage):
    user = await make_user(storage)
    await make_post(storage, user.id, title="plain", content="plain")
    percent = await make_post(storage, user.id, title="100% done", content="x")

    assert [p.id for p in await storage.search_posts("%")] == [percent.id]


async def test_search_published_only_skips_drafts(storage):
    user = await make_user(storage)
    await make_post(storage, user.id, title="Draft hello", published=False)

    assert len(await storage.search_posts("hello")) == 1
    assert await storage.search_posts("hello", published_only=True) == []


async def test_featured_posts_ordered_and_capped(storage):
    user = await make_user(storage)
    base = utcnow()
    posts = [
        await make_post(storage, user.id, title=f"P{i}", featured_at=base + timedelta(minutes=i))
        for i in range(12)
    ]
    await make_post(storage, user.id, title="Unfeatured")
    await make_post(storage, user.id, title="Draft", published=False, featured_at=base + timedelta(hours=1))

    featured = await storage.get_featured_posts()

    assert [p.id for p in featured] == [p.id for p in reversed(posts)][:10]


async def test_list_posts_newest_first_and_published_only(storage):
    user = await make_user(storage)
    first = await make_post(storage, user.id, title="first")
    draft = await make_post(storage, user.id, title="draft", published=False)
    second = await make_post(storage, user.id, title="second")

    assert [p.id for p in await storage.list_posts()] == [second.id, first.id]
    assert draft.id in {p.id for p in await storage.list_posts(published_only=False)}
    assert len(await storage.list_user_posts(user.id, published_only=False)) == 3


async def test_count_posts_with_cover(storage):
    user = await make_user(storage)
    cover = "/uploads/1700000000000-cafe.png"
    first = await make_post(storage, user.id, cover_image_url=cover)
    await make_post(storage, user.id, cover_image_url=cover)
    await make_post(storage, user.id, cover_image_url="/uploads/other.png")

    assert await storage.count_posts_with_cover(cover) == 2
    await storage.delete_post(first.id)
    assert await storage.count_posts_with_cover(cover) == 1
    assert await storage.count_posts_with_cover("/uploads/unused.png") == 0


async def test_comments_oldest_first_and_delete(storage):
    user = await make_user(storage)
    post = await make_post(storage, user.id)
    one = await storage.create_comment(post.id, user.id, "one")
    two = await storage.create_comment(post.id, user.id, "two")

    assert [c.id for c in await storage.get_post_comments(post.id)] == [one.id, two.id]
    assert await storage.delete_comment(one.id) is True
    assert await storage.delete_comment(one.id) is False
    assert await storage.get_comment(two.id) is not None


async def test_comment_on_missing_post_violates_constraint(storage):
    user = await make_user(storage)

    with pytest.raises(ConstraintViolation):
        await storage.create_comment(404, user.id, "hello?")


async def test_follow_is_idempotent(storage):
    ada = await make_user(storage, "ada")
    bob = await make_user(storage, "bob")

    assert await storage.create_follow(ada.id, bob.id) is True
    assert await storage.create_follow(ada.id, bob.id) is False

    assert [u.id for u in await storage.list_followers(bob.id)] == [ada.id]
    assert [u.id for u in await storage.list_following(ada.id)] == [bob.id]
    assert await storage.delete_follow(ada.id, bob.id) is True
    assert await storage.delete_follow(ada.id, bob.id) is False
    assert await storage.list_followers(bob.id) == []


async def test_concurrent_follows_of_one_pair_create_one_edge(storage):
    ada = await make_user(storage, "ada")
    bob = await make_user(storage, "bob")

    results = await asyncio.gather(
        storage.create_follow(ada.id, bob.id),
        storage.create_follow(ada.id, bob.id),
    )

    assert sorted(results) == [False, True]
    assert [u.id for u in await storage.list_followers(bob.id)] == [ada.id]


async def test_follow_insert_losing_a_race_is_not_an_error(sql_storage, monkeypatch):
    ada = await make_user(sql_storage, "ada")
    bob = await make_user(sql_storage, "bob")
    assert await sql_storage.create_follow(ada.id, bob.id) is True

    real_get = AsyncSession.get
    stale = []

    async def get_missing_once(self, entity, ident, **kwargs):
        if entity is Follow and not stale:
            stale.append(ident)
            return None
        return await real_get(self, entity, ident, **kwargs)

    monkeypatch.setattr(AsyncSession, "get", get_missing_once)

    assert await sql_storage.create_follow(ada.id, bob.id) is False
    assert stale == [(ada.id, bob.id)]
    assert len(await sql_storage.list_followers(bob.id)) == 1


async def test_follow_of_unknown_user_violates_constraint(storage):
    ada = await make_user(storage)

    with pytest.raises(ConstraintViolation):
        await storage.create_follow(ada.id, 999)


async def test_self_follow_violates_constraint(storage):
    ada = await make_user(storage)

    with pytest.raises(ConstraintViolation):
        await storage.create_follow(ada.id, ada.id)


async def test_duplicate_names_violate_constraints(storage):
    await make_user(storage, "ada")
    await storage.create_tag("python")
    await storage.create_category("Engineering")

    with pytest.raises(ConstraintViolation):
        await storage.create_user("ada@mail.com", "hash")
    with pytest.raises(ConstraintViolation):
        await storage.create_tag("python")
    with pytest.raises(ConstraintViolation):
        await storage.create_category("Engineering")


async def test_post_with_unknown_tag_is_rejected(storage):
    user = await make_user(storage)

    with pytest.raises(ConstraintViolation):
        await make_post(storage, user.id, tag_ids=[42])
    assert await storage.list_posts(published_only=False) == []


async def test_update_user_profile_fields(storage):
    user = await make_user(storage)

    updated = await storage.update_user(user.id, {"bio": "Writes things", "name": "Ada L."})

    assert updated.bio == "Writes things"
    assert updated.name == "Ada L."
    assert updated.username == "ada"
    assert (await storage.get_user_by_email("ada@mail.com")).bio == "Writes things"
    assert await storage.update_user(999, {"bio": "x"}) is None
