"""
In-process storage backend.

Keeps transient ORM instances in dictionaries and enforces the same
uniqueness, foreign-key and cascade rules as the relational schema. Intended
for tests and single-process development; every instance is independent.
"""
import asyncio
import itertools
from typing import Any, Mapping, Optional, Sequence

from inkwell.errors import ConstraintViolation
from inkwell.models import Category, Clap, Comment, Follow, Post, Tag, User, utcnow
from inkwell.storage.base import (
    FEATURED_LIMIT,
    PROFILE_COLUMNS,
    Storage,
    post_values,
    unique_ids,
)


def _newest_first(posts) -> list[Post]:
    return sorted(posts, key=lambda p: (p.created_at, p.id), reverse=True)


class InMemoryStorage(Storage):
    def __init__(self) -> None:
        self._ids = {name: itertools.count(1) for name in ("user", "post", "comment", "category", "tag")}
        self._users: dict[int, User] = {}
        self._posts: dict[int, Post] = {}
        self._comments: dict[int, Comment] = {}
        self._categories: dict[int, Category] = {}
        self._tags: dict[int, Tag] = {}
        self._post_tags: set[tuple[int, int]] = set()
        self._follows: dict[tuple[int, int], Follow] = {}
        self._claps: dict[tuple[int, int], Clap] = {}
        # Serialises read-modify-write sequences such as the clap increment.
        self._lock = asyncio.Lock()

    # ── Constraint helpers ─────────────────────────────────────────────────
    def _require_user(self, user_id: int) -> None:
        if user_id not in self._users:
            raise ConstraintViolation(f"user {user_id} does not exist")

    def _require_post(self, post_id: int) -> None:
        if post_id not in self._posts:
            raise ConstraintViolation(f"post {post_id} does not exist")

    def _check_post_refs(self, values: Mapping[str, Any], tag_ids: list[int]) -> None:
        category_id = values.get("category_id")
        if category_id is not None and category_id not in self._categories:
            raise ConstraintViolation(f"category {category_id} does not exist")
        missing = [t for t in tag_ids if t not in self._tags]
        if missing:
            raise ConstraintViolation(f"tags {missing} do not exist")

    def _check_unique(self, rows, attr: str, value, exclude_id=None) -> None:
        if value is None:
            return
        for row in rows:
            if getattr(row, attr) == value and row.id != exclude_id:
                raise ConstraintViolation(f"{attr} '{value}' already exists")

    # ── Users ──────────────────────────────────────────────────────────────
    async def create_user(self, email, password_hash, username=None, name=None) -> User:
        async with self._lock:
            self._check_unique(self._users.values(), "email", email)
            self._check_unique(self._users.values(), "username", username)
            now = utcnow()
            user = User(
                id=next(self._ids["user"]),
                email=email,
                password_hash=password_hash,
                username=username,
                name=name,
                created_at=now,
                updated_at=now,
            )
            self._users[user.id] = user
            return user

    async def get_user(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self._users.values() if u.email == email), None)

    async def update_user(self, user_id: int, data: Mapping[str, Any]) -> Optional[User]:
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            if "username" in data:
                self._check_unique(self._users.values(), "username", data["username"], exclude_id=user_id)
            for column in PROFILE_COLUMNS:
                if column in data:
                    setattr(user, column, data[column])
            user.updated_at = utcnow()
            return user

    # ── Posts ──────────────────────────────────────────────────────────────
    async def list_posts(self, published_only: bool = True) -> Sequence[Post]:
        return _newest_first(p for p in self._posts.values() if p.published or not published_only)

    async def get_post(self, post_id: int) -> Optional[Post]:
        return self._posts.get(post_id)

    async def create_post(self, data: Mapping[str, Any], author_id: int) -> Post:
        async with self._lock:
            self._require_user(author_id)
            values = post_values(data)
            tag_ids = unique_ids(data.get("tag_ids"))
            self._check_post_refs(values, tag_ids)
            now = utcnow()
            values.setdefault("featured_at", None)
            post = Post(
                id=next(self._ids["post"]),
                author_id=author_id,
                created_at=now,
                updated_at=now,
                **values,
            )
            self._posts[post.id] = post
            self._post_tags.update((post.id, t) for t in tag_ids)
            return post

    async def update_post(self, post_id: int, data: Mapping[str, Any]) -> Optional[Post]:
        async with self._lock:
            post = self._posts.get(post_id)
            if post is None:
                return None
            values = post_values(data)
            tag_ids = data.get("tag_ids")
            self._check_post_refs(values, unique_ids(tag_ids))
            for column, value in values.items():
                setattr(post, column, value)
            post.updated_at = utcnow()
            if tag_ids is not None:
                self._post_tags = {pt for pt in self._post_tags if pt[0] != post_id}
                self._post_tags.update((post_id, t) for t in unique_ids(tag_ids))
            return post

    async def delete_post(self, post_id: int) -> bool:
        async with self._lock:
            if self._posts.pop(post_id, None) is None:
                return False
            self._comments = {k: c for k, c in self._comments.items() if c.post_id != post_id}
            self._post_tags = {pt for pt in self._post_tags if pt[0] != post_id}
            self._claps = {k: c for k, c in self._claps.items() if c.post_id != post_id}
            return True

    async def search_posts(self, query: str, published_only: bool = False) -> Sequence[Post]:
        needle = query.strip().lower()
        if not needle:
            return []
        return _newest_first(
            p
            for p in self._posts.values()
            if (p.published or not published_only)
            and (needle in p.title.lower() or needle in p.content.lower())
        )

    async def get_featured_posts(self, limit: int = FEATURED_LIMIT) -> Sequence[Post]:
        featured = [p for p in self._posts.values() if p.published and p.featured_at is not None]
        featured.sort(key=lambda p: p.featured_at, reverse=True)
        return featured[:limit]

    async def list_user_posts(self, user_id: int, published_only: bool = True) -> Sequence[Post]:
        return _newest_first(
            p
            for p in self._posts.values()
            if p.author_id == user_id and (p.published or not published_only)
        )

    async def count_posts_with_cover(self, reference: str) -> int:
        return sum(1 for p in self._posts.values() if p.cover_image_url == reference)

    # ── Comments ───────────────────────────────────────────────────────────
    async def get_post_comments(self, post_id: int) -> Sequence[Comment]:
        comments = [c for c in self._comments.values() if c.post_id == post_id]
        return sorted(comments, key=lambda c: (c.created_at, c.id))

    async def get_comment(self, comment_id: int) -> Optional[Comment]:
        return self._comments.get(comment_id)

    async def create_comment(self, post_id: int, author_id: int, content: str) -> Comment:
        async with self._lock:
            self._require_post(post_id)
            self._require_user(author_id)
            comment = Comment(
                id=next(self._ids["comment"]),
                post_id=post_id,
                author_id=author_id,
                content=content,
                created_at=utcnow(),
            )
            self._comments[comment.id] = comment
            return comment

    async def delete_comment(self, comment_id: int) -> bool:
        async with self._lock:
            return self._comments.pop(comment_id, None) is not None

    # ── Categories & tags ──────────────────────────────────────────────────
    async def list_categories(self) -> Sequence[Category]:
        return sorted(self._categories.values(), key=lambda c: c.name)

    async def get_category(self, category_id: int) -> Optional[Category]:
        return self._categories.get(category_id)

    async def create_category(self, name: str, description: Optional[str] = None) -> Category:
        async with self._lock:
            self._check_unique(self._categories.values(), "name", name)
            category = Category(
                id=next(self._ids["category"]),
                name=name,
                description=description,
                created_at=utcnow(),
            )
            self._categories[category.id] = category
            return category

    async def list_tags(self) -> Sequence[Tag]:
        return sorted(self._tags.values(), key=lambda t: t.name)

    async def get_tag(self, tag_id: int) -> Optional[Tag]:
        return self._tags.get(tag_id)

    async def create_tag(self, name: str) -> Tag:
        async with self._lock:
            self._check_unique(self._tags.values(), "name", name)
            tag = Tag(id=next(self._ids["tag"]), name=name, created_at=utcnow())
            self._tags[tag.id] = tag
            return tag

    async def get_post_tags(self, post_id: int) -> Sequence[Tag]:
        tags = [self._tags[t] for p, t in self._post_tags if p == post_id]
        return sorted(tags, key=lambda t: t.name)

    # ── Social graph ───────────────────────────────────────────────────────
    async def create_follow(self, follower_id: int, followee_id: int) -> bool:
        async with self._lock:
            if follower_id == followee_id:
                raise ConstraintViolation("a user cannot follow itself")
            self._require_user(follower_id)
            self._require_user(followee_id)
            key = (follower_id, followee_id)
            if key in self._follows:
                return False
            self._follows[key] = Follow(
                follower_id=follower_id, followee_id=followee_id, created_at=utcnow()
            )
            return True

    async def delete_follow(self, follower_id: int, followee_id: int) -> bool:
        async with self._lock:
            return self._follows.pop((follower_id, followee_id), None) is not None

    async def list_followers(self, user_id: int) -> Sequence[User]:
        return [self._users[f] for f, g in sorted(self._follows) if g == user_id]

    async def list_following(self, user_id: int) -> Sequence[User]:
        return [self._users[g] for f, g in sorted(self._follows) if f == user_id]

    # ── Claps ──────────────────────────────────────────────────────────────
    async def create_or_update_clap(self, user_id: int, post_id: int, count: int = 1) -> Clap:
        if count < 1:
            raise ConstraintViolation("clap count must be at least 1")
        async with self._lock:
            self._require_user(user_id)
            self._require_post(post_id)
            clap = self._claps.get((user_id, post_id))
            if clap is None:
                clap = Clap(user_id=user_id, post_id=post_id, count=count, updated_at=utcnow())
                self._claps[(user_id, post_id)] = clap
            else:
                clap.count += count
                clap.updated_at = utcnow()
            return clap

    async def get_clap_total(self, post_id: int) -> int:
        return sum(c.count for c in self._claps.values() if c.post_id == post_id)
