"""
Relational storage backend on async SQLAlchemy.

Each operation opens its own session and commits on success. Integrity
errors surface as ConstraintViolation; any other driver failure as
StorageError.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping, Optional, Sequence

from sqlalchemy import delete, func, or_, select
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inkwell.errors import ConstraintViolation, StorageError
from inkwell.models import (
    Category,
    Clap,
    Comment,
    Follow,
    Post,
    PostTag,
    Tag,
    User,
    utcnow,
)
from inkwell.storage.base import (
    FEATURED_LIMIT,
    PROFILE_COLUMNS,
    Storage,
    post_values,
    unique_ids,
)

logger = logging.getLogger(__name__)

_NEWEST_FIRST = (Post.created_at.desc(), Post.id.desc())


class SqlStorage(Storage):
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConstraintViolation(str(exc.orig)) from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                raise StorageError(f"{type(exc).__name__}: {exc}") from exc

    async def _all(self, stmt) -> list:
        async with self._session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def _get(self, model, ident):
        async with self._session() as session:
            return await session.get(model, ident)

    # ── Users ──────────────────────────────────────────────────────────────
    async def create_user(self, email, password_hash, username=None, name=None) -> User:
        async with self._session() as session:
            user = User(email=email, password_hash=password_hash, username=username, name=name)
            session.add(user)
            await session.flush()
            return user

    async def get_user(self, user_id: int) -> Optional[User]:
        return await self._get(User, user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        async with self._session() as session:
            result = await session.execute(select(User).where(User.email == email))
            return result.scalar_one_or_none()

    async def update_user(self, user_id: int, data: Mapping[str, Any]) -> Optional[User]:
        async with self._session() as session:
            user = await session.get(User, user_id)
            if user is None:
                return None
            for column in PROFILE_COLUMNS:
                if column in data:
                    setattr(user, column, data[column])
            user.updated_at = utcnow()
            await session.flush()
            return user

    # ── Posts ──────────────────────────────────────────────────────────────
    async def list_posts(self, published_only: bool = True) -> Sequence[Post]:
        stmt = select(Post).order_by(*_NEWEST_FIRST)
        if published_only:
            stmt = stmt.where(Post.published.is_(True))
        return await self._all(stmt)

    async def get_post(self, post_id: int) -> Optional[Post]:
        return await self._get(Post, post_id)

    async def create_post(self, data: Mapping[str, Any], author_id: int) -> Post:
        async with self._session() as session:
            post = Post(author_id=author_id, **post_values(data))
            session.add(post)
            await session.flush()
            session.add_all(
                PostTag(post_id=post.id, tag_id=tag_id) for tag_id in unique_ids(data.get("tag_ids"))
            )
            await session.flush()
            return post

    async def update_post(self, post_id: int, data: Mapping[str, Any]) -> Optional[Post]:
        async with self._session() as session:
            post = await session.get(Post, post_id)
            if post is None:
                return None
            for column, value in post_values(data).items():
                setattr(post, column, value)
            post.updated_at = utcnow()

            tag_ids = data.get("tag_ids")
            if tag_ids is not None:
                await session.execute(delete(PostTag).where(PostTag.post_id == post_id))
                session.add_all(PostTag(post_id=post_id, tag_id=tag_id) for tag_id in unique_ids(tag_ids))
            await session.flush()
            return post

    async def delete_post(self, post_id: int) -> bool:
        # Comments, post_tags and claps go with it through ON DELETE CASCADE.
        async with self._session() as session:
            result = await session.execute(delete(Post).where(Post.id == post_id))
            return result.rowcount > 0

    async def search_posts(self, query: str, published_only: bool = False) -> Sequence[Post]:
        needle = query.strip()
        if not needle:
            return []
        stmt = (
            select(Post)
            .where(
                or_(
                    Post.title.icontains(needle, autoescape=True),
                    Post.content.icontains(needle, autoescape=True),
                )
            )
            .order_by(*_NEWEST_FIRST)
        )
        if published_only:
            stmt = stmt.where(Post.published.is_(True))
        return await self._all(stmt)

    async def get_featured_posts(self, limit: int = FEATURED_LIMIT) -> Sequence[Post]:
        stmt = (
            select(Post)
            .where(Post.published.is_(True), Post.featured_at.is_not(None))
            .order_by(Post.featured_at.desc())
            .limit(limit)
        )
        return await self._all(stmt)

    async def list_user_posts(self, user_id: int, published_only: bool = True) -> Sequence[Post]:
        stmt = select(Post).where(Post.author_id == user_id).order_by(*_NEWEST_FIRST)
        if published_only:
            stmt = stmt.where(Post.published.is_(True))
        return await self._all(stmt)

    async def count_posts_with_cover(self, reference: str) -> int:
        async with self._session() as session:
            result = await session.execute(
                select(func.count()).select_from(Post).where(Post.cover_image_url == reference)
            )
            return int(result.scalar_one())

    # ── Comments ───────────────────────────────────────────────────────────
    async def get_post_comments(self, post_id: int) -> Sequence[Comment]:
        return await self._all(
            select(Comment)
            .where(Comment.post_id == post_id)
            .order_by(Comment.created_at, Comment.id)
        )

    async def get_comment(self, comment_id: int) -> Optional[Comment]:
        return await self._get(Comment, comment_id)

    async def create_comment(self, post_id: int, author_id: int, content: str) -> Comment:
        async with self._session() as session:
            comment = Comment(post_id=post_id, author_id=author_id, content=content)
            session.add(comment)
            await session.flush()
            return comment

    async def delete_comment(self, comment_id: int) -> bool:
        async with self._session() as session:
            result = await session.execute(delete(Comment).where(Comment.id == comment_id))
            return result.rowcount > 0

    # ── Categories & tags ──────────────────────────────────────────────────
    async def list_categories(self) -> Sequence[Category]:
        return await self._all(select(Category).order_by(Category.name))

    async def get_category(self, category_id: int) -> Optional[Category]:
        return await self._get(Category, category_id)

    async def create_category(self, name: str, description: Optional[str] = None) -> Category:
        async with self._session() as session:
            category = Category(name=name, description=description)
            session.add(category)
            await session.flush()
            return category

    async def list_tags(self) -> Sequence[Tag]:
        return await self._all(select(Tag).order_by(Tag.name))

    async def get_tag(self, tag_id: int) -> Optional[Tag]:
        return await self._get(Tag, tag_id)

    async def create_tag(self, name: str) -> Tag:
        async with self._session() as session:
            tag = Tag(name=name)
            session.add(tag)
            await session.flush()
            return tag

    async def get_post_tags(self, post_id: int) -> Sequence[Tag]:
        return await self._all(
            select(Tag)
            .join(PostTag, PostTag.tag_id == Tag.id)
            .where(PostTag.post_id == post_id)
            .order_by(Tag.name)
        )

    # ── Social graph ───────────────────────────────────────────────────────
    async def create_follow(self, follower_id: int, followee_id: int) -> bool:
        if follower_id == followee_id:
            raise ConstraintViolation("a user cannot follow itself")
        try:
            async with self._session() as session:
                if await session.get(Follow, (follower_id, followee_id)) is not None:
                    return False
                session.add(Follow(follower_id=follower_id, followee_id=followee_id))
                await session.flush()
                return True
        except ConstraintViolation:
            # A concurrent request may have inserted the same edge first.
            if await self._get(Follow, (follower_id, followee_id)) is not None:
                return False
            raise

    async def delete_follow(self, follower_id: int, followee_id: int) -> bool:
        async with self._session() as session:
            result = await session.execute(
                delete(Follow).where(
                    Follow.follower_id == follower_id,
                    Follow.followee_id == followee_id,
                )
            )
            return result.rowcount > 0

    async def list_followers(self, user_id: int) -> Sequence[User]:
        return await self._all(
            select(User)
            .join(Follow, Follow.follower_id == User.id)
            .where(Follow.followee_id == user_id)
            .order_by(User.id)
        )

    async def list_following(self, user_id: int) -> Sequence[User]:
        return await self._all(
            select(User)
            .join(Follow, Follow.followee_id == User.id)
            .where(Follow.follower_id == user_id)
            .order_by(User.id)
        )

    # ── Claps ──────────────────────────────────────────────────────────────
    def _clap_upsert(self, dialect: str, user_id: int, post_id: int, count: int):
        """One INSERT … ON CONFLICT/DUPLICATE KEY statement that adds to the stored count."""
        table = Clap.__table__
        now = utcnow()
        values = {"user_id": user_id, "post_id": post_id, "count": count, "updated_at": now}

        if dialect == "mysql":
            stmt = mysql_insert(table).values(**values)
            return stmt.on_duplicate_key_update(
                {"count": table.c["count"] + stmt.inserted["count"], "updated_at": now}
            )

        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = insert(table).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=[table.c["user_id"], table.c["post_id"]],
            set_={"count": table.c["count"] + stmt.excluded["count"], "updated_at": now},
        )

    async def create_or_update_clap(self, user_id: int, post_id: int, count: int = 1) -> Clap:
        if count < 1:
            raise ConstraintViolation("clap count must be at least 1")
        async with self._session() as session:
            dialect = session.get_bind().dialect.name
            await session.execute(self._clap_upsert(dialect, user_id, post_id, count))
            result = await session.execute(
                select(Clap)
                .where(Clap.user_id == user_id, Clap.post_id == post_id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one()

    async def get_clap_total(self, post_id: int) -> int:
        async with self._session() as session:
            result = await session.execute(
                select(func.coalesce(func.sum(Clap.count), 0)).where(Clap.post_id == post_id)
            )
            return int(result.scalar_one())
