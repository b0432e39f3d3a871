"""
Persistence interface.

Every operation is an independent unit of work. Missing rows are reported
through the return value (None / False) so the API layer can choose the HTTP
status; constraint failures raise ConstraintViolation.
"""
import math
import re
from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping, Optional, Sequence

from inkwell.models import Category, Clap, Comment, Post, Tag, User

WORDS_PER_MINUTE = 200
EXCERPT_LENGTH = 200
FEATURED_LIMIT = 10

# Columns replaced wholesale by update_post.
POST_COLUMNS = (
    "title",
    "subtitle",
    "content",
    "cover_image_url",
    "excerpt",
    "published",
    "category_id",
)

PROFILE_COLUMNS = (
    "username",
    "name",
    "bio",
    "avatar_url",
    "twitter_handle",
    "github_handle",
    "website_url",
)

_WHITESPACE = re.compile(r"\s+")


def reading_time(content: str) -> int:
    """Estimated minutes to read, ceil(word_count / 200)."""
    return math.ceil(len(content.split()) / WORDS_PER_MINUTE)


def derive_excerpt(content: str, length: int = EXCERPT_LENGTH) -> str:
    text = _WHITESPACE.sub(" ", content).strip()
    if len(text) <= length:
        return text
    return text[:length].rstrip() + "…"


def post_values(data: Mapping[str, Any]) -> dict[str, Any]:
    """Column values for a post insert or full-replace update."""
    values = {column: data.get(column) for column in POST_COLUMNS}
    values["published"] = bool(values["published"])
    if not values["excerpt"]:
        values["excerpt"] = derive_excerpt(values["content"])
    values["reading_time"] = reading_time(values["content"])
    if "featured_at" in data:
        values["featured_at"] = data["featured_at"]
    return values


def unique_ids(ids: Optional[Iterable[int]]) -> list[int]:
    return list(dict.fromkeys(ids or ()))


class Storage(ABC):
    # ── Users ──────────────────────────────────────────────────────────────
    @abstractmethod
    async def create_user(
        self,
        email: str,
        password_hash: str,
        username: Optional[str] = None,
        name: Optional[str] = None,
    ) -> User: ...

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    async def update_user(self, user_id: int, data: Mapping[str, Any]) -> Optional[User]:
        """Partial profile update; only PROFILE_COLUMNS present in data change."""

    # ── Posts ──────────────────────────────────────────────────────────────
    @abstractmethod
    async def list_posts(self, published_only: bool = True) -> Sequence[Post]: ...

    @abstractmethod
    async def get_post(self, post_id: int) -> Optional[Post]: ...

    @abstractmethod
    async def create_post(self, data: Mapping[str, Any], author_id: int) -> Post:
        """Insert a post and one post_tags row per id in data["tag_ids"]."""

    @abstractmethod
    async def update_post(self, post_id: int, data: Mapping[str, Any]) -> Optional[Post]:
        """
        Replace the editable columns of a post.

        When data["tag_ids"] is not None the post's tag set is replaced by it.
        featured_at only changes when the key is present.
        """

    @abstractmethod
    async def delete_post(self, post_id: int) -> bool: ...

    @abstractmethod
    async def search_posts(self, query: str, published_only: bool = False) -> Sequence[Post]:
        """Case-insensitive substring match on title or content; [] for a blank query."""

    @abstractmethod
    async def get_featured_posts(self, limit: int = FEATURED_LIMIT) -> Sequence[Post]: ...

    @abstractmethod
    async def list_user_posts(self, user_id: int, published_only: bool = True) -> Sequence[Post]: ...

    @abstractmethod
    async def count_posts_with_cover(self, reference: str) -> int:
        """Number of posts whose cover_image_url is reference."""

    # ── Comments ───────────────────────────────────────────────────────────
    @abstractmethod
    async def get_post_comments(self, post_id: int) -> Sequence[Comment]: ...

    @abstractmethod
    async def get_comment(self, comment_id: int) -> Optional[Comment]: ...

    @abstractmethod
    async def create_comment(self, post_id: int, author_id: int, content: str) -> Comment: ...

    @abstractmethod
    async def delete_comment(self, comment_id: int) -> bool: ...

    # ── Categories & tags ──────────────────────────────────────────────────
    @abstractmethod
    async def list_categories(self) -> Sequence[Category]: ...

    @abstractmethod
    async def get_category(self, category_id: int) -> Optional[Category]: ...

    @abstractmethod
    async def create_category(self, name: str, description: Optional[str] = None) -> Category: ...

    @abstractmethod
    async def list_tags(self) -> Sequence[Tag]: ...

    @abstractmethod
    async def get_tag(self, tag_id: int) -> Optional[Tag]: ...

    @abstractmethod
    async def create_tag(self, name: str) -> Tag: ...

    @abstractmethod
    async def get_post_tags(self, post_id: int) -> Sequence[Tag]: ...

    # ── Social graph ───────────────────────────────────────────────────────
    @abstractmethod
    async def create_follow(self, follower_id: int, followee_id: int) -> bool:
        """Insert the edge; False when it already existed."""

    @abstractmethod
    async def delete_follow(self, follower_id: int, followee_id: int) -> bool: ...

    @abstractmethod
    async def list_followers(self, user_id: int) -> Sequence[User]: ...

    @abstractmethod
    async def list_following(self, user_id: int) -> Sequence[User]: ...

    # ── Claps ──────────────────────────────────────────────────────────────
    @abstractmethod
    async def create_or_update_clap(self, user_id: int, post_id: int, count: int = 1) -> Clap:
        """Atomically add count to the (user, post) clap row, creating it if absent."""

    @abstractmethod
    async def get_clap_total(self, post_id: int) -> int: ...

    async def close(self) -> None:
        """Release backend resources."""
