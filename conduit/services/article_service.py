"""
Article service: business logic for the Article aggregate.

Design notes
------------
- ``select_articles`` is the single read path.  Every filter is an
  optional, independent predicate and they are AND-combined; the caller's
  identity only drives the per-row ``favorited`` / ``following_author``
  flags and never filters anything by itself.
- Favorite counts and the per-caller flags are correlated subqueries, so
  one statement returns a complete page.  Tags are fetched with
  ``selectinload`` (one extra query per page, never per row).
- ``update_article`` and ``delete_article`` lock the target row with
  ``SELECT ... FOR UPDATE`` before the ownership check, so a concurrent
  update/delete of the same slug cannot slip in between check and write.
- Favorites are idempotent edges written with ``ON CONFLICT DO NOTHING``;
  they need no lock.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import logging
import re
import string
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, exists, false, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from conduit.config import settings
from conduit.database import constraint_violated, insert_ignore
from conduit.errors import ArticleNotFound, DuplicateSlug, Forbidden
from conduit.models import Article, ArticleFavorite, Follow, Tag, User
from conduit.services.user_service import following_expr

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# Anything that is not a letter or digit separates words, quote marks included.
_SLUG_SPLIT_RE = re.compile(r"[\W_]+")
_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)


def slugify(title: str) -> str:
    """Return the lowercase, hyphen-joined slug for *title*."""
    return "-".join(
        word.translate(_ASCII_LOWER) for word in _SLUG_SPLIT_RE.split(title) if word
    )


@dataclass(frozen=True)
class ArticleRecord:
    slug: str
    title: str
    description: str
    body: str
    tag_list: list[str]
    created_at: datetime
    updated_at: datetime
    favorited: bool
    favorites_count: int
    author_username: str
    author_bio: str
    author_image: str | None
    following_author: bool


@dataclass(frozen=True)
class ArticleFilter:
    slug: str | None = None
    tag: str | None = None
    author: str | None = None
    favorited_by: str | None = None
    followed_by: uuid.UUID | None = None
    limit: int = settings.DEFAULT_PAGE_SIZE
    offset: int = 0


@dataclass(frozen=True)
class ArticleUpdate:
    """Partial update; ``None`` leaves the stored value unchanged."""

    slug: str | None = None
    title: str | None = None
    description: str | None = None
    body: str | None = None


def _favorited_expr(current_user_id: uuid.UUID | None):
    if current_user_id is None:
        return false()
    return exists().where(
        ArticleFavorite.article_id == Article.id,
        ArticleFavorite.user_id == current_user_id,
    )


def _favorites_count_expr():
    return (
        select(func.count())
        .select_from(ArticleFavorite)
        .where(ArticleFavorite.article_id == Article.id)
        .correlate(Article)
        .scalar_subquery()
    )


def _to_record(row) -> ArticleRecord:
    article, author, favorited, favorites_count, following_author = row
    return ArticleRecord(
        slug=article.slug,
        title=article.title,
        description=article.description,
        body=article.body,
        tag_list=sorted(t.name for t in article.tags),
        created_at=article.created_at,
        updated_at=article.updated_at,
        favorited=bool(favorited),
        favorites_count=int(favorites_count or 0),
        author_username=author.username,
        author_bio=author.bio,
        author_image=author.image,
        following_author=bool(following_author),
    )


async def _resolve_tags(db: AsyncSession, tag_names: list[str]) -> list[Tag]:
    """
    Return Tag rows for each name in *tag_names*, creating missing ones.
    Concurrent creation of the same tag is absorbed by ON CONFLICT.
    """
    names = list(dict.fromkeys(tag_names))
    if not names:
        return []
    await db.execute(insert_ignore(db, Tag).values([{"name": name} for name in names]))
    result = await db.execute(select(Tag).where(Tag.name.in_(names)))
    return list(result.scalars().all())


async def _lock_article(db: AsyncSession, slug: str):
    """Lock the row for *slug* until the transaction ends; return (id, user_id)."""
    q = select(Article.id, Article.user_id).where(Article.slug == slug).with_for_update()
    row = (await db.execute(q)).one_or_none()
    if row is None:
        raise ArticleNotFound()
    return row


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def select_articles(
    db: AsyncSession,
    current_user_id: uuid.UUID | None,
    filter: ArticleFilter,
) -> list[ArticleRecord]:
    """Return articles matching *filter*, newest first."""
    q = (
        select(
            Article,
            User,
            _favorited_expr(current_user_id).label("favorited"),
            _favorites_count_expr().label("favorites_count"),
            following_expr(current_user_id, Article.user_id).label("following_author"),
        )
        .join(User, User.id == Article.user_id)
        .options(selectinload(Article.tags))
        .execution_options(populate_existing=True)
    )

    if filter.slug is not None:
        q = q.where(Article.slug == filter.slug)
    if filter.tag is not None:
        q = q.where(Article.tags.any(Tag.name == filter.tag))
    if filter.author is not None:
        q = q.where(User.username == filter.author)
    if filter.favorited_by is not None:
        fan = aliased(User)
        q = q.where(
            exists().where(
                ArticleFavorite.article_id == Article.id,
                ArticleFavorite.user_id == fan.id,
                fan.username == filter.favorited_by,
            )
        )
    if filter.followed_by is not None:
        q = q.where(
            exists().where(
                Follow.follower_id == filter.followed_by,
                Follow.followed_id == Article.user_id,
            )
        )

    q = q.order_by(Article.created_at.desc()).limit(filter.limit).offset(filter.offset)
    result = await db.execute(q)
    return [_to_record(row) for row in result.all()]


async def fetch_article_id(db: AsyncSession, slug: str) -> uuid.UUID:
    result = await db.execute(select(Article.id).where(Article.slug == slug))
    article_id = result.scalar_one_or_none()
    if article_id is None:
        raise ArticleNotFound()
    return article_id


async def insert_article(
    db: AsyncSession,
    author_id: uuid.UUID,
    slug: str,
    title: str,
    description: str,
    body: str,
    tag_list: list[str],
) -> ArticleRecord:
    """
    Create an article and return it as seen by its author.

    Raises ``DuplicateSlug`` when another article already owns *slug*.
    """
    article = Article(
        user_id=author_id,
        slug=slug,
        title=title,
        description=description,
        body=body,
    )
    article.tags = await _resolve_tags(db, tag_list)
    db.add(article)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        if constraint_violated(exc, "uq_articles_slug", "articles.slug"):
            logger.info("Article insert rejected: duplicate slug %r", slug)
            raise DuplicateSlug(slug) from exc
        raise

    records = await select_articles(db, author_id, ArticleFilter(slug=slug, limit=1))
    return records[0]


async def update_article(
    db: AsyncSession, author_id: uuid.UUID, slug: str, changes: ArticleUpdate
) -> None:
    """
    Apply the non-None fields of *changes* to the article at *slug*.

    The row stays locked from the ownership check until the transaction
    ends.  Raises ``ArticleNotFound``, ``Forbidden`` (not the author) or
    ``DuplicateSlug`` (new slug already taken).
    """
    article_id, owner_id = await _lock_article(db, slug)
    if owner_id != author_id:
        raise Forbidden()

    values = {
        field: getattr(changes, field)
        for field in ("slug", "title", "description", "body")
        if getattr(changes, field) is not None
    }
    if not values:
        return

    try:
        await db.execute(update(Article).where(Article.id == article_id).values(**values))
    except IntegrityError as exc:
        await db.rollback()
        if constraint_violated(exc, "uq_articles_slug", "articles.slug"):
            raise DuplicateSlug(values["slug"]) from exc
        raise


async def delete_article(db: AsyncSession, author_id: uuid.UUID, slug: str) -> None:
    """
    Delete the article at *slug*.  Raises ``ArticleNotFound`` when it never
    existed and ``Forbidden`` when it belongs to someone else.  Favorites,
    tag links and comments go with it (ON DELETE CASCADE).
    """
    article_id, owner_id = await _lock_article(db, slug)
    if owner_id != author_id:
        raise Forbidden()
    await db.execute(delete(Article).where(Article.id == article_id))


async def insert_favorite(db: AsyncSession, user_id: uuid.UUID, slug: str) -> None:
    """Favorite the article at *slug*; favoriting twice is a no-op."""
    article_id = await fetch_article_id(db, slug)
    await db.execute(
        insert_ignore(db, ArticleFavorite).values(article_id=article_id, user_id=user_id)
    )


async def delete_favorite(db: AsyncSession, user_id: uuid.UUID, slug: str) -> None:
    """Unfavorite the article at *slug*; a missing favorite is a no-op."""
    article_id = await fetch_article_id(db, slug)
    await db.execute(
        delete(ArticleFavorite).where(
            ArticleFavorite.article_id == article_id,
            ArticleFavorite.user_id == user_id,
        )
    )


async def list_tags(db: AsyncSession) -> list[str]:
    result = await db.execute(select(Tag.name).order_by(Tag.name))
    return list(result.scalars().all())
