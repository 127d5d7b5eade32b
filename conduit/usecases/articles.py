"""
Article use cases.

Reading is open to anonymous callers (the token only personalises the
``favorited`` and ``following`` flags).  Writing requires a valid token,
and update/delete additionally require the caller to be the author; that
check happens inside the repository under a row lock.
"""
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from conduit import schemas
from conduit.auth import AuthToken
from conduit.config import settings
from conduit.errors import ArticleNotFound
from conduit.services import article_service
from conduit.services.article_service import ArticleFilter, ArticleRecord, slugify
from conduit.services.util import single, single_or_none


def article_from_record(record: ArticleRecord) -> schemas.Article:
    return schemas.Article(
        slug=record.slug,
        title=record.title,
        description=record.description,
        body=record.body,
        tag_list=record.tag_list,
        created_at=record.created_at,
        updated_at=record.updated_at,
        favorited=record.favorited,
        favorites_count=record.favorites_count,
        author=schemas.Profile(
            username=record.author_username,
            bio=record.author_bio,
            image=record.author_image,
            following=record.following_author,
        ),
    )


async def _single_article(
    db: AsyncSession, current_user_id: uuid.UUID, slug: str
) -> schemas.Article:
    records = await article_service.select_articles(db, current_user_id, ArticleFilter(slug=slug))
    return article_from_record(single(records, ArticleNotFound()))


async def list_articles(
    db: AsyncSession,
    auth: AuthToken,
    authorization: str | None,
    tag: str | None = None,
    author: str | None = None,
    favorited: str | None = None,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> list[schemas.Article]:
    current_user_id = auth.authenticate_optional(authorization)
    records = await article_service.select_articles(
        db,
        current_user_id,
        ArticleFilter(
            tag=tag,
            author=author,
            favorited_by=favorited,
            limit=limit,
            offset=offset,
        ),
    )
    return [article_from_record(r) for r in records]


async def feed_articles(
    db: AsyncSession,
    auth: AuthToken,
    authorization: str | None,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> list[schemas.Article]:
    """Articles written by the users the caller follows, newest first."""
    current_user_id = auth.authenticate(authorization)
    records = await article_service.select_articles(
        db,
        current_user_id,
        ArticleFilter(followed_by=current_user_id, limit=limit, offset=offset),
    )
    return [article_from_record(r) for r in records]


async def fetch_article(
    db: AsyncSession, auth: AuthToken, authorization: str | None, slug: str
) -> schemas.Article:
    current_user_id = auth.authenticate_optional(authorization)
    records = await article_service.select_articles(db, current_user_id, ArticleFilter(slug=slug))
    record = single_or_none(records)
    if record is None:
        raise ArticleNotFound()
    return article_from_record(record)


async def create_article(
    db: AsyncSession,
    auth: AuthToken,
    authorization: str | None,
    article: schemas.ArticleCreate,
) -> schemas.Article:
    current_user_id = auth.authenticate(authorization)
    record = await article_service.insert_article(
        db,
        current_user_id,
        slugify(article.title),
        article.title,
        article.description,
        article.body,
        article.tag_list,
    )
    return article_from_record(record)


async def update_article(
    db: AsyncSession,
    auth: AuthToken,
    authorization: str | None,
    slug: str,
    changes: schemas.ArticleUpdate,
) -> schemas.Article:
    """Update an article; a new title also moves it to a new slug."""
    current_user_id = auth.authenticate(authorization)
    new_slug = slugify(changes.title) if changes.title is not None else None

    await article_service.update_article(
        db,
        current_user_id,
        slug,
        article_service.ArticleUpdate(
            slug=new_slug,
            title=changes.title,
            description=changes.description,
            body=changes.body,
        ),
    )
    return await _single_article(db, current_user_id, new_slug or slug)


async def delete_article(
    db: AsyncSession, auth: AuthToken, authorization: str | None, slug: str
) -> None:
    current_user_id = auth.authenticate(authorization)
    await article_service.delete_article(db, current_user_id, slug)


async def favorite_article(
    db: AsyncSession, auth: AuthToken, authorization: str | None, slug: str
) -> schemas.Article:
    current_user_id = auth.authenticate(authorization)
    await article_service.insert_favorite(db, current_user_id, slug)
    return await _single_article(db, current_user_id, slug)


async def unfavorite_article(
    db: AsyncSession, auth: AuthToken, authorization: str | None, slug: str
) -> schemas.Article:
    current_user_id = auth.authenticate(authorization)
    await article_service.delete_favorite(db, current_user_id, slug)
    return await _single_article(db, current_user_id, slug)


async def list_tags(db: AsyncSession) -> list[str]:
    return await article_service.list_tags(db)
