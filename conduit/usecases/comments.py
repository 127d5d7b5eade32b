"""Comment use cases.  Listing is public; adding and deleting need a token."""
from sqlalchemy.ext.asyncio import AsyncSession

from conduit import schemas
from conduit.auth import AuthToken
from conduit.services import article_service, comment_service
from conduit.services.comment_service import CommentRecord


def comment_from_record(record: CommentRecord) -> schemas.Comment:
    return schemas.Comment(
        id=record.comment_id,
        created_at=record.created_at,
        updated_at=record.updated_at,
        body=record.body,
        author=schemas.Profile(
            username=record.author_username,
            bio=record.author_bio,
            image=record.author_image,
            following=record.following_author,
        ),
    )


async def list_comments(
    db: AsyncSession, auth: AuthToken, authorization: str | None, slug: str
) -> list[schemas.Comment]:
    current_user_id = auth.authenticate_optional(authorization)
    article_id = await article_service.fetch_article_id(db, slug)
    records = await comment_service.list_comments(db, current_user_id, article_id)
    return [comment_from_record(r) for r in records]


async def add_comment(
    db: AsyncSession,
    auth: AuthToken,
    authorization: str | None,
    slug: str,
    comment: schemas.CommentCreate,
) -> schemas.Comment:
    current_user_id = auth.authenticate(authorization)
    record = await comment_service.insert_comment(db, current_user_id, slug, comment.body)
    return comment_from_record(record)


async def delete_comment(
    db: AsyncSession,
    auth: AuthToken,
    authorization: str | None,
    slug: str,
    comment_id: int,
) -> None:
    current_user_id = auth.authenticate(authorization)
    await comment_service.delete_comment(db, current_user_id, slug, comment_id)
