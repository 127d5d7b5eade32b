"""
Comment service: comments scoped to an article.

Comments are addressed by (article slug, comment id).  Deleting checks
both: a comment id that exists under a different article is reported as
not found, never deleted.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.errors import ArticleNotFound, CurrentUserNotFound, Forbidden
from conduit.models import Article, Comment, User
from conduit.services.article_service import fetch_article_id
from conduit.services.user_service import following_expr


@dataclass(frozen=True)
class CommentRecord:
    comment_id: int
    body: str
    created_at: datetime
    updated_at: datetime
    author_username: str
    author_bio: str
    author_image: str | None
    following_author: bool


def _to_record(comment: Comment, author: User, following_author) -> CommentRecord:
    return CommentRecord(
        comment_id=comment.id,
        body=comment.body,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        author_username=author.username,
        author_bio=author.bio,
        author_image=author.image,
        following_author=bool(following_author),
    )


async def list_comments(
    db: AsyncSession, current_user_id: uuid.UUID | None, article_id: uuid.UUID
) -> list[CommentRecord]:
    """Return the article's comments, oldest first."""
    q = (
        select(
            Comment,
            User,
            following_expr(current_user_id, Comment.user_id).label("following_author"),
        )
        .join(User, User.id == Comment.user_id)
        .where(Comment.article_id == article_id)
        .order_by(Comment.created_at, Comment.id)
    )
    result = await db.execute(q)
    return [_to_record(*row) for row in result.all()]


async def insert_comment(
    db: AsyncSession, author_id: uuid.UUID, slug: str, body: str
) -> CommentRecord:
    """
    Add a comment to the article at *slug*.  Raises ``ArticleNotFound``
    when the slug does not resolve and ``CurrentUserNotFound`` when the
    author no longer exists.
    """
    article_id = await fetch_article_id(db, slug)
    author = (await db.execute(select(User).where(User.id == author_id))).scalar_one_or_none()
    if author is None:
        raise CurrentUserNotFound()

    comment = Comment(article_id=article_id, user_id=author_id, body=body)
    db.add(comment)
    await db.flush()

    # Users cannot follow themselves, so the author never "follows" the author.
    return _to_record(comment, author, False)


async def delete_comment(
    db: AsyncSession, author_id: uuid.UUID, slug: str, comment_id: int
) -> None:
    """
    Delete comment *comment_id* under the article at *slug*.

    Raises ``ArticleNotFound`` when that comment/article pair does not
    exist and ``Forbidden`` when the comment belongs to another user.
    """
    q = (
        select(Comment.user_id)
        .join(Article, Article.id == Comment.article_id)
        .where(Comment.id == comment_id, Article.slug == slug)
        .with_for_update(of=Comment)
    )
    owner_id = (await db.execute(q)).scalar_one_or_none()
    if owner_id is None:
        raise ArticleNotFound()
    if owner_id != author_id:
        raise Forbidden()
    await db.execute(delete(Comment).where(Comment.id == comment_id))
