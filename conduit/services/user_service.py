"""
User service: the user directory and the follow graph.

Profile fields (``UserRecord``) and login material (``Credentials``)
live in one table but are handed out separately, so rotating a password
never touches code that renders profiles.

Uniqueness of username and email is enforced by the database; the
``IntegrityError`` it raises is interpreted here and turned into
``UsernameTaken`` / ``EmailTaken`` before it can leave the service.
Follow edges are written with ``INSERT ... ON CONFLICT DO NOTHING`` so
following twice is a no-op rather than a conflict.
"""
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import delete, exists, false, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import constraint_violated, insert_ignore
from conduit.errors import (
    ConduitError,
    CurrentUserNotFound,
    EmailTaken,
    Forbidden,
    ProfileNotFound,
    UsernameTaken,
)
from conduit.models import Follow, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserRecord:
    user_id: uuid.UUID
    username: str
    bio: str
    image: str | None


@dataclass(frozen=True)
class Credentials:
    email: str
    password_hash: str


@dataclass(frozen=True)
class UserUpdate:
    """Partial update; ``None`` leaves the stored value unchanged."""

    username: str | None = None
    email: str | None = None
    password_hash: str | None = None
    bio: str | None = None
    image: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def following_expr(current_user_id: uuid.UUID | None, followed_id_col):
    """
    SQL boolean: does *current_user_id* follow the user in *followed_id_col*?

    Always false for anonymous callers.
    """
    if current_user_id is None:
        return false()
    return exists().where(
        Follow.follower_id == current_user_id,
        Follow.followed_id == followed_id_col,
    )


def _split(user: User) -> tuple[UserRecord, Credentials]:
    return (
        UserRecord(user_id=user.id, username=user.username, bio=user.bio, image=user.image),
        Credentials(email=user.email, password_hash=user.password_hash),
    )


def _user_conflict(exc: IntegrityError) -> ConduitError | None:
    if constraint_violated(exc, "uq_users_username", "users.username"):
        return UsernameTaken()
    if constraint_violated(exc, "uq_users_email", "users.email"):
        return EmailTaken()
    return None


async def _flush_user(db: AsyncSession) -> None:
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        mapped = _user_conflict(exc)
        if mapped is None:
            raise
        logger.info("User write rejected: %s", mapped.message)
        raise mapped from exc


async def _find_user_id(db: AsyncSession, username: str) -> uuid.UUID:
    result = await db.execute(select(User.id).where(User.username == username))
    user_id = result.scalar_one_or_none()
    if user_id is None:
        raise ProfileNotFound()
    return user_id


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def insert_user(
    db: AsyncSession, username: str, email: str, password_hash: str
) -> tuple[UserRecord, Credentials]:
    """
    Create a user and return its profile and credentials.

    Raises ``UsernameTaken`` or ``EmailTaken`` when the corresponding
    unique constraint fires; the session's transaction is rolled back in
    that case.
    """
    user = User(username=username, email=email, password_hash=password_hash, bio="")
    db.add(user)
    await _flush_user(db)
    return _split(user)


async def find_user_by_id(
    db: AsyncSession, user_id: uuid.UUID
) -> tuple[UserRecord, Credentials] | None:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    return _split(user) if user is not None else None


async def find_user_by_email(
    db: AsyncSession, email: str
) -> tuple[UserRecord, Credentials] | None:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    return _split(user) if user is not None else None


async def find_user_by_username(
    db: AsyncSession, current_user_id: uuid.UUID | None, username: str
) -> tuple[UserRecord, bool] | None:
    """
    Return the profile for *username* and whether *current_user_id*
    follows it, or None when no such user exists.
    """
    q = select(
        User,
        following_expr(current_user_id, User.id).label("following"),
    ).where(User.username == username)
    row = (await db.execute(q)).one_or_none()
    if row is None:
        return None
    user, following = row
    profile, _ = _split(user)
    return profile, bool(following)


async def update_user(
    db: AsyncSession, user_id: uuid.UUID, update: UserUpdate
) -> tuple[UserRecord, Credentials]:
    """
    Apply the non-None fields of *update* to the user and return the
    resulting profile and credentials.
    """
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise CurrentUserNotFound()

    for field in ("username", "email", "password_hash", "bio", "image"):
        value = getattr(update, field)
        if value is not None:
            setattr(user, field, value)

    await _flush_user(db)
    return _split(user)


async def insert_follow(
    db: AsyncSession, follower_id: uuid.UUID, followee_username: str
) -> None:
    """
    Make *follower_id* follow *followee_username*.

    Idempotent.  Raises ``ProfileNotFound`` for an unknown username and
    ``Forbidden`` when a user tries to follow themselves.
    """
    followed_id = await _find_user_id(db, followee_username)
    if followed_id == follower_id:
        raise Forbidden("users cannot follow themselves")

    await db.execute(
        insert_ignore(db, Follow).values(follower_id=follower_id, followed_id=followed_id)
    )


async def delete_follow(
    db: AsyncSession, follower_id: uuid.UUID, followee_username: str
) -> None:
    """
    Remove the follow edge, if any.  Unfollowing a user that was not
    followed succeeds; an unknown username raises ``ProfileNotFound``.
    """
    followed_id = await _find_user_id(db, followee_username)
    await db.execute(
        delete(Follow).where(
            Follow.follower_id == follower_id,
            Follow.followed_id == followed_id,
        )
    )
