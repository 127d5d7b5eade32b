"""Public profiles and the follow relation."""
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from conduit import schemas
from conduit.auth import AuthToken
from conduit.errors import ProfileNotFound
from conduit.services import user_service


async def _profile(
    db: AsyncSession, current_user_id: uuid.UUID | None, username: str
) -> schemas.Profile:
    found = await user_service.find_user_by_username(db, current_user_id, username)
    if found is None:
        raise ProfileNotFound()
    user, following = found
    return schemas.Profile(
        username=user.username,
        bio=user.bio,
        image=user.image,
        following=following,
    )


async def fetch_profile(
    db: AsyncSession, auth: AuthToken, authorization: str | None, username: str
) -> schemas.Profile:
    current_user_id = auth.authenticate_optional(authorization)
    return await _profile(db, current_user_id, username)


async def follow(
    db: AsyncSession, auth: AuthToken, authorization: str | None, username: str
) -> schemas.Profile:
    current_user_id = auth.authenticate(authorization)
    await user_service.insert_follow(db, current_user_id, username)
    return await _profile(db, current_user_id, username)


async def unfollow(
    db: AsyncSession, auth: AuthToken, authorization: str | None, username: str
) -> schemas.Profile:
    current_user_id = auth.authenticate(authorization)
    await user_service.delete_follow(db, current_user_id, username)
    return await _profile(db, current_user_id, username)
