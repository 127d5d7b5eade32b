"""Registration, login and the current user's account."""
from sqlalchemy.ext.asyncio import AsyncSession

from conduit import schemas
from conduit.auth import AuthToken
from conduit.errors import CurrentUserNotFound, EmailNotFound
from conduit.services import password_service, user_service
from conduit.services.user_service import Credentials, UserRecord


def _sign(auth: AuthToken, user: UserRecord, credentials: Credentials) -> schemas.SignedUser:
    return schemas.SignedUser(
        email=credentials.email,
        token=auth.issue(user.user_id),
        username=user.username,
        bio=user.bio,
        image=user.image,
    )


async def register(
    db: AsyncSession, auth: AuthToken, new_user: schemas.NewUser
) -> schemas.SignedUser:
    password_hash = await password_service.hash_password(new_user.password)
    user, credentials = await user_service.insert_user(
        db, new_user.username, new_user.email, password_hash
    )
    return _sign(auth, user, credentials)


async def login(
    db: AsyncSession, auth: AuthToken, login_user: schemas.LoginUser
) -> schemas.SignedUser:
    found = await user_service.find_user_by_email(db, login_user.email)
    if found is None:
        raise EmailNotFound()
    user, credentials = found
    await password_service.verify_password(login_user.password, credentials.password_hash)
    return _sign(auth, user, credentials)


async def fetch_current(
    db: AsyncSession, auth: AuthToken, authorization: str | None
) -> schemas.SignedUser:
    user_id = auth.authenticate(authorization)
    found = await user_service.find_user_by_id(db, user_id)
    if found is None:
        raise CurrentUserNotFound()
    return _sign(auth, *found)


async def update_current(
    db: AsyncSession,
    auth: AuthToken,
    authorization: str | None,
    changes: schemas.UserUpdate,
) -> schemas.SignedUser:
    """Update the caller's account; a new password is re-hashed first."""
    user_id = auth.authenticate(authorization)
    password_hash = None
    if changes.password is not None:
        password_hash = await password_service.hash_password(changes.password)

    user, credentials = await user_service.update_user(
        db,
        user_id,
        user_service.UserUpdate(
            username=changes.username,
            email=changes.email,
            password_hash=password_hash,
            bio=changes.bio,
            image=changes.image,
        ),
    )
    return _sign(auth, user, credentials)
