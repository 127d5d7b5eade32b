from fastapi import Depends, Header, Query

from conduit.auth import AuthToken, Clock, SigningKeyProvider, StaticSigningKey, SystemClock
from conduit.config import settings


class PaginationParams:
    """
    Reusable FastAPI dependency that parses and validates the
    ``limit`` / ``offset`` query parameters of article listings.

    Usage in a router::

        @router.get("/articles")
        async def list_articles(pagination: PaginationParams = Depends()):
            ...

    Attributes
    ----------
    limit:
        Maximum number of articles returned, clamped to
        ``settings.MAX_PAGE_SIZE`` regardless of the value supplied.
    offset:
        Number of articles to skip (newest first).
    """

    def __init__(
        self,
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            description="Number of articles returned.",
        ),
        offset: int = Query(
            0,
            ge=0,
            description="Number of articles skipped.",
        ),
    ) -> None:
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.offset = offset


def get_clock() -> Clock:
    return SystemClock()


def get_signing_keys() -> SigningKeyProvider:
    return StaticSigningKey(settings.JWT_SIGNING_KEY)


def get_auth(
    clock: Clock = Depends(get_clock),
    keys: SigningKeyProvider = Depends(get_signing_keys),
) -> AuthToken:
    """Build the token capability from the injected clock and key."""
    return AuthToken(clock, keys)


def get_authorization(authorization: str | None = Header(default=None)) -> str | None:
    """Raw ``Authorization`` header; verification is left to the use case."""
    return authorization
