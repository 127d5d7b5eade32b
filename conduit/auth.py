"""
Bearer token issuance and verification.

Tokens are HS384-signed JWTs carrying ``{"user_id": <uuid>, "exp":
<unix seconds>}``.  The current time and the signing key are never read
from process state here: they come from the ``Clock`` and
``SigningKeyProvider`` collaborators, which lets tests freeze time and
reproduce tokens byte for byte.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Protocol

from jose import JWTError, jwt

from conduit.errors import Unauthorized

logger = logging.getLogger(__name__)

ALGORITHM = "HS384"
SESSION_LENGTH = timedelta(weeks=2)
TOKEN_SCHEME = "Token"


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

class Clock(Protocol):
    def now(self) -> datetime: ...


class SigningKeyProvider(Protocol):
    def signing_key(self) -> str: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, delta: timedelta) -> None:
        self._now += delta


class StaticSigningKey:
    def __init__(self, key: str) -> None:
        if not key:
            raise ValueError("signing key must not be empty")
        self._key = key

    def signing_key(self) -> str:
        return self._key


# ---------------------------------------------------------------------------
# Token primitives
# ---------------------------------------------------------------------------

def _unix_seconds(moment: datetime) -> int:
    return int(moment.timestamp())


def issue_token(user_id: uuid.UUID, now: datetime, signing_key: str) -> str:
    """Sign *user_id* into a token that expires two weeks after *now*."""
    claims = {
        "user_id": str(user_id),
        "exp": _unix_seconds(now + SESSION_LENGTH),
    }
    return jwt.encode(claims, signing_key, algorithm=ALGORITHM)


def verify_token(token: str, now: datetime, signing_key: str) -> uuid.UUID:
    """
    Return the user id signed into *token*.

    Raises ``Unauthorized`` when the token does not parse, the signature
    does not match, the claims are malformed, or ``exp`` lies before
    *now*.  Expiry is checked against the injected time, so the library's
    own wall-clock check is disabled.
    """
    try:
        claims = jwt.decode(
            token,
            signing_key,
            algorithms=[ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError as exc:
        logger.debug("Rejected bearer token: %s", exc)
        raise Unauthorized() from exc

    exp = claims.get("exp")
    if not isinstance(exp, int) or exp < _unix_seconds(now):
        logger.debug("Rejected bearer token: expired or missing exp")
        raise Unauthorized()

    user_id = claims.get("user_id")
    if not isinstance(user_id, str):
        raise Unauthorized()
    try:
        return uuid.UUID(user_id)
    except ValueError as exc:
        raise Unauthorized() from exc


def strip_token_prefix(header: str) -> str:
    """Return the JWT from an ``Authorization: Token <jwt>`` header value."""
    scheme, _, token = header.partition(" ")
    if scheme != TOKEN_SCHEME or not token.strip():
        raise Unauthorized()
    return token.strip()


# ---------------------------------------------------------------------------
# AuthToken: the capability handed to use cases
# ---------------------------------------------------------------------------

class AuthToken:
    """Issues and checks bearer tokens using an injected clock and key."""

    def __init__(self, clock: Clock, keys: SigningKeyProvider) -> None:
        self.clock = clock
        self.keys = keys

    def issue(self, user_id: uuid.UUID) -> str:
        return issue_token(user_id, self.clock.now(), self.keys.signing_key())

    def verify(self, token: str) -> uuid.UUID:
        return verify_token(token, self.clock.now(), self.keys.signing_key())

    def authenticate(self, authorization: str | None) -> uuid.UUID:
        """Verify a raw ``Authorization`` header value; absence is an error."""
        if authorization is None:
            raise Unauthorized()
        return self.verify(strip_token_prefix(authorization))

    def authenticate_optional(self, authorization: str | None) -> uuid.UUID | None:
        """
        Like ``authenticate`` but a missing header yields ``None``.
        A header that is present but invalid is still rejected.
        """
        if authorization is None:
            return None
        return self.authenticate(authorization)
