"""
Password service: Argon2 hashing off the event loop.

Argon2 is deliberately CPU- and memory-hard, so every hash and verify
call runs on a dedicated thread pool rather than on the event loop or
the default executor shared with other blocking work.  Hashes are the
self-describing PHC strings produced by ``argon2-cffi``
(``$argon2id$v=19$m=...,t=...,p=...$<salt>$<hash>``), so verification
needs nothing but the stored string.
"""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from conduit.config import settings
from conduit.errors import InternalError, Unauthorized

logger = logging.getLogger(__name__)

_hasher = PasswordHasher()
_executor = ThreadPoolExecutor(
    max_workers=settings.PASSWORD_HASH_WORKERS,
    thread_name_prefix="password-hash",
)


def _verify(password: str, password_hash: str) -> None:
    try:
        _hasher.verify(password_hash, password)
    except VerifyMismatchError as exc:
        raise Unauthorized("invalid email or password") from exc
    except (InvalidHashError, VerificationError) as exc:
        raise InternalError(f"failed to verify password hash: {exc}") from exc


async def hash_password(password: str) -> str:
    """Return a freshly salted Argon2 hash of *password*."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_executor, _hasher.hash, password)


async def verify_password(password: str, password_hash: str) -> None:
    """
    Check *password* against *password_hash*.

    Raises ``Unauthorized`` on a mismatch and ``InternalError`` when the
    stored hash is malformed; the two are never conflated.
    """
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(_executor, _verify, password, password_hash)


def shutdown() -> None:
    """Release the worker threads.  Called once at application shutdown."""
    _executor.shutdown(wait=False)
