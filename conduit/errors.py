"""
Domain error taxonomy and its mapping onto HTTP responses.

Repositories and use cases raise these exceptions; nothing below the
router layer knows about status codes except through ``status_code``.
The handlers registered by ``install_exception_handlers`` are the only
place where errors turn into response bodies.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

logger = logging.getLogger(__name__)


class ConduitError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "an internal server error occurred"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class Unauthorized(ConduitError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "authentication required"


class Forbidden(ConduitError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "forbidden"


# ---------------------------------------------------------------------------
# Not found family: kept distinct because callers react differently
# ---------------------------------------------------------------------------

class NotFoundError(ConduitError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "not found"


class CurrentUserNotFound(NotFoundError):
    message = "user does not exist"


class ProfileNotFound(NotFoundError):
    message = "user profile not found"


class ArticleNotFound(NotFoundError):
    message = "article not found"


# ---------------------------------------------------------------------------
# 422 family: rendered as {"errors": {field: [message]}}
# ---------------------------------------------------------------------------

class UnprocessableEntity(ConduitError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    field: str = "body"


class UsernameTaken(UnprocessableEntity):
    field = "username"
    message = "username is taken"


class EmailTaken(UnprocessableEntity):
    field = "email"
    message = "email is taken"


class EmailNotFound(UnprocessableEntity):
    field = "email"
    message = "does not exist"


class DuplicateSlug(UnprocessableEntity):
    field = "slug"

    def __init__(self, slug: str) -> None:
        self.slug = slug
        super().__init__(f"duplicate article slug: {slug}")


class InternalError(ConduitError):
    """Unexpected failure; the detail is logged, never sent to the caller."""


# ---------------------------------------------------------------------------
# Response rendering
# ---------------------------------------------------------------------------

def error_body(field: str, *messages: str) -> dict:
    return {"errors": {field: list(messages)}}


def error_response(exc: ConduitError) -> Response:
    if isinstance(exc, Unauthorized):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body("token", exc.message),
            headers={"WWW-Authenticate": "Token"},
        )
    if isinstance(exc, UnprocessableEntity):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.field, exc.message),
        )
    if isinstance(exc, (Forbidden, NotFoundError)):
        return Response(status_code=exc.status_code)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("body", InternalError.message),
    )


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ConduitError)
    async def conduit_error_handler(request: Request, exc: ConduitError) -> Response:
        if exc.status_code >= 500:
            logger.error("Internal error on %s %s", request.method, request.url.path, exc_info=exc)
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors: dict[str, list[str]] = {}
        for error in exc.errors():
            loc = [str(part) for part in error.get("loc", ())]
            # Body errors start with ("body", envelope key); query errors with ("query",).
            path = loc[2:] if loc[:1] == ["body"] else loc[1:]
            field = (path or loc or ["body"])[-1]
            errors.setdefault(field, []).append(error.get("msg", "is invalid"))
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"errors": errors},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("body", InternalError.message),
        )
