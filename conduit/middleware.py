import logging
import time
import uuid
from contextvars import ContextVar

from sqlalchemy import event
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

# SQL statements issued while serving the current request.
query_count_var: ContextVar[int] = ContextVar("query_count", default=0)


def install_query_counter(engine) -> None:
    """
    Count every statement *engine* sends to the database into
    ``query_count_var``.  Call once per engine: the application engine in
    ``database.py`` and the SQLite engine the tests build.
    """

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _count(conn, cursor, statement, parameters, context, executemany):
        query_count_var.set(query_count_var.get() + 1)


class TimingMiddleware:
    """
    Access log and diagnostic headers for every HTTP request.

    Adds ``X-Request-ID`` (echoed from the request when the client sent
    one, otherwise a new UUID), ``X-Response-Time-Ms`` and
    ``X-Query-Count`` to the response, and logs one INFO line per request.

    Written as plain ASGI rather than ``BaseHTTPMiddleware``: the latter
    runs the endpoint in a child task, so the query counter set there
    would not be visible here.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = Headers(scope=scope).get("x-request-id") or str(uuid.uuid4())
        query_count_var.set(0)
        started = time.perf_counter()

        async def send_with_diagnostics(message: Message) -> None:
            if message["type"] == "http.response.start":
                elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
                queries = query_count_var.get()
                message["headers"] = [
                    *message.get("headers", []),
                    (b"x-request-id", request_id.encode()),
                    (b"x-response-time-ms", str(elapsed_ms).encode()),
                    (b"x-query-count", str(queries).encode()),
                ]
                logger.info(
                    "%s %s -> %s in %sms (%d queries) [%s]",
                    scope["method"],
                    scope["path"],
                    message["status"],
                    elapsed_ms,
                    queries,
                    request_id,
                )
            await send(message)

        await self.app(scope, receive, send_with_diagnostics)
