from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from conduit.config import settings
from conduit.middleware import install_query_counter

# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

# Register the per-request SQL query counter on the production engine.
install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def insert_ignore(db: AsyncSession, table):
    """
    Return an ``INSERT ... ON CONFLICT DO NOTHING`` statement for *table*
    built with the dialect of the session's bind.

    Used for relation edges (follows, favorites) where inserting an
    existing edge is a successful no-op.
    """
    if db.get_bind().dialect.name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        from sqlalchemy.dialects.sqlite import insert
    return insert(table).on_conflict_do_nothing()


def constraint_violated(exc: IntegrityError, name: str, column: str) -> bool:
    """
    Return True when *exc* was raised by the constraint *name*.

    asyncpg reports the constraint name on the driver exception chained
    to the DBAPI error.  SQLite only reports the offending column
    (``UNIQUE constraint failed: users.username``), so *column* is
    matched against the message as a fallback.
    """
    orig = exc.orig
    constraint = getattr(orig, "constraint_name", None)
    if constraint is None:
        constraint = getattr(getattr(orig, "__cause__", None), "constraint_name", None)
    if constraint is not None:
        return constraint == name
    message = str(orig)
    return name in message or column in message
