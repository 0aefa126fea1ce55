"""Async engine, session factory and insert helpers for the matching tables."""

from datetime import datetime, timezone

from sqlalchemy import event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from realty_crm.app.config import get_settings
from realty_crm.domain.errors import ConflictResolved


class Base(DeclarativeBase):
    pass


settings = get_settings()

_is_sqlite = settings.database_url.startswith("sqlite")

if _is_sqlite:
    # Writers queue on the file lock for up to 30s
    _engine_kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
else:
    _engine_kwargs = {"pool_size": 5, "max_overflow": 10, "pool_pre_ping": True}
_engine_kwargs["echo"] = settings.sql_echo

engine = create_async_engine(settings.database_url, **_engine_kwargs)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def configure_sqlite(sync_engine) -> None:
    """Enforce foreign keys and let SQLAlchemy own BEGIN so SAVEPOINTs nest.

    The sqlite driver defers BEGIN until the first DML statement, which makes
    RELEASE of an outermost SAVEPOINT commit the whole transaction.
    """

    @event.listens_for(sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


if _is_sqlite:
    configure_sqlite(engine.sync_engine)


async def get_db():
    """Request-scoped session; commits happen in the service layer."""
    async with async_session() as session:
        yield session


async def init_db():
    """Create missing tables. Schema changes beyond that need a migration."""
    import realty_crm.domain.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def insert_unique(db: AsyncSession, instance, *, entity: str, key: str) -> None:
    """Insert ``instance`` inside a SAVEPOINT.

    A unique-constraint violation rolls back only the savepoint and is raised
    as ``ConflictResolved`` so the caller can re-read and reuse the winning row.
    """
    try:
        async with db.begin_nested():
            db.add(instance)
            await db.flush()
    except IntegrityError as exc:
        raise ConflictResolved(entity, key) from exc
