from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from sqlalchemy import event
from sqlalchemy.engine import make_url
import logging
import os

logger = logging.getLogger(__name__)


# Base class for models
Base = declarative_base()


def is_sqlite_url(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def create_engine_for_database(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the appropriate async engine for the translation cache database."""
    if is_sqlite_url(database_url):
        is_memory = ":memory:" in database_url or make_url(database_url).database in (None, "")
        if not is_memory:
            db_path = make_url(database_url).database
            db_dir = os.path.dirname(db_path)
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)
        engine_kwargs = dict(
            echo=echo,
            future=True,
            connect_args={
                "check_same_thread": False,
            },
        )
        if is_memory:
            # In-memory SQLite needs StaticPool so all connections share
            # the same database (otherwise each connection gets its own).
            engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["connect_args"]["timeout"] = 30
        engine = create_async_engine(database_url, **engine_kwargs)

        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            if not is_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA busy_timeout=30000")
                cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

        return engine

    logger.info(f"Connecting translation cache to {make_url(database_url).get_backend_name()}")
    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,  # Verify connections before using
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create the translation cache tables if they do not exist yet."""
    # Import models so they register on Base.metadata
    from translation_pipeline.models import CachedTranslation  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Translation cache tables initialized")
