import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(
    url: str,
    *,
    pool_size: int = 5,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> Engine:
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            # one shared connection, otherwise every checkout sees an empty database
            return create_engine(url, connect_args=connect_args, poolclass=StaticPool, echo=echo)
        return create_engine(url, connect_args=connect_args, echo=echo)

    return create_engine(
        url,
        pool_size=pool_size,
        max_overflow=pool_size,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,
        echo=echo,
    )


class Database:
    """Storage client owning the engine pool and the session factory.

    Built once at startup and handed to the store and services; ``dispose``
    closes the pool on shutdown.
    """

    def __init__(self, engine: Engine, connect_retries: int = 1):
        self.engine = engine
        self.connect_retries = max(1, connect_retries)
        self._session_factory = sessionmaker(
            bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        engine = build_engine(
            settings.database_url,
            pool_size=settings.db_pool_size,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=settings.db_pool_recycle,
            echo=settings.db_echo,
        )
        return cls(engine, connect_retries=settings.db_connect_retries)

    @classmethod
    def from_url(cls, url: str, **engine_options) -> "Database":
        return cls(build_engine(url, **engine_options))

    def connect(self, sleep=time.sleep) -> None:
        """Check connectivity, backing off 1s, 2s, 4s... between attempts."""
        attempt = 0
        while True:
            attempt += 1
            logger.info(
                "Connecting to the database (attempt %s/%s)...", attempt, self.connect_retries
            )
            try:
                with self.engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
            except OperationalError:
                if attempt >= self.connect_retries:
                    logger.exception("Unable to connect to the database after %s attempts", attempt)
                    raise
                delay = 2 ** (attempt - 1)
                logger.warning("Connection failed. Retrying in %ss...", delay)
                sleep(delay)
                continue
            logger.info("Database connection has been established successfully.")
            return

    def session(self) -> Session:
        return self._session_factory()

    def dispose(self) -> None:
        logger.info("Closing database connection pool")
        self.engine.dispose()


def get_session(database: Database, session: Optional[Session] = None):
    """Yield ``session`` when given, otherwise a short-lived one that is closed afterwards."""
    if session is not None:
        return _borrowed(session)
    return _owned(database)


@contextmanager
def _borrowed(session: Session) -> Iterator[Session]:
    yield session


@contextmanager
def _owned(database: Database) -> Iterator[Session]:
    session = database.session()
    try:
        yield session
    finally:
        session.close()
