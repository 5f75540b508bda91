from contextlib import contextmanager
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from contentforge.config import get_settings

logger = logging.getLogger(__name__)

# Create base class for models
Base = declarative_base()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Build an engine with pool settings suited to the backing database."""
    if database_url.startswith("postgresql"):
        return create_engine(
            database_url,
            pool_pre_ping=True,
            echo=echo,
            pool_size=3,
            max_overflow=5,
            pool_timeout=5,
            pool_recycle=300,
            connect_args={
                "options": "-c timezone=utc",
                "connect_timeout": 3,
            },
        )
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection so every session sees the same in-memory database
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,
        echo=echo,
        connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {},
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    # Objects stay readable after commit; stores hand them back detached
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


settings = get_settings()
engine = create_db_engine(settings.database_url)
SessionLocal = create_session_factory(engine)


def init_db(bind: Engine | None = None) -> None:
    """Register all models and create any missing tables."""
    from contentforge import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("✅ Database models registered successfully")


@contextmanager
def session_scope(session_factory: sessionmaker):
    """Session with commit on success, rollback on error, and guaranteed close."""
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()