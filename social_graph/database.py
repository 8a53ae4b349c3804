from contextlib import contextmanager
from datetime import datetime, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from social_graph.config import settings
from social_graph.utils.logger import get_logger

logger = get_logger(__name__)

# Global variables for lazy initialization
_engine = None
_session_local = None

Base = declarative_base()


def build_engine(database_url: str, echo: bool = False):
    """Create an engine for the given URL.

    SQLite gets a single shared connection so an in-memory database survives
    across sessions; every other backend uses the default pool.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    else:
        engine = create_engine(database_url, pool_pre_ping=True, pool_recycle=1800, echo=echo)
    logger.info(f"Database engine configured for dialect={engine.dialect.name}")
    return engine


def get_engine():
    """Get database engine with lazy initialization."""
    global _engine
    if _engine is None:
        _engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    return _engine


def get_session_local():
    """Get SessionLocal with lazy initialization."""
    global _session_local
    if _session_local is None:
        _session_local = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=get_engine())
    return _session_local


def create_tables(engine=None):
    """Create every table known to the ORM metadata."""
    # Import models so they register on Base.metadata
    from social_graph import models  # noqa: F401
    Base.metadata.create_all(bind=engine or get_engine())


def get_db():
    """
    Database dependency for FastAPI.
    Provides database session with automatic cleanup.
    """
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        try:
            db.rollback()
        except Exception as rollback_error:
            logger.error(f"Error during rollback: {rollback_error}")
        raise
    finally:
        db.close()


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp used for row defaults."""
    return datetime.now(timezone.utc)


@contextmanager
def transaction(db):
    """Commit on success; roll back and re-raise on any error."""
    try:
        yield db
        db.commit()
    except Exception:
        try:
            db.rollback()
        except Exception as rollback_error:
            logger.error(f"Error during rollback: {rollback_error}")
        raise
