"""
Database session management.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from tripledger.core.config import settings
from tripledger.db.base import Base


def build_engine(database_url: str, echo: bool = False):
    """Create an engine; SQLite connections may be shared across threads."""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False}
        )
    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_recycle=3600
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Initialize database tables."""
    # Import models so they are registered on the metadata
    import tripledger.models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
