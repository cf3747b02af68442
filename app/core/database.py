"""
Database configuration and session management.
"""
import os
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from app.core.config import settings

# Created on first use so importing the app never opens a connection
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def get_engine() -> Engine:
    """Get or create the database engine."""
    global _engine, _SessionLocal

    if _engine is None:
        url = settings.DATABASE_URL
        engine_kwargs = {
            "pool_pre_ping": True,  # Verify connections before using
            "echo": os.getenv("SQL_ECHO", "false").lower() == "true",
        }
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs.update(poolclass=QueuePool, pool_size=10, max_overflow=20)

        _engine = create_engine(url, **engine_kwargs)
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)

    return _engine


def session_factory() -> Session:
    """Open a new session; the caller is responsible for closing it."""
    get_engine()
    return _SessionLocal()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.

    Usage in FastAPI:
    ```python
    @router.get("/endpoint")
    def endpoint(db: Session = Depends(get_db)):
        # Use db here
        pass
    ```
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create missing tables and seed the default event configuration."""
    from app.models import Base
    from app.repositories import ConfigRepository

    Base.metadata.create_all(bind=get_engine(), checkfirst=True)

    db = session_factory()
    try:
        ConfigRepository(db).seed_defaults()
    finally:
        db.close()
