from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from app.core.config import settings
from typing import Generator

# SQLite needs this to be shared across FastAPI's threadpool
_connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

# Engine = the DB connection factory
engine = create_engine(
    settings.database_url,
    echo=settings.db_echo,
    connect_args=_connect_args,
    future=True
)

# SessionLocal = the session factory
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False
)

def get_db() -> Generator[Session, None, None]:
    """Dependency that provides a database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db() -> None:
    """Create all tables (dev / SQLite setups; use migrations elsewhere)."""
    # models must be imported so they register on Base.metadata
    from app.models import entitlement, plan, user  # noqa: F401
    from app.db.base import Base

    Base.metadata.create_all(bind=engine)
