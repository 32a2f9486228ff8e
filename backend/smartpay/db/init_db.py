"""
Database Initialization

Creates the payment store tables and provides sessions for FastAPI.
"""
import logging
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ..config import settings
from .models import Base

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str = None) -> Engine:
    """Engine for the configured database URL."""
    database_url = database_url or settings.database_url

    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {
            "timeout": 30,  # seconds to wait for the write lock
            "check_same_thread": False
        }

    return create_engine(
        database_url,
        echo=False,
        connect_args=connect_args,
        pool_pre_ping=True
    )


engine = create_db_engine()

SessionLocal = sessionmaker(
    bind=engine,
    expire_on_commit=False
)


def initialize_database(db_engine: Engine = None) -> None:
    """
    Create all tables that do not exist yet.

    Called during FastAPI startup.
    """
    db_engine = db_engine or engine
    Base.metadata.create_all(db_engine)
    logger.info(f"Database initialized at {db_engine.url.render_as_string(hide_password=True)}")


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database sessions in FastAPI.

    Usage:
        @app.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def main():
    """CLI entry point for initializing database."""
    logging.basicConfig(level=getattr(logging, settings.log_level))
    initialize_database()


if __name__ == "__main__":
    main()
