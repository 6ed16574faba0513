"""Database connection utilities."""

from contextlib import contextmanager
from typing import Optional

import structlog
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ..config.config import settings
from .models import Base

logger = structlog.get_logger()


class Database:
    """Database connection manager."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.database_url
        self.engine = None
        self.SessionLocal = None

    def initialize(self):
        """Initialize database connection."""
        logger.info("Initializing database connection", url=self.url)

        engine_options = {"echo": False}
        if self.url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database
            engine_options.update(
                poolclass=StaticPool, connect_args={"check_same_thread": False}
            )
        self.engine = create_engine(self.url, **engine_options)

        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

        self.create_tables()

        logger.info("Database connection initialized")

    def create_tables(self):
        """Create all tables."""
        try:
            Base.metadata.create_all(bind=self.engine)
            logger.info("Database tables created")
        except Exception as e:
            logger.error("Failed to create tables", error=str(e))
            raise

    @contextmanager
    def get_session(self):
        """Get database session with automatic cleanup."""
        if not self.SessionLocal:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


# Global database instance
db = Database()
