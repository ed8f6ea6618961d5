import logging

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base

from eventhub.config import Settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def normalize_database_url(url: str) -> str:
    # Fix postgres:// to postgresql:// for SQLAlchemy compatibility
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


class Database:
    """Storage client: one engine and session factory per process.

    Built once at application startup and disposed at shutdown. Request
    handlers get sessions through `get_db`, never by importing a global.
    """

    def __init__(self, url: str):
        self.url = normalize_database_url(url)

        # Configure engine based on database type
        if self.url.startswith("sqlite"):
            self.engine = create_engine(
                self.url,
                connect_args={"check_same_thread": False, "timeout": 30},
            )
        else:
            self.engine = create_engine(
                self.url,
                pool_size=10,
                max_overflow=20,
                pool_timeout=30,
                pool_recycle=1800,  # Recycle connections after 30 min to avoid stale handles
                pool_pre_ping=True,  # Verify connections are alive before using them
            )

        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.database_url)

    def create_all(self):
        """Create all tables that don't exist yet."""
        # Import models so every table is registered on Base.metadata
        from eventhub import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database schema ready at %s", self.engine.url.render_as_string(hide_password=True))

    def ping(self):
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def dispose(self):
        self.engine.dispose()
        logger.info("Database connections closed")


def get_db(request: Request):
    """Dependency for getting database sessions."""
    db = request.app.state.database.session_factory()
    try:
        yield db
    finally:
        db.close()
