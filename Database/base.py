"""
Shared database base and the owned connection handle.
All models import Base from here.

The engine is created once per process by whoever builds the application
(main.py or a test) and handed to components that need sessions.
"""
import logging
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Shared Base for all models
Base = declarative_base()


class DatabaseManager:
    """Owns the engine (connection pool) and the session factory."""

    def __init__(self, url: str, pool_size: int = 10, max_overflow: int = 20, echo: bool = False):
        self.url = url

        if url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every session sees an empty database
                kwargs["poolclass"] = StaticPool
        else:
            kwargs = {"pool_size": pool_size, "max_overflow": max_overflow}

        self.engine = create_engine(url, echo=echo, **kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.debug(f"Database engine created for {self.engine.url.drivername}")

    @classmethod
    def from_config(cls, config) -> "DatabaseManager":
        return cls(
            config.database.url,
            pool_size=config.database.pool_size,
            max_overflow=config.database.max_overflow,
            echo=config.database.echo,
        )

    def create_all(self):
        """Create all tables (no-op for existing ones)"""
        # Importing the models registers them with Base
        import Database.Alert  # noqa: F401
        import Database.AgentRun  # noqa: F401
        import Database.Application  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self):
        Base.metadata.drop_all(bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()

    def get_db(self) -> Iterator[Session]:
        """
        Database session generator.
        Use with: db = next(manager.get_db())
        """
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def dispose(self):
        self.engine.dispose()

