"""Database engine and session factory used across the application."""

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from src.finstream.runtime.config.config_data import ConfigData
from src.finstream.runtime.context import get_config


class DbSessionService:
    def __init__(self, url: str | None = None, **engine_overrides):
        """Initialize the shared database engine.

        Args:
            url: Connection URL; defaults to ``database.url`` from the config.
            engine_overrides: Extra ``create_engine`` keyword arguments.
        """
        main_config = get_config()
        db_config = main_config.database
        url = url or db_config.url

        logger.info(
            "Configuring database engine for environment: {}",
            main_config.app.environment,
        )
        engine_kwargs = {
            "pool_pre_ping": True,
            "echo": False,
            "connect_args": self._get_connect_args(url, main_config),
        }
        if not url.startswith("sqlite"):
            engine_kwargs.update(
                {
                    "pool_size": db_config.pool_size,
                    "max_overflow": db_config.max_overflow,
                    "pool_timeout": db_config.pool_timeout,
                    "pool_recycle": db_config.pool_recycle,
                }
            )
        engine_kwargs.update(engine_overrides)

        self._engine = create_engine(url, **engine_kwargs)

    @property
    def engine(self):
        return self._engine

    def _get_connect_args(self, url: str, config: ConfigData) -> dict:
        """Get database-specific connection arguments."""
        connect_args = {}

        if url.startswith("postgresql"):
            connect_args.update(
                {
                    "application_name": f"{config.app.environment}_finstream",
                    "connect_timeout": 30,
                }
            )
        elif url.startswith("sqlite"):
            # sessions are used from FastAPI's threadpool
            connect_args.update({"check_same_thread": False, "timeout": 20})

            if config.app.environment == "production":
                logger.warning(
                    "SQLite is not recommended for production use. "
                    "Consider PostgreSQL for better performance and reliability."
                )

        return connect_args

    def get_session(self) -> Session:
        """Return a new SQLModel session bound to the shared engine."""
        return Session(self._engine, expire_on_commit=False, autoflush=True)

    def create_all(self) -> None:
        """Create all database tables."""
        from src.finstream.entities.user import UserTable  # noqa: F401

        SQLModel.metadata.create_all(self._engine)
        logger.info("Database initialized with tables.")

    def health_check(self) -> bool:
        """Perform a health check on the database connection."""
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
                return True
        except SQLAlchemyError as e:
            logger.warning("Database health check failed: {}", type(e).__name__)
            return False

    def dispose(self) -> None:
        self._engine.dispose()
