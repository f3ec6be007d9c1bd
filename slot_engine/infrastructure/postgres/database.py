#slot_engine\infrastructure\postgres\database.py

"""SQLAlchemy database setup and session management."""

from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from slot_engine.infrastructure.postgres.config import settings


# ============================================
# Base for ORM models
# ============================================
Base = declarative_base()


# ============================================
# Engine configuration
# ============================================
def create_db_engine(database_url: Optional[str] = None) -> Engine:
    """Create SQLAlchemy engine with connection pooling."""

    url = database_url or settings.database_url

    engine = create_engine(
        url,
        echo=settings.echo_sql,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
        pool_recycle=settings.pool_recycle,
    )

    # Set PostgreSQL-specific settings
    @event.listens_for(engine, "connect")
    def configure_connection(dbapi_conn, connection_record):
        """Set default schema and statement timeout on connect."""
        cursor = dbapi_conn.cursor()
        cursor.execute("SET search_path TO public")
        cursor.execute(f"SET statement_timeout = {int(settings.statement_timeout_ms)}")
        cursor.close()

    return engine


# Production engine, created on first use so importing never needs a driver
_engine: Optional[Engine] = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


# ============================================
# Session factory function
# ============================================
def get_session_factory(engine_instance: Optional[Engine] = None) -> sessionmaker:
    """
    Get a session factory bound to the given engine.

    If no engine provided, uses the default production engine.
    This allows tests to inject their own test engine.
    """
    if engine_instance is None:
        engine_instance = get_engine()

    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine_instance,
        expire_on_commit=False
    )


# ============================================
# Database initialization
# ============================================
def init_db(engine_instance: Optional[Engine] = None) -> None:
    """Create all tables (for testing only - use Alembic in production)."""
    if engine_instance is None:
        engine_instance = get_engine()
    Base.metadata.create_all(bind=engine_instance)


def drop_db(engine_instance: Optional[Engine] = None) -> None:
    """Drop all tables (for testing only)."""
    if engine_instance is None:
        engine_instance = get_engine()
    Base.metadata.drop_all(bind=engine_instance)
