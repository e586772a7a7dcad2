"""
Database engine and session management.

The alert service shares the municipal database with the main backend: it
reads workers, attendance, staff and wards and writes only the alerts table.
"""

from sqlalchemy import create_engine, MetaData
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
import structlog

from wardwatch.core.config import settings

logger = structlog.get_logger(__name__)


def create_db_engine(url: str) -> Engine:
    """Build an engine for ``url``; SQLite (dev and tests) shares one connection across threads."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=settings.DEBUG,
        )
    # Each alert check holds its own connection during a cycle
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=max(settings.DB_POOL_SIZE, settings.ALERT_CHECK_WORKERS),
        max_overflow=settings.DB_MAX_OVERFLOW,
        echo=settings.DEBUG,
    )


engine = create_db_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

metadata = MetaData(naming_convention=convention)
Base = declarative_base(metadata=metadata)


def get_db():
    """
    Request-scoped session for FastAPI endpoints.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def init_db():
    """
    Create tables that do not exist yet.

    The worker, attendance, staff and ward tables belong to the main municipal
    backend; create_all only touches them on empty development databases.
    """
    try:
        from wardwatch.models import alert, attendance, staff, ward, worker  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured", tables=sorted(Base.metadata.tables))

    except Exception as e:
        logger.error("Failed to initialize database", error=str(e))
        raise


def get_database_info() -> dict:
    """Connection details safe to log (password masked)."""
    return {
        "url": engine.url.render_as_string(hide_password=True),
        "dialect": engine.dialect.name,
        "pool": type(engine.pool).__name__,
    }
