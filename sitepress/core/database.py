"""
Engine, sessions and schema.

PostgreSQL in production; SQLite (single shared connection, foreign keys on)
for tests and local runs. Everything above the table definitions is process
wide and created lazily on first use.
"""
from typing import Any, Dict, Optional
from contextlib import contextmanager
from sqlalchemy import create_engine, event, MetaData, Table, Column, String, DateTime, Boolean, Text, Index, ForeignKey, UniqueConstraint
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func
import logging
import os

from sitepress.core.config import settings


logger = logging.getLogger("sitepress")

metadata = MetaData()

# PostgreSQL pool sizing
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600

_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """TEST_DATABASE_URL wins over DATABASE_URL when set."""
    return os.getenv("TEST_DATABASE_URL") or settings.DATABASE_URL


def _sqlite_foreign_keys(dbapi_connection, _connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {
        "poolclass": QueuePool,
        "pool_size": POOL_SIZE,
        "max_overflow": MAX_OVERFLOW,
        "pool_timeout": POOL_TIMEOUT,
        "pool_recycle": POOL_RECYCLE,
        "pool_pre_ping": True,
    }


def init_engine(database_url: Optional[str] = None):
    """Create the engine and session factory, replacing any previous ones."""
    global _engine, _SessionLocal

    url = database_url or get_database_url()
    if not url:
        raise ValueError("DATABASE_URL is not configured. Set DATABASE_URL in environment or .env file.")

    _engine = create_engine(url, echo=False, **_engine_options(url))
    if _engine.dialect.name == "sqlite":
        event.listen(_engine, "connect", _sqlite_foreign_keys)
    _SessionLocal = sessionmaker(bind=_engine, autoflush=False)

    logger.info(f"Database engine initialized ({_engine.dialect.name})")
    return _engine


def dispose_engine() -> None:
    """Close pooled connections; the next use re-reads the database URL."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def get_engine():
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """One unit of work: commit on success, roll back on any exception."""
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """Create missing tables; existing ones are left untouched."""
    metadata.create_all(bind=get_engine())


def drop_all_tables():
    """Drop every table. Tests and local development only."""
    metadata.drop_all(bind=get_engine())


def truncate_all_tables():
    """Delete every row, children first. Tests only."""
    with get_engine().begin() as conn:
        for table in reversed(metadata.sorted_tables):
            conn.execute(table.delete())


# Users table
users = Table(
    'app_users',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('display_name', Text, nullable=True),
    Column('email', String(320), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_users_created_at', 'created_at'),
)

# Sites table: one tenant each, reachable on a subdomain and/or a custom domain
sites = Table(
    'sites',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('user_id', String(100), ForeignKey('app_users.user_id', ondelete='CASCADE'), nullable=False, index=True),
    Column('name', Text, nullable=True),
    Column('description', Text, nullable=True),
    Column('subdomain', String(100), nullable=True, unique=True),
    Column('custom_domain', String(255), nullable=True, unique=True),
    Column('image', Text, nullable=True),
    Column('image_blurhash', Text, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    # Composite index for the ownership filter: (id, user_id)
    Index('idx_sites_id_user', 'id', 'user_id'),
)

# Plans table: markdown documents belonging to a site
plans = Table(
    'plans',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('site_id', String(100), ForeignKey('sites.id', ondelete='CASCADE'), nullable=False, index=True),
    Column('title', Text, nullable=True),
    Column('description', Text, nullable=True),
    Column('content', Text, nullable=True),
    Column('slug', String(255), nullable=False),
    Column('image', Text, nullable=True),
    Column('image_blurhash', Text, nullable=True),
    Column('published', Boolean, default=False, nullable=False, index=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    # Slugs are unique per site, not globally
    UniqueConstraint('site_id', 'slug', name='uq_plans_site_slug'),
    # Composite index for list_plans: (site_id, published, created_at)
    Index('idx_plans_site_published_created', 'site_id', 'published', 'created_at'),
)
