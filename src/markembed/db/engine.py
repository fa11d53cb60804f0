from __future__ import annotations

from typing import Any, Dict
from urllib.parse import urlparse

from pgvector.sqlalchemy import Vector as VECTOR  # type: ignore[import-untyped]
from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    text,
)
from sqlalchemy.orm import DeclarativeBase, relationship, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import func

from ..core import config


class Base(DeclarativeBase):
    pass


# Global engine and session factory
_engine = None
_session_factory = None


def get_db_url() -> str:
    """Get database URL from settings.

    Raises:
        ValueError: If MARKEMBED_DB_URL is not configured.
    """
    db_url = config.SETTINGS.MARKEMBED_DB_URL
    if not db_url:
        raise ValueError(
            "MARKEMBED_DB_URL is required. "
            "Set MARKEMBED_DB_URL to a PostgreSQL URL in your .env file, "
            "then run 'markembed db init'."
        )
    return db_url


def make_engine(db_url: str):
    """Create an engine; in-memory SQLite shares one connection across sessions."""
    if db_url.startswith("sqlite") and (":memory:" in db_url or db_url.rstrip("/") == "sqlite:"):
        return create_engine(
            db_url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(db_url, future=True)


def get_engine():
    """Get or create the SQLAlchemy engine."""
    global _engine
    if _engine is None:
        _engine = make_engine(get_db_url())
    return _engine


def get_session_factory():
    """Get or create the session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine())
    return _session_factory


def reset_engine() -> None:
    """Forget the cached engine and session factory (settings changed)."""
    global _engine, _session_factory
    _engine = None
    _session_factory = None


def create_tables(engine=None):
    """Create all tables defined in models."""
    Base.metadata.create_all(engine or get_engine())


def check_db_health() -> Dict[str, Any]:
    """Check database connectivity and capabilities.

    Returns:
        Dict with status info including connectivity, dialect, database name, and pgvector availability.

    Raises:
        Exception: If database connection fails.
    """
    engine = get_engine()

    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))

        dialect = engine.dialect.name
        parsed_url = urlparse(get_db_url())
        db_name = parsed_url.path.lstrip("/") if parsed_url.path else "default"

        pgvector_available = False
        if dialect == "postgresql":
            result = conn.execute(text("SELECT extname FROM pg_extension WHERE extname='vector'"))
            pgvector_available = result.fetchone() is not None

        return {
            "status": "ok",
            "dialect": dialect,
            "database": db_name,
            "pgvector": pgvector_available,
            "host": parsed_url.hostname or "localhost",
        }


def initialize_postgres_extensions() -> None:
    """Create the pgvector extension on PostgreSQL (no-op elsewhere)."""
    engine = get_engine()
    if engine.dialect.name != "postgresql":
        return
    with engine.connect() as conn:
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        conn.commit()


class File(Base):
    """File table - one row per ingested source path within a project."""

    __tablename__ = "files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(String, nullable=False)
    path = Column(String, nullable=False)
    meta = Column(JSON)  # front matter
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())

    sections = relationship("FileSection", back_populates="file", cascade="all, delete-orphan")

    __table_args__ = (Index("idx_files_project_path", "project_id", "path", unique=True),)


class FileSection(Base):
    """File section table - embedded chunks of a file."""

    __tablename__ = "file_sections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_id = Column(Integer, ForeignKey("files.id"), nullable=False)
    content = Column(Text, nullable=False)
    embedding = Column(VECTOR())
    token_count = Column(Integer, nullable=False)

    file = relationship("File", back_populates="sections")

    __table_args__ = (Index("idx_file_sections_file", "file_id"),)


class UsageCount(Base):
    """Keyed counters (monthly token usage per project)."""

    __tablename__ = "usage_counters"

    key = Column(String, primary_key=True)
    value = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())
