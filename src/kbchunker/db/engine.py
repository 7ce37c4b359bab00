from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import urlparse

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    text,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import func

from ..core import config
from ..core.paths import workdir


class Base(DeclarativeBase):
    pass


# Global engine and session factory
_engine: Optional[Engine] = None
_session_factory = None


def get_db_url() -> str:
    """Database URL from settings, defaulting to SQLite under the workdir."""
    db_url = config.SETTINGS.KBCHUNKER_DB_URL
    if db_url:
        return db_url
    path = workdir() / "kbchunker.db"
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


def make_engine(db_url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection."""
    if db_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            db_url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(db_url, future=True)


def get_engine(db_url: Optional[str] = None) -> Engine:
    """Get or create the SQLAlchemy engine.

    Passing ``db_url`` replaces the cached engine when the URL differs.
    """
    global _engine, _session_factory
    url = db_url or get_db_url()
    if _engine is None or _engine.url != make_url(url):
        _engine = make_engine(url)
        _session_factory = None
    return _engine


def reset_engine() -> None:
    """Dispose of the cached engine (tests and URL changes)."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def get_session() -> Session:
    """Get a new database session."""
    session_factory = get_session_factory()
    return session_factory()


def get_session_factory():
    """Get or create the session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine())
    return _session_factory


def create_tables(engine: Optional[Engine] = None) -> None:
    """Create all tables defined in models."""
    Base.metadata.create_all(engine or get_engine())


def check_db_health(engine: Optional[Engine] = None) -> Dict[str, Any]:
    """Check database connectivity.

    Raises:
        Exception: If database connection fails.
    """
    engine = engine or get_engine()

    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))

    parsed_url = urlparse(str(engine.url))
    return {
        "status": "ok",
        "dialect": engine.dialect.name,
        "database": engine.url.database or "default",
        "host": parsed_url.hostname or "localhost",
    }


class KbChunk(Base):
    """Accepted chunk with its quality and classification metadata."""

    __tablename__ = "kb_chunks"

    chunk_id = Column(String, primary_key=True)  # {source_id}:{version}:{index:04d}
    source_id = Column(String, nullable=False)
    version = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    heading = Column(String, nullable=False, default="No heading")
    quality_score = Column(Float, nullable=False)
    token_count = Column(Integer, nullable=False)
    chunk_index = Column(Integer, nullable=False)
    content_type = Column(String, nullable=False, default="general")
    classification_data = Column(JSON)
    created_at = Column(DateTime(timezone=True), default=func.now())

    __table_args__ = (
        Index("idx_kb_chunks_source_version", "source_id", "version"),
        Index(
            "idx_kb_chunks_unique_index",
            "source_id",
            "version",
            "chunk_index",
            unique=True,
        ),
    )


class IngestionJob(Base):
    """One pipeline run over one document."""

    __tablename__ = "ingestion_jobs"

    job_id = Column(String, primary_key=True)
    source_id = Column(String, nullable=False)
    job_type = Column(String, nullable=False, default="enhanced_processing")
    status = Column(String, nullable=False)  # running, completed, failed
    progress = Column(Integer, nullable=False, default=0)
    status_label = Column(String)
    config = Column(JSON)
    processing_time = Column(Integer)  # milliseconds
    result = Column(JSON)
    error_message = Column(Text)
    created_at = Column(DateTime(timezone=True), default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("idx_ingestion_jobs_source", "source_id"),)


def upsert_chunk(session: Session, chunk_data: Dict[str, Any]) -> KbChunk:
    """Upsert a chunk record."""
    chunk = session.get(KbChunk, chunk_data["chunk_id"])
    if chunk is None:
        chunk = KbChunk(**chunk_data)
        session.add(chunk)
    else:
        for key, value in chunk_data.items():
            setattr(chunk, key, value)
    return chunk
