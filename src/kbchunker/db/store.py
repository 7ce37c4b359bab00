"""Storage and job-tracking collaborators for the pipeline.

The orchestrator only talks to ``ChunkStore`` and ``JobTracker``. SQL-backed
implementations write through SQLAlchemy; in-memory ones are used by the
``chunk`` command and tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..core.errors import StorageError
from ..core.logging import log
from ..core.models import ChunkRecord
from .engine import IngestionJob, KbChunk, get_engine


class ChunkStore(ABC):
    """Persists the accepted chunks of one run."""

    @abstractmethod
    def store(self, records: Sequence[ChunkRecord]) -> int:
        """Write ``records`` atomically and return how many were written.

        Raises:
            StorageError: If nothing could be committed.
        """


class JobTracker(ABC):
    """Records the lifecycle of one ingestion job."""

    @abstractmethod
    def create_job(
        self, job_id: str, source_id: str, config: Optional[Dict[str, Any]] = None
    ) -> None: ...

    @abstractmethod
    def update_progress(self, job_id: str, progress: int, status_label: str) -> None: ...

    @abstractmethod
    def complete_job(
        self, job_id: str, processing_time_ms: int, result: Dict[str, Any]
    ) -> None: ...

    @abstractmethod
    def fail_job(self, job_id: str, error_message: str) -> None: ...


def _record_row(record: ChunkRecord) -> Dict[str, Any]:
    return {
        "chunk_id": record.chunk_id,
        "source_id": record.source_id,
        "version": record.version,
        "content": record.content,
        "heading": record.heading,
        "quality_score": record.quality_score,
        "token_count": record.estimated_token_count,
        "chunk_index": record.chunk_index,
        "content_type": record.content_type,
        "classification_data": record.classification_data,
        "created_at": record.created_at,
    }


class SqlChunkStore(ChunkStore):
    """Writes one run's chunks in a single transaction.

    Rows already stored for the same (source_id, version) are replaced.
    """

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine or get_engine()
        self._sessions = sessionmaker(bind=self.engine)

    def store(self, records: Sequence[ChunkRecord]) -> int:
        if not records:
            return 0
        keys = {(r.source_id, r.version) for r in records}
        try:
            with self._sessions.begin() as session:
                for source_id, version in keys:
                    session.execute(
                        delete(KbChunk).where(
                            KbChunk.source_id == source_id,
                            KbChunk.version == version,
                        )
                    )
                session.add_all(KbChunk(**_record_row(r)) for r in records)
        except SQLAlchemyError as e:
            log.error("store.failed", error=str(e), chunks=len(records))
            raise StorageError(f"Failed to store {len(records)} chunks: {e}") from e

        log.info("store.done", chunks=len(records))
        return len(records)

    def fetch(self, source_id: str, version: str) -> List[KbChunk]:
        """Stored chunks for a document version in index order."""
        with self._sessions() as session:
            rows = session.scalars(
                select(KbChunk)
                .where(KbChunk.source_id == source_id, KbChunk.version == version)
                .order_by(KbChunk.chunk_index)
            ).all()
            session.expunge_all()
            return list(rows)


class SqlJobTracker(JobTracker):
    """Keeps ``ingestion_jobs`` rows current through the run."""

    def __init__(self, engine: Optional[Engine] = None, job_type: str = "enhanced_processing"):
        self.engine = engine or get_engine()
        self.job_type = job_type
        self._sessions = sessionmaker(bind=self.engine)

    def _update(self, job_id: str, **values: Any) -> None:
        try:
            with self._sessions.begin() as session:
                job = session.get(IngestionJob, job_id)
                if job is None:
                    raise StorageError(f"Unknown job: {job_id}")
                for key, value in values.items():
                    setattr(job, key, value)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update job {job_id}: {e}") from e

    def create_job(
        self, job_id: str, source_id: str, config: Optional[Dict[str, Any]] = None
    ) -> None:
        try:
            with self._sessions.begin() as session:
                session.add(
                    IngestionJob(
                        job_id=job_id,
                        source_id=source_id,
                        job_type=self.job_type,
                        status="running",
                        progress=0,
                        config=config,
                    )
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create job {job_id}: {e}") from e

    def update_progress(self, job_id: str, progress: int, status_label: str) -> None:
        self._update(job_id, progress=progress, status_label=status_label)

    def complete_job(
        self, job_id: str, processing_time_ms: int, result: Dict[str, Any]
    ) -> None:
        self._update(
            job_id,
            status="completed",
            progress=100,
            processing_time=processing_time_ms,
            result=result,
        )

    def fail_job(self, job_id: str, error_message: str) -> None:
        self._update(job_id, status="failed", error_message=error_message)

    def get_job(self, job_id: str) -> Optional[IngestionJob]:
        with self._sessions() as session:
            job = session.get(IngestionJob, job_id)
            if job is not None:
                session.expunge(job)
            return job


class InMemoryChunkStore(ChunkStore):
    def __init__(self) -> None:
        self.records: List[ChunkRecord] = []

    def store(self, records: Sequence[ChunkRecord]) -> int:
        keys = {(r.source_id, r.version) for r in records}
        self.records = [
            r for r in self.records if (r.source_id, r.version) not in keys
        ]
        self.records.extend(records)
        return len(records)


class InMemoryJobTracker(JobTracker):
    def __init__(self) -> None:
        self.jobs: Dict[str, Dict[str, Any]] = {}

    def create_job(
        self, job_id: str, source_id: str, config: Optional[Dict[str, Any]] = None
    ) -> None:
        self.jobs[job_id] = {
            "source_id": source_id,
            "status": "running",
            "progress": 0,
            "status_label": None,
            "config": config,
            "history": [],
        }

    def update_progress(self, job_id: str, progress: int, status_label: str) -> None:
        job = self.jobs[job_id]
        job["progress"] = progress
        job["status_label"] = status_label
        job["history"].append(progress)

    def complete_job(
        self, job_id: str, processing_time_ms: int, result: Dict[str, Any]
    ) -> None:
        self.jobs[job_id].update(
            status="completed",
            progress=100,
            processing_time=processing_time_ms,
            result=result,
        )

    def fail_job(self, job_id: str, error_message: str) -> None:
        self.jobs[job_id].update(status="failed", error_message=error_message)
