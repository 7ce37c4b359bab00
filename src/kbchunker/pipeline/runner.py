"""
Pipeline orchestration: filter, structure, chunk, classify, validate, store.

One document per run, stages strictly in order. Progress is reported at the
checkpoints in ``dag.STAGES`` to the caller's ``on_progress`` callback, the
job tracker and (optionally) the NDJSON event log.
"""

from __future__ import annotations

import time
from collections import Counter
from contextlib import ExitStack
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..core.artifacts import new_job_id
from ..core.config import PipelineConfig
from ..core.errors import KbChunkerError, PipelineError
from ..core.logging import job_context, log
from ..core.models import (
    Chunk,
    ChunkRecord,
    Document,
    QualityStats,
    RunResult,
)
from ..db.store import ChunkStore, InMemoryJobTracker, JobTracker
from ..obs.events import EventEmitter
from .dag import COMPLETED, STAGE_BY_NAME
from .steps.chunk import chunk_document
from .steps.classify import ContentClassifier
from .steps.filter import ContentFilter
from .steps.ingest import select_reader
from .steps.structure import StructureExtractor
from .steps.validate import QualityScorer

ProgressCallback = Callable[[int, str], None]


def make_chunk_id(source_id: str, version: str, index: int) -> str:
    return f"{source_id}:{version}:{index:04d}"


def compute_quality_stats(chunks: Sequence[Chunk]) -> QualityStats:
    """Average quality, heading coverage and type distribution; zeros when empty."""
    if not chunks:
        return QualityStats()
    total = len(chunks)
    return QualityStats(
        total_chunks=total,
        average_quality=sum(c.quality_score or 0.0 for c in chunks) / total,
        type_distribution=dict(
            Counter(
                c.classification.primary_type
                for c in chunks
                if c.classification and c.classification.primary_type
            )
        ),
        heading_coverage=sum(1 for c in chunks if c.section_heading) / total,
    )


def build_records(
    document: Document, chunks: Sequence[Chunk], created_at: datetime
) -> List[ChunkRecord]:
    records = []
    for chunk in chunks:
        classification = chunk.classification
        records.append(
            ChunkRecord(
                chunk_id=make_chunk_id(document.source_id, document.version, chunk.index),
                source_id=document.source_id,
                version=document.version,
                content=chunk.content,
                heading=chunk.heading,
                quality_score=chunk.quality_score or 0.0,
                estimated_token_count=chunk.estimated_token_count,
                chunk_index=chunk.index,
                content_type=chunk.content_type,
                classification_data={
                    "primary_type": classification.primary_type if classification else None,
                    "confidence": classification.confidence if classification else 0.0,
                    "types": list(classification.types) if classification else [],
                    "section_type": chunk.section_type,
                },
                created_at=created_at,
            )
        )
    return records


class PipelineOrchestrator:
    """Runs the document pipeline and hands accepted chunks to a store.

    Without a store the run stops after validation; the accepted chunks are
    still available on ``last_chunks``.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        store: Optional[ChunkStore] = None,
        job_tracker: Optional[JobTracker] = None,
        emit_events: bool = False,
        events_dir: Optional[Path] = None,
    ):
        self.config = config or PipelineConfig()
        self.store = store
        self.job_tracker = job_tracker or InMemoryJobTracker()
        self.emit_events = emit_events
        self.events_dir = events_dir

        self.content_filter = ContentFilter(self.config.content_filtering)
        self.structure_extractor = StructureExtractor(self.config.structure)
        self.classifier = ContentClassifier(self.config.content_classification)
        self.scorer = QualityScorer(self.config.quality_validation)

        self.last_chunks: List[Chunk] = []
        self.last_records: List[ChunkRecord] = []
        self.last_job_id: Optional[str] = None

    def process_document(
        self, document: Document, on_progress: Optional[ProgressCallback] = None
    ) -> RunResult:
        """Run every stage over already-extracted text."""
        return self._run(
            document.source_id, document.version, lambda: document, on_progress
        )

    def process_file(
        self,
        path: Path | str,
        source_id: str,
        version: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RunResult:
        """Read ``path`` with the reader for its type, then run the pipeline."""
        path = Path(path)

        def load() -> Document:
            reader = select_reader(path)
            read = reader.read(path)
            return Document(
                source_id=source_id,
                version=version,
                raw_content=read.content,
                source_type=reader.source_type,
                structure_hints=tuple(read.structure_hints),
            )

        return self._run(source_id, version, load, on_progress)

    def _run(
        self,
        source_id: str,
        version: str,
        load: Callable[[], Document],
        on_progress: Optional[ProgressCallback],
    ) -> RunResult:
        job_id = new_job_id()
        started = time.perf_counter()
        self.last_job_id = job_id
        self.last_chunks, self.last_records = [], []

        with ExitStack() as stack:
            stack.enter_context(job_context(job_id, source_id, version))
            emitter: Optional[EventEmitter] = None
            if self.emit_events:
                emitter = stack.enter_context(
                    EventEmitter(job_id, source_id=source_id, log_dir=self.events_dir)
                )

            def checkpoint(stage_name: str) -> None:
                stage = STAGE_BY_NAME[stage_name]
                if on_progress:
                    on_progress(stage.progress, stage.label)
                self.job_tracker.update_progress(job_id, stage.progress, stage.label)
                if emitter:
                    emitter.stage_start(stage.name, stage.progress, stage.label)

            log.info("pipeline.run.start")
            self.job_tracker.create_job(
                job_id, source_id, self.config.model_dump(by_alias=True)
            )

            stage = "parse"
            try:
                checkpoint(stage)
                document = load()
                if emitter:
                    emitter.stage_complete(stage, bytes=len(document.raw_content))

                stage = "filter"
                checkpoint(stage)
                filtered_text, filter_stats = self.content_filter.filter(
                    document.raw_content
                )
                if emitter:
                    emitter.stage_complete(stage, removed=filter_stats.removed_count)

                stage = "structure"
                checkpoint(stage)
                structure = self.structure_extractor.extract(
                    filtered_text, document.structure_hints
                )
                if emitter:
                    emitter.stage_complete(stage, sections=len(structure.sections))

                stage = "chunk"
                checkpoint(stage)
                chunks = chunk_document(
                    structure,
                    self.config.chunking_strategy,
                    min_content_length=self.config.content_filtering.min_content_length,
                )
                if emitter:
                    emitter.stage_complete(stage, chunks=len(chunks))

                stage = "classify"
                checkpoint(stage)
                chunks = self.classifier.classify_chunks(chunks)
                if emitter:
                    emitter.stage_complete(stage, chunks=len(chunks))

                stage = "validate"
                checkpoint(stage)
                accepted, rejected = self.scorer.validate(chunks)
                if emitter:
                    emitter.stage_complete(stage, accepted=len(accepted), rejected=rejected)

                stage = "store"
                checkpoint(stage)
                records = build_records(
                    document, accepted, datetime.now(timezone.utc)
                )
                if self.store is not None:
                    self.store.store(records)
                if emitter:
                    emitter.stage_complete(stage, chunks=len(records))

                stage = COMPLETED.name
                processing_ms = int((time.perf_counter() - started) * 1000)
                result = RunResult(
                    success=True,
                    job_id=job_id,
                    source_id=source_id,
                    version=version,
                    chunks_generated=len(accepted),
                    rejected_count=rejected,
                    section_count=len(structure.sections),
                    processing_time_ms=processing_ms,
                    quality_stats=compute_quality_stats(accepted),
                    filtering_stats=filter_stats,
                )
                self.job_tracker.complete_job(
                    job_id,
                    processing_ms,
                    result.model_dump(mode="json", exclude={"filtering_stats", "error"}),
                )
            except KbChunkerError as e:
                self._fail(job_id, stage, e, emitter)
                raise
            except Exception as e:
                self._fail(job_id, stage, e, emitter)
                raise PipelineError(stage, e) from e

            if on_progress:
                on_progress(COMPLETED.progress, COMPLETED.label)
            if emitter:
                emitter.emit("complete", "pipeline.complete", duration_ms=processing_ms)

            self.last_chunks, self.last_records = accepted, records
            log.info(
                "pipeline.run.end",
                chunks=result.chunks_generated,
                rejected=result.rejected_count,
                average_quality=round(result.quality_stats.average_quality, 3),
                processing_time_ms=processing_ms,
            )
        return result

    def _fail(
        self,
        job_id: str,
        stage: str,
        error: Exception,
        emitter: Optional[EventEmitter],
    ) -> None:
        log.error(
            "pipeline.run.failed",
            stage=stage,
            error=str(error),
            error_type=type(error).__name__,
        )
        if emitter:
            emitter.error(stage, str(error))
        try:
            self.job_tracker.fail_job(job_id, f"{stage}: {error}")
        except KbChunkerError as e:
            # The stage error is what the caller sees
            log.error("pipeline.job.fail_not_recorded", stage=stage, error=str(e))


def process_document(
    document: Document,
    config: Optional[PipelineConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> RunResult:
    """Run the pipeline without storage."""
    return PipelineOrchestrator(config).process_document(document, on_progress)


__all__ = [
    "PipelineOrchestrator",
    "ProgressCallback",
    "build_records",
    "compute_quality_stats",
    "make_chunk_id",
    "process_document",
]
