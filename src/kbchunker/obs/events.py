"""Typed NDJSON event log for pipeline runs.

Events land in ``<workdir>/logs/<job_id>/events.ndjson``, one JSON object per
line, with ``<workdir>/logs/latest.ndjson`` pointing at the newest run.
"""

import os
import time
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from pydantic import BaseModel, Field

from ..core.artifacts import job_log_dir
from ..core.logging import log


class EventLevel(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class EventStatus(str, Enum):
    START = "START"
    OK = "OK"
    END = "END"
    FAIL = "FAIL"


class ObservabilityEvent(BaseModel):
    """Schema for every line in events.ndjson."""

    ts: str = Field(..., description="ISO 8601 timestamp with Z suffix")
    job_id: str
    stage: str = Field(..., description="Pipeline stage (filter, chunk, ...)")
    op: str
    status: EventStatus
    level: EventLevel = EventLevel.INFO
    pid: int
    progress: Optional[int] = None
    duration_ms: Optional[int] = None
    source_id: Optional[str] = None
    counts: Dict[str, int] = Field(default_factory=dict)
    reason: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class EventEmitter:
    """Writes stage events for one job."""

    def __init__(
        self,
        job_id: str,
        source_id: Optional[str] = None,
        log_dir: Optional[Path] = None,
    ):
        self.job_id = job_id
        self.source_id = source_id
        self.pid = os.getpid()

        self.run_log_dir = (
            Path(log_dir) / job_id if log_dir else job_log_dir(job_id)
        )
        self.run_log_dir.mkdir(parents=True, exist_ok=True)
        self.events_path = self.run_log_dir / "events.ndjson"

        self._file: Optional[TextIO] = None
        self._stage_started: Dict[str, float] = {}

    def __enter__(self):
        self._file = open(self.events_path, "a", encoding="utf-8")
        self._update_latest_symlink()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._file:
            self._file.close()
            self._file = None

    def _update_latest_symlink(self) -> None:
        latest = self.run_log_dir.parent / "latest.ndjson"
        try:
            if latest.exists() or latest.is_symlink():
                latest.unlink()
            latest.symlink_to(f"{self.job_id}/events.ndjson")
        except OSError as e:
            log.debug("events.symlink_failed", path=str(latest), error=str(e))

    def emit(
        self,
        stage: str,
        op: str,
        status: EventStatus = EventStatus.OK,
        level: EventLevel = EventLevel.INFO,
        **fields: Any,
    ) -> Optional[ObservabilityEvent]:
        """Validate and append one event; returns it, or None when closed."""
        if not self._file:
            return None

        event = ObservabilityEvent(
            ts=_now(),
            job_id=self.job_id,
            stage=stage,
            op=op,
            status=status,
            level=level,
            pid=self.pid,
            source_id=self.source_id,
            **fields,
        )
        try:
            self._file.write(event.model_dump_json(exclude_none=True) + "\n")
            self._file.flush()
        except OSError as e:
            # The event log never aborts a run
            log.warning("events.write_failed", error=str(e))
        return event

    def stage_start(self, stage: str, progress: int, label: str) -> None:
        self._stage_started[stage] = time.time()
        self.emit(
            stage,
            f"{stage}.start",
            EventStatus.START,
            progress=progress,
            metadata={"label": label},
        )

    def stage_complete(self, stage: str, **counts: int) -> None:
        started = self._stage_started.pop(stage, None)
        duration_ms = int((time.time() - started) * 1000) if started else None
        self.emit(
            stage,
            f"{stage}.complete",
            EventStatus.END,
            duration_ms=duration_ms,
            counts=counts,
        )

    def error(self, stage: str, message: str) -> None:
        self.emit(
            stage,
            f"{stage}.error",
            EventStatus.FAIL,
            EventLevel.ERROR,
            reason=message,
        )
