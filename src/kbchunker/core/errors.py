"""Error taxonomy for the ingestion pipeline.

Only ``ParseError`` and ``StorageError`` (and ``PipelineError`` for unexpected
stage failures) abort a document run. ``MalformedChunkError`` is never raised
out of the scorer; it travels inside a ``ScoreResult``.
"""

from typing import Optional


class KbChunkerError(Exception):
    """Base class for all kbchunker errors."""


class ParseError(KbChunkerError):
    """A document reader could not produce text."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class StorageError(KbChunkerError):
    """The persistence collaborator failed to store chunks or job state."""


class MalformedChunkError(KbChunkerError):
    """A chunk is missing content or its content is not a string."""


class PipelineError(KbChunkerError):
    """An unexpected failure inside a pipeline stage."""

    def __init__(self, stage: str, cause: BaseException):
        super().__init__(f"{stage} failed: {cause}")
        self.stage = stage
        self.cause = cause
