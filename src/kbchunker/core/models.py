from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# Heading stored for chunks whose section has no heading text
DEFAULT_HEADING = "No heading"


class StructureHint(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    level: int = 2


class Document(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_id: str
    version: str
    raw_content: str
    source_type: str = "text"
    structure_hints: tuple[StructureHint, ...] = ()


class FilterStats(BaseModel):
    removed_count: int = 0
    original_length: int = 0
    filtered_length: int = 0
    reduction_percentage: int = 0
    removed_spans: list[str] = []


class Section(BaseModel):
    model_config = ConfigDict(frozen=True)

    heading: Optional[str] = None  # None for implicit/preamble sections
    level: int = 2
    section_type: str = "general"
    start_line: int
    end_line: int


class Classification(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary_type: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    types: tuple[str, ...] = ()


class Chunk(BaseModel):
    """A section-bound, token-budgeted run of consecutive sentence units."""

    model_config = ConfigDict(frozen=True)

    content: str
    sentences: tuple[str, ...]
    estimated_token_count: int
    section_heading: Optional[str] = None
    section_type: str = "general"
    index: int
    classification: Optional[Classification] = None
    quality_score: Optional[float] = None

    # Leading sentences repeated from the previous chunk of the same section
    overlap_count: int = 0
    # Single sentence larger than the chunk budget, emitted alone
    oversized: bool = False

    @property
    def heading(self) -> str:
        return self.section_heading or DEFAULT_HEADING

    @property
    def content_type(self) -> str:
        if self.classification and self.classification.primary_type:
            return self.classification.primary_type
        return "general"


class QualityStats(BaseModel):
    total_chunks: int = 0
    average_quality: float = 0.0
    type_distribution: dict[str, int] = {}
    heading_coverage: float = 0.0


class ChunkRecord(BaseModel):
    """Row handed to the storage collaborator for one accepted chunk."""

    chunk_id: str
    source_id: str
    version: str
    content: str
    heading: str
    quality_score: float
    estimated_token_count: int
    chunk_index: int
    content_type: str
    classification_data: dict[str, Any]
    created_at: datetime


class RunResult(BaseModel):
    success: bool
    job_id: str
    source_id: str
    version: str
    chunks_generated: int = 0
    rejected_count: int = 0
    section_count: int = 0
    processing_time_ms: int = 0
    quality_stats: QualityStats = Field(default_factory=QualityStats)
    filtering_stats: Optional[FilterStats] = None
    error: Optional[str] = None
