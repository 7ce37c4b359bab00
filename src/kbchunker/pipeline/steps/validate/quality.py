"""
Composite quality scoring and acceptance gating for chunks.

Score = 0.5 base
      + min(len / 500, 1) * 0.2      length factor
      + 0.2                          non-default heading present
      + confidence * 0.2             classified chunks
      + 0.1                          mentions the anchor term
      - 0.3                          content shorter than 100 characters
clamped to [0, 1]. Malformed input scores MALFORMED_SCORE instead of raising.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, List, NamedTuple, Optional, Sequence

from ....core.config import QualityValidationConfig
from ....core.errors import MalformedChunkError
from ....core.logging import log
from ....core.models import DEFAULT_HEADING, Chunk, Classification

MALFORMED_SCORE = 0.1


@dataclass(frozen=True)
class QualityWeights:
    base: float = 0.5
    length_weight: float = 0.2
    length_saturation: int = 500
    heading_bonus: float = 0.2
    classification_weight: float = 0.2
    anchor_term: str = "fund"
    anchor_bonus: float = 0.1
    short_length: int = 100
    short_penalty: float = 0.3


class ScoreResult(NamedTuple):
    value: float
    error: Optional[MalformedChunkError] = None


class ValidationResult(NamedTuple):
    accepted: List[Chunk]
    rejected_count: int


def _fields(chunk: Any) -> tuple[Any, Any, Any]:
    """(content, heading, classification) from a Chunk or a mapping."""
    if isinstance(chunk, Chunk):
        return chunk.content, chunk.section_heading, chunk.classification
    if isinstance(chunk, Mapping):
        heading = chunk.get("heading", chunk.get("section_heading"))
        return chunk.get("content"), heading, chunk.get("classification")
    return None, None, None


def _confidence(classification: Any) -> Optional[float]:
    if isinstance(classification, Mapping):
        primary = classification.get("primary_type") or classification.get(
            "primaryType"
        )
        confidence = classification.get("confidence")
    elif isinstance(classification, Classification):
        primary = classification.primary_type
        confidence = classification.confidence
    else:
        return None
    if not primary or not isinstance(confidence, (int, float)):
        return None
    return float(confidence)


class QualityScorer:
    def __init__(
        self,
        config: Optional[QualityValidationConfig] = None,
        weights: Optional[QualityWeights] = None,
    ):
        self.config = config or QualityValidationConfig()
        self.weights = weights or QualityWeights()

    def score_result(self, chunk: Any) -> ScoreResult:
        """Score a chunk; malformed input yields MALFORMED_SCORE with the error."""
        if chunk is None or not isinstance(chunk, (Chunk, Mapping)):
            return ScoreResult(
                MALFORMED_SCORE,
                MalformedChunkError(f"not a chunk: {type(chunk).__name__}"),
            )

        content, heading, classification = _fields(chunk)
        if not isinstance(content, str) or not content:
            return ScoreResult(
                MALFORMED_SCORE, MalformedChunkError("chunk missing content")
            )

        w = self.weights
        length = len(content)
        score = w.base
        score += min(length / w.length_saturation, 1.0) * w.length_weight
        if heading and heading != DEFAULT_HEADING:
            score += w.heading_bonus
        confidence = _confidence(classification)
        if confidence is not None:
            score += confidence * w.classification_weight
        if w.anchor_term in content.lower():
            score += w.anchor_bonus
        if length < w.short_length:
            score -= w.short_penalty

        return ScoreResult(max(0.0, min(1.0, score)))

    def score(self, chunk: Any) -> float:
        return self.score_result(chunk).value

    def validate(
        self,
        chunks: Sequence[Any],
        min_quality_score: Optional[float] = None,
    ) -> ValidationResult:
        """Split chunks into accepted (scored copies) and a rejection count."""
        threshold = (
            self.config.min_quality_score
            if min_quality_score is None
            else min_quality_score
        )
        gate = self.config.enable_real_time_validation

        accepted: List[Chunk] = []
        rejected = 0
        for chunk in chunks:
            result = self.score_result(chunk)
            if result.error is not None:
                log.warning("validate.malformed_chunk", reason=str(result.error))

            if not isinstance(chunk, Chunk):
                # Nothing to hand downstream for non-chunk input
                rejected += 1
                continue

            if gate and result.value < threshold:
                rejected += 1
                log.debug(
                    "validate.rejected",
                    index=chunk.index,
                    score=round(result.value, 3),
                    min_quality_score=threshold,
                )
                continue

            accepted.append(chunk.model_copy(update={"quality_score": result.value}))

        log.info(
            "validate.done",
            accepted=len(accepted),
            rejected=rejected,
            min_quality_score=threshold,
        )
        return ValidationResult(accepted, rejected)


def score(chunk: Any) -> float:
    """Score a chunk with default weights."""
    return QualityScorer().score(chunk)


def validate(
    chunks: Sequence[Any], min_quality_score: float = 0.4
) -> ValidationResult:
    """Validate chunks with default weights against ``min_quality_score``."""
    return QualityScorer().validate(chunks, min_quality_score)
