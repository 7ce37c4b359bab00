"""Quality scoring and acceptance gating."""

from .quality import (
    MALFORMED_SCORE,
    QualityScorer,
    QualityWeights,
    ScoreResult,
    ValidationResult,
    score,
    validate,
)

__all__ = [
    "MALFORMED_SCORE",
    "QualityScorer",
    "QualityWeights",
    "ScoreResult",
    "ValidationResult",
    "score",
    "validate",
]
