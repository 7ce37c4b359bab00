"""Rule-based content classification."""

from .classifier import (
    DEFAULT_CLASSIFICATION_RULES,
    ClassificationRule,
    ContentClassifier,
    classify,
    rules_for_config,
)

__all__ = [
    "DEFAULT_CLASSIFICATION_RULES",
    "ClassificationRule",
    "ContentClassifier",
    "classify",
    "rules_for_config",
]
