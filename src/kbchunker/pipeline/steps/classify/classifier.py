"""
Rule-based content-type classification for chunks.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Pattern

from ....core.config import ContentClassificationConfig
from ....core.logging import log
from ....core.models import Chunk, Classification

# Matches needed for full confidence
CONFIDENCE_SATURATION = 10


@dataclass(frozen=True)
class ClassificationRule:
    category: str
    pattern: Pattern[str]


# Declaration order breaks ties between equal match counts
DEFAULT_CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "stepByStep",
        re.compile(r"Step \d+|First|Second|Third|Next|Finally|Then", re.I),
    ),
    ClassificationRule(
        "procedure",
        re.compile(r"navigate to|click|button|select|choose|enter", re.I),
    ),
    ClassificationRule(
        "definition",
        re.compile(r"is defined as|means|refers to|is a|are a", re.I),
    ),
    ClassificationRule(
        "fundCreation",
        re.compile(r"create.*fund|fund.*creat|new fund|fund setup", re.I),
    ),
    ClassificationRule(
        "fundUpdate",
        re.compile(r"fund update|update.*fund|updating", re.I),
    ),
)

# Config switch guarding each category
_DETECTOR_FLAGS = {
    "stepByStep": "detect_step_by_step",
    "procedure": "detect_procedures",
    "definition": "detect_definitions",
    "fundCreation": "detect_fund_creation",
    "fundUpdate": "detect_fund_update",
}


def rules_for_config(
    config: ContentClassificationConfig,
    rules: tuple[ClassificationRule, ...] = DEFAULT_CLASSIFICATION_RULES,
) -> tuple[ClassificationRule, ...]:
    """Drop the rules whose detector is switched off."""
    if not config.enable_auto_classification:
        return ()
    return tuple(
        rule
        for rule in rules
        if getattr(config, _DETECTOR_FLAGS.get(rule.category, ""), True)
    )


class ContentClassifier:
    """Counts pattern matches per category and picks the dominant one."""

    def __init__(
        self,
        config: Optional[ContentClassificationConfig] = None,
        rules: tuple[ClassificationRule, ...] = DEFAULT_CLASSIFICATION_RULES,
    ):
        self.config = config or ContentClassificationConfig()
        self.rules = rules_for_config(self.config, rules)

    def classify(self, chunk_text: str) -> Classification:
        counts = {
            rule.category: sum(1 for _ in rule.pattern.finditer(chunk_text))
            for rule in self.rules
        }
        max_count = max(counts.values(), default=0)
        if max_count == 0:
            return Classification()

        # dicts keep insertion order, so the first maximum is the earliest rule
        primary = next(c for c, n in counts.items() if n == max_count)
        return Classification(
            primary_type=primary,
            confidence=min(max_count / CONFIDENCE_SATURATION, 1.0),
            types=tuple(c for c, n in counts.items() if n > 0),
        )

    def classify_chunks(self, chunks: list[Chunk]) -> list[Chunk]:
        classified = [
            chunk.model_copy(update={"classification": self.classify(chunk.content)})
            for chunk in chunks
        ]
        log.info(
            "classify.done",
            chunks=len(classified),
            classified=sum(
                1 for c in classified if c.classification and c.classification.primary_type
            ),
        )
        return classified


def classify(chunk_text: str) -> Classification:
    """Classify text with the default rule table."""
    return ContentClassifier().classify(chunk_text)
