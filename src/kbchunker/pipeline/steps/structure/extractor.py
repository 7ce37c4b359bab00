"""
Heading detection and section partitioning for filtered document text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Pattern

from ....core.config import StructureConfig
from ....core.logging import log
from ....core.models import Section, StructureHint


@dataclass(frozen=True)
class HeadingRule:
    pattern: Pattern[str]
    level: int


@dataclass(frozen=True)
class SectionTypeRule:
    """Heading text maps to ``section_type`` when it contains every keyword."""

    section_type: str
    keywords: tuple[str, ...]


DEFAULT_HEADING_RULES: tuple[HeadingRule, ...] = (
    HeadingRule(re.compile(r"^(Creating Funds?|Fund Creation)", re.I), 1),
    HeadingRule(re.compile(r"^(Fund Update|Updating)", re.I), 2),
    HeadingRule(re.compile(r"^(Fund Types?|Types of Funds?)", re.I), 2),
    HeadingRule(re.compile(r"^(Step \d+[:.]?)", re.I), 3),
    HeadingRule(
        re.compile(r"^(Hierarchy|Roll [Ff]orward|Security [Cc]ontext)", re.I), 2
    ),
)

DEFAULT_SECTION_TYPE_RULES: tuple[SectionTypeRule, ...] = (
    SectionTypeRule("fund_creation", ("creat", "fund")),
    SectionTypeRule("fund_update", ("update",)),
    SectionTypeRule("fund_types", ("type",)),
    SectionTypeRule("procedure_step", ("step",)),
    SectionTypeRule("fund_hierarchy", ("hierarchy",)),
)

FALLBACK_HEADING_LEVEL = 2
MAX_HEADING_LENGTH = 100
MAX_HEADING_WORDS = 8


@dataclass(frozen=True)
class DetectedHeading:
    text: str
    level: int
    line_index: int
    source: str  # "hint", "pattern" or "formatting"


@dataclass(frozen=True)
class DocumentStructure:
    """Sections in source order plus the line array they index into."""

    sections: tuple[Section, ...]
    lines: tuple[str, ...]
    headings: tuple[DetectedHeading, ...] = ()

    def section_text(self, section: Section) -> str:
        return "\n".join(self.lines[section.start_line : section.end_line + 1])


class StructureExtractor:
    """Partitions text into heading-delimited sections."""

    def __init__(
        self,
        config: Optional[StructureConfig] = None,
        heading_rules: tuple[HeadingRule, ...] = DEFAULT_HEADING_RULES,
        section_type_rules: tuple[SectionTypeRule, ...] = DEFAULT_SECTION_TYPE_RULES,
    ):
        self.config = config or StructureConfig()
        self.heading_rules = heading_rules
        self.section_type_rules = section_type_rules

    def detect_heading(
        self,
        line: str,
        line_index: int,
        hints: Optional[dict[str, int]] = None,
    ) -> Optional[DetectedHeading]:
        """Return heading info for ``line`` (already trimmed) or None."""
        if hints and line in hints:
            return DetectedHeading(line, hints[line], line_index, "hint")

        for rule in self.heading_rules:
            if rule.pattern.match(line):
                return DetectedHeading(line, rule.level, line_index, "pattern")

        # Formatting-based headings: short, all caps, few words
        if (
            len(line) < MAX_HEADING_LENGTH
            and line.isupper()
            and len(line.split()) < MAX_HEADING_WORDS
        ):
            return DetectedHeading(
                line, FALLBACK_HEADING_LEVEL, line_index, "formatting"
            )

        return None

    def classify_heading(self, heading_text: str) -> str:
        text = heading_text.lower()
        for rule in self.section_type_rules:
            if all(keyword in text for keyword in rule.keywords):
                return rule.section_type
        return "general"

    def extract(
        self, text: str, hints: Iterable[StructureHint] = ()
    ) -> DocumentStructure:
        lines = tuple(text.split("\n"))
        hint_levels = {h.text.strip(): h.level for h in hints if h.text.strip()}

        sections: list[Section] = []
        headings: list[DetectedHeading] = []
        current: Optional[Section] = None

        for i, raw_line in enumerate(lines):
            line = raw_line.strip()
            if not line:
                continue

            heading = self.detect_heading(line, i, hint_levels)
            if heading is None:
                continue
            headings.append(heading)

            if current is not None:
                sections.append(current.model_copy(update={"end_line": i - 1}))
            elif self.config.keep_preamble and any(
                ln.strip() for ln in lines[:i]
            ):
                sections.append(Section(start_line=0, end_line=i - 1))

            current = Section(
                heading=heading.text,
                level=heading.level,
                section_type=self.classify_heading(heading.text),
                start_line=i,
                end_line=i,
            )

        if current is not None:
            sections.append(
                current.model_copy(update={"end_line": len(lines) - 1})
            )
        elif (
            text.strip()
            and self.config.untitled_document == "single_section"
        ):
            sections.append(Section(start_line=0, end_line=len(lines) - 1))

        log.info(
            "structure.done",
            headings=len(headings),
            sections=len(sections),
            lines=len(lines),
        )
        return DocumentStructure(tuple(sections), lines, tuple(headings))


def extract_structure(
    filtered_text: str,
    hints: Iterable[StructureHint] = (),
    config: Optional[StructureConfig] = None,
) -> DocumentStructure:
    """Functional entry point returning sections and the retained lines."""
    return StructureExtractor(config).extract(filtered_text, hints)
