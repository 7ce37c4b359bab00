"""Heading detection and section partitioning."""

from .extractor import (
    DEFAULT_HEADING_RULES,
    DEFAULT_SECTION_TYPE_RULES,
    DocumentStructure,
    HeadingRule,
    SectionTypeRule,
    StructureExtractor,
    extract_structure,
)

__all__ = [
    "DEFAULT_HEADING_RULES",
    "DEFAULT_SECTION_TYPE_RULES",
    "DocumentStructure",
    "HeadingRule",
    "SectionTypeRule",
    "StructureExtractor",
    "extract_structure",
]
