"""Junk and boilerplate removal."""

from .content_filter import (
    DEFAULT_JUNK_PATTERNS,
    ContentFilter,
    FilterRules,
    collapse_whitespace,
    filter_content,
)

__all__ = [
    "DEFAULT_JUNK_PATTERNS",
    "ContentFilter",
    "FilterRules",
    "collapse_whitespace",
    "filter_content",
]
