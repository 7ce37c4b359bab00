"""
Junk and boilerplate removal ahead of structure detection.

Removes table-of-contents blocks, copyright/legal notices and a table of
configurable junk patterns, then normalizes whitespace.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Pattern, Sequence

from ....core.config import ContentFilteringConfig
from ....core.logging import log
from ....core.models import FilterStats

_FLAGS = re.IGNORECASE | re.MULTILINE

# A block ends at a blank line, a line starting with a capital letter, or EOF
_BLOCK_END = r"(?=\n[ \t]*\n|\n(?-i:[A-Z])|\n?\Z)"

DEFAULT_JUNK_PATTERNS: tuple[Pattern[str], ...] = tuple(
    re.compile(p, _FLAGS)
    for p in (
        r"Table of [Cc]ontents",
        r"© \w+",
        r"www\.\w+\.com",
        r"Press release",
        r"Confidential Information - Do Not Redistribute",
        r"^Introduction\s*\.{3,}",
        r"^\.{3,}",
    )
)

TOC_BLOCK_PATTERNS: tuple[Pattern[str], ...] = (
    re.compile(r"Table of Contents[\s\S]*?" + _BLOCK_END, re.IGNORECASE),
)

NOTICE_BLOCK_PATTERNS: tuple[Pattern[str], ...] = (
    re.compile(r"©.*?" + _BLOCK_END, re.IGNORECASE),
    re.compile(r"Confidential Information.*?" + _BLOCK_END, re.IGNORECASE),
)


@dataclass(frozen=True)
class FilterRules:
    """Immutable pattern tables used by ContentFilter."""

    junk_patterns: tuple[Pattern[str], ...] = DEFAULT_JUNK_PATTERNS
    toc_patterns: tuple[Pattern[str], ...] = TOC_BLOCK_PATTERNS
    notice_patterns: tuple[Pattern[str], ...] = NOTICE_BLOCK_PATTERNS


def _strip(
    text: str, patterns: Sequence[Pattern[str]], removed: list[str]
) -> str:
    for pattern in patterns:
        spans = [m.group(0) for m in pattern.finditer(text) if m.group(0)]
        if spans:
            removed.extend(spans)
            text = pattern.sub("", text)
    return text


def collapse_whitespace(text: str, preserve_line_breaks: bool = True) -> str:
    """Collapse whitespace runs; optionally keep line structure."""
    if not preserve_line_breaks:
        return re.sub(r"\s+", " ", text).strip()

    text = re.sub(r"\r\n?", "\n", text)
    lines = [re.sub(r"[^\S\n]+", " ", line).strip() for line in text.split("\n")]
    text = "\n".join(lines)
    # Runs of blank lines become a single blank line
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


class ContentFilter:
    """Strips boilerplate from raw document text."""

    def __init__(
        self,
        config: Optional[ContentFilteringConfig] = None,
        rules: Optional[FilterRules] = None,
    ):
        self.config = config or ContentFilteringConfig()
        self.rules = rules or FilterRules()

    def filter(
        self,
        raw_text: str,
        junk_patterns: Optional[Sequence[Pattern[str]]] = None,
    ) -> tuple[str, FilterStats]:
        """Return the filtered text and removal statistics.

        ``junk_patterns`` overrides the configured junk table for this call.
        """
        original_length = len(raw_text)
        text = re.sub(r"\r\n?", "\n", raw_text)

        max_len = self.config.max_content_length
        if max_len and len(text) > max_len:
            log.warning(
                "filter.truncated",
                original_length=original_length,
                max_content_length=max_len,
            )
            text = text[:max_len]

        removed: list[str] = []
        if self.config.remove_table_of_contents:
            text = _strip(text, self.rules.toc_patterns, removed)
        if self.config.remove_copyright_notices:
            text = _strip(text, self.rules.notice_patterns, removed)
        patterns = (
            self.rules.junk_patterns if junk_patterns is None else junk_patterns
        )
        text = _strip(text, patterns, removed)

        text = collapse_whitespace(text, self.config.preserve_line_breaks)

        reduction = (
            round((1 - len(text) / original_length) * 100)
            if original_length
            else 0
        )
        stats = FilterStats(
            removed_count=len(removed),
            original_length=original_length,
            filtered_length=len(text),
            reduction_percentage=reduction,
            removed_spans=removed,
        )
        log.info(
            "filter.done",
            removed=stats.removed_count,
            original_length=original_length,
            filtered_length=stats.filtered_length,
            reduction_pct=reduction,
        )
        return text, stats


def filter_content(
    raw_text: str,
    junk_patterns: Sequence[Pattern[str]] = DEFAULT_JUNK_PATTERNS,
    config: Optional[ContentFilteringConfig] = None,
) -> tuple[str, FilterStats]:
    """Functional entry point: filter ``raw_text`` with ``junk_patterns``."""
    return ContentFilter(config).filter(raw_text, junk_patterns)
