"""
Chunking step for the kbchunker pipeline.

This package provides section chunking with:
- Sentence-unit splitting on terminal punctuation
- Greedy packing under a ceil(chars / 4) token budget
- Trailing-sentence overlap between consecutive chunks of a section
- Forced emission of single sentences larger than the budget
"""

from .boundaries import (
    estimate_tokens,
    join_sentences,
    normalize_sentence,
    split_into_sentences,
)
from .engine import SectionChunker, chunk_document, select_overlap_window

__all__ = [
    "SectionChunker",
    "chunk_document",
    "estimate_tokens",
    "join_sentences",
    "normalize_sentence",
    "select_overlap_window",
    "split_into_sentences",
]
