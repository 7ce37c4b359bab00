"""
Sentence boundary detection and token estimation for chunking.
"""

import math
import re
from typing import List

# Fragments of this many characters or fewer are not sentence units
MIN_SENTENCE_CHARS = 10

# A sentence runs up to and including its terminal punctuation
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]*")


def estimate_tokens(text: str) -> int:
    """Cheap token proxy: ceil(characters / 4)."""
    return math.ceil(len(text) / 4)


def normalize_sentence(text: str) -> str:
    """Collapse internal whitespace (including line breaks) to single spaces."""
    return " ".join(text.split())


def split_into_sentences(text: str) -> List[str]:
    """Split text into sentence units on terminal punctuation.

    Terminal punctuation stays attached to its sentence. Fragments of
    MIN_SENTENCE_CHARS characters or fewer after trimming are discarded.
    """
    sentences = []
    for match in _SENTENCE_RE.finditer(text):
        sentence = normalize_sentence(match.group(0))
        if len(sentence) > MIN_SENTENCE_CHARS:
            sentences.append(sentence)
    return sentences


def join_sentences(sentences: List[str]) -> str:
    return " ".join(sentences)
