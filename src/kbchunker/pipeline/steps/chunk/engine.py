"""
Section chunking engine: greedy sentence packing under a token budget with
a trailing-sentence overlap window between consecutive chunks.
"""

from __future__ import annotations

from typing import List, Optional

from ....core.config import ChunkingStrategyConfig
from ....core.logging import log
from ....core.models import Chunk, Section
from ..structure.extractor import DocumentStructure
from .boundaries import estimate_tokens, join_sentences, split_into_sentences


def select_overlap_window(sentences: List[str], overlap_tokens: int) -> List[str]:
    """Trailing sentences whose summed token estimates stay within overlap_tokens."""
    window: List[str] = []
    total = 0
    for sentence in reversed(sentences):
        total += estimate_tokens(sentence)
        if total > overlap_tokens:
            break
        window.insert(0, sentence)
    return window


class SectionChunker:
    """Splits one section at a time into overlapping, token-bounded chunks.

    Invariants:
        * every chunk's estimated_token_count is ceil(len(content) / 4);
        * a chunk closes once the summed sentence estimates would pass
          optimal_chunk_size, so with its overlap seed it stays within
          optimal_chunk_size + overlap_size unless it is a single
          oversized sentence (``oversized=True``), which is emitted alone;
        * the first ``overlap_count`` sentences of a chunk are the last
          sentences of the previous chunk in the same section.
    """

    def __init__(
        self,
        config: Optional[ChunkingStrategyConfig] = None,
        min_content_length: int = 100,
    ):
        self.config = config or ChunkingStrategyConfig()
        self.min_content_length = min_content_length

    def _make_chunk(
        self,
        sentences: List[str],
        section: Section,
        index: int,
        overlap_count: int = 0,
        oversized: bool = False,
    ) -> Chunk:
        content = join_sentences(sentences)
        return Chunk(
            content=content,
            sentences=tuple(sentences),
            estimated_token_count=estimate_tokens(content),
            section_heading=section.heading,
            section_type=section.section_type,
            index=index,
            overlap_count=overlap_count,
            oversized=oversized,
        )

    def chunk_section(
        self, section_text: str, section: Section, start_index: int = 0
    ) -> List[Chunk]:
        """Chunk one section; indices start at ``start_index``."""
        if len(section_text) < self.min_content_length:
            log.debug(
                "chunk.section_skipped",
                heading=section.heading,
                length=len(section_text),
                min_content_length=self.min_content_length,
            )
            return []

        budget = self.config.optimal_chunk_size
        overlap = self.config.overlap_size

        chunks: List[Chunk] = []
        buffer: List[str] = []
        carried = 0  # leading buffer sentences repeated from the previous chunk
        buffer_tokens = 0

        def emit(sentences: List[str], overlap_count: int, oversized: bool = False):
            chunks.append(
                self._make_chunk(
                    sentences,
                    section,
                    start_index + len(chunks),
                    overlap_count=overlap_count,
                    oversized=oversized,
                )
            )

        for sentence in split_into_sentences(section_text):
            tokens = estimate_tokens(sentence)
            if tokens > budget:
                # Forced emit: the sentence can never share a chunk
                if len(buffer) > carried:
                    emit(buffer, carried)
                emit([sentence], 0, oversized=True)
                log.warning(
                    "chunk.oversized_sentence",
                    heading=section.heading,
                    tokens=tokens,
                    optimal_chunk_size=budget,
                )
                buffer, carried, buffer_tokens = [], 0, 0
                continue

            if buffer and buffer_tokens + tokens > budget:
                emit(buffer, carried)
                buffer = select_overlap_window(buffer, overlap)
                carried = len(buffer)
                buffer_tokens = sum(estimate_tokens(s) for s in buffer)

            buffer.append(sentence)
            buffer_tokens += tokens

        if len(buffer) > carried:
            emit(buffer, carried)

        log.debug(
            "chunk.section",
            heading=section.heading,
            section_type=section.section_type,
            chunks=len(chunks),
        )
        return chunks


def chunk_document(
    structure: DocumentStructure,
    config: Optional[ChunkingStrategyConfig] = None,
    min_content_length: int = 100,
) -> List[Chunk]:
    """Chunk every section in source order with document-global indices."""
    chunker = SectionChunker(config, min_content_length=min_content_length)
    chunks: List[Chunk] = []
    skipped = 0
    for section in structure.sections:
        section_chunks = chunker.chunk_section(
            structure.section_text(section), section, start_index=len(chunks)
        )
        if not section_chunks:
            skipped += 1
        chunks.extend(section_chunks)

    log.info(
        "chunk.done",
        sections=len(structure.sections),
        sections_without_chunks=skipped,
        chunks=len(chunks),
    )
    return chunks
