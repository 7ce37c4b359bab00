"""kbchunker: structure-aware chunking for knowledge-base ingestion."""

__version__ = "0.1.0"
