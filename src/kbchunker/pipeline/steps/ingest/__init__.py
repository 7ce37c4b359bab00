"""Document readers feeding the pipeline."""

from .readers import (
    DocumentReader,
    FallbackReader,
    HtmlReader,
    MarkdownReader,
    NativeReader,
    ReadResult,
    select_reader,
)

__all__ = [
    "DocumentReader",
    "FallbackReader",
    "HtmlReader",
    "MarkdownReader",
    "NativeReader",
    "ReadResult",
    "select_reader",
]
