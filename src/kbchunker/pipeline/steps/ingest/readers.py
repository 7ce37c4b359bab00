"""Document readers.

Readers turn a file into ``ReadResult(content, structure_hints, metadata)``.
Native readers understand a format's own heading markup and report it as
structure hints; the fallback reader returns plain text with no hints. Any
failure to produce text raises ``ParseError``.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from bs4 import BeautifulSoup
from pydantic import BaseModel

from ....core.errors import ParseError
from ....core.logging import log
from ....core.models import StructureHint

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
BLOCK_TAGS = HEADING_TAGS + [
    "p",
    "li",
    "pre",
    "blockquote",
    "td",
    "th",
    "dt",
    "dd",
    "caption",
    "div",
    "section",
    "article",
]

_MD_HEADING = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")


class ReadResult(BaseModel):
    content: str
    structure_hints: list[StructureHint] = []
    metadata: dict[str, Any] = {}


class DocumentReader(ABC):
    """Abstract base class for document readers."""

    @abstractmethod
    def read(self, path: Path) -> ReadResult:
        """Extract text and optional heading hints from ``path``."""

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Format identifier recorded with the document."""


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(f"Failed to read {path}: {e}", path=str(path)) from e


class FallbackReader(DocumentReader):
    """UTF-8 text with no structure hints."""

    def read(self, path: Path) -> ReadResult:
        content = _read_text(path)
        return ReadResult(
            content=content,
            metadata={"source_type": self.source_type, "has_structure": False},
        )

    @property
    def source_type(self) -> str:
        return "text"


class NativeReader(DocumentReader):
    """Base for readers that extract headings from the format's own markup."""

    def read(self, path: Path) -> ReadResult:
        raw = _read_text(path)
        try:
            content, hints = self.extract(raw)
        except Exception as e:
            raise ParseError(
                f"Failed to parse {self.source_type} document {path}: {e}",
                path=str(path),
            ) from e
        log.debug(
            "reader.parsed",
            path=str(path),
            source_type=self.source_type,
            headings=len(hints),
        )
        return ReadResult(
            content=content,
            structure_hints=hints,
            metadata={
                "source_type": self.source_type,
                "has_structure": bool(hints),
                "heading_count": len(hints),
            },
        )

    @abstractmethod
    def extract(self, raw: str) -> tuple[str, list[StructureHint]]:
        """Return (structured text, heading hints) for raw file content."""


class HtmlReader(NativeReader):
    """HTML: leaf block elements become paragraphs, h1-h6 become hints."""

    def extract(self, raw: str) -> tuple[str, list[StructureHint]]:
        soup = BeautifulSoup(raw, "html.parser")
        for tag in soup(["script", "style", "noscript", "head"]):
            tag.decompose()

        blocks: list[str] = []
        hints: list[StructureHint] = []
        for element in soup.find_all(BLOCK_TAGS):
            # Containers are covered by their leaf blocks
            if element.find(BLOCK_TAGS):
                continue
            text = " ".join(element.get_text(" ").split())
            if not text:
                continue
            if element.name in HEADING_TAGS:
                hints.append(StructureHint(text=text, level=int(element.name[1])))
            blocks.append(text)

        if not blocks:
            text = soup.get_text("\n")
            return text.strip(), hints
        return "\n\n".join(blocks), hints

    @property
    def source_type(self) -> str:
        return "html"


class MarkdownReader(NativeReader):
    """Markdown: ATX headings become hints and lose their # markers."""

    def extract(self, raw: str) -> tuple[str, list[StructureHint]]:
        lines: list[str] = []
        hints: list[StructureHint] = []
        in_fence = False
        for line in raw.splitlines():
            if line.strip().startswith("```"):
                in_fence = not in_fence
                lines.append(line)
                continue
            match = None if in_fence else _MD_HEADING.match(line)
            if match:
                text = match.group(2).strip()
                hints.append(StructureHint(text=text, level=len(match.group(1))))
                lines.append(text)
            else:
                lines.append(line)
        return "\n".join(lines), hints

    @property
    def source_type(self) -> str:
        return "markdown"


_READERS: dict[str, type[DocumentReader]] = {
    ".html": HtmlReader,
    ".htm": HtmlReader,
    ".md": MarkdownReader,
    ".markdown": MarkdownReader,
}


def select_reader(path: Path | str) -> DocumentReader:
    """Pick a reader by file extension; unknown types use FallbackReader."""
    suffix = Path(path).suffix.lower()
    return _READERS.get(suffix, FallbackReader)()
