import pytest

from kbchunker.core.errors import ParseError
from kbchunker.pipeline.steps.ingest import (
    FallbackReader,
    HtmlReader,
    MarkdownReader,
    select_reader,
)

# Mark all tests as unit tests (no database needed)
pytestmark = pytest.mark.unit

HTML = """<html>
<head><title>Ignored title</title><style>p { color: red; }</style></head>
<body>
  <h1>Fund Guide</h1>
  <div>
    <p>Funds hold   money for
       specific purposes.</p>
    <h2>Creating Funds</h2>
    <ul><li>Open the dashboard.</li><li>Click New Fund.</li></ul>
  </div>
  <script>alert("x")</script>
</body>
</html>"""


class TestSelectReader:
    @pytest.mark.parametrize(
        "name,reader_type",
        [
            ("guide.html", HtmlReader),
            ("guide.HTM", HtmlReader),
            ("guide.md", MarkdownReader),
            ("guide.txt", FallbackReader),
            ("guide", FallbackReader),
        ],
    )
    def test_by_extension(self, name, reader_type):
        assert isinstance(select_reader(name), reader_type)


class TestHtmlReader:
    def test_blocks_and_heading_hints(self, tmp_path):
        path = tmp_path / "guide.html"
        path.write_text(HTML, encoding="utf-8")

        result = HtmlReader().read(path)

        assert result.content.split("\n\n") == [
            "Fund Guide",
            "Funds hold money for specific purposes.",
            "Creating Funds",
            "Open the dashboard.",
            "Click New Fund.",
        ]
        assert [(h.text, h.level) for h in result.structure_hints] == [
            ("Fund Guide", 1),
            ("Creating Funds", 2),
        ]
        assert result.metadata["source_type"] == "html"
        assert result.metadata["heading_count"] == 2

    def test_scripts_and_styles_dropped(self, tmp_path):
        path = tmp_path / "guide.html"
        path.write_text(HTML, encoding="utf-8")

        content = HtmlReader().read(path).content

        assert "alert" not in content
        assert "color" not in content
        assert "Ignored title" not in content

    def test_bare_text_without_blocks(self, tmp_path):
        path = tmp_path / "bare.html"
        path.write_text("<span>Just inline text.</span>", encoding="utf-8")

        result = HtmlReader().read(path)

        assert result.content == "Just inline text."
        assert result.structure_hints == []


class TestMarkdownReader:
    def test_atx_headings_become_hints(self, tmp_path):
        path = tmp_path / "guide.md"
        path.write_text(
            "# Fund Guide\n\nIntro text.\n\n## Creating Funds ##\n"
            "```\n# not a heading\n```\n",
            encoding="utf-8",
        )

        result = MarkdownReader().read(path)

        assert [(h.text, h.level) for h in result.structure_hints] == [
            ("Fund Guide", 1),
            ("Creating Funds", 2),
        ]
        assert result.content.splitlines()[0] == "Fund Guide"
        assert "# not a heading" in result.content


class TestFallbackReader:
    def test_plain_text_has_no_hints(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("FUND CREATION\nSome text.", encoding="utf-8")

        result = FallbackReader().read(path)

        assert result.content == "FUND CREATION\nSome text."
        assert result.structure_hints == []
        assert result.metadata == {"source_type": "text", "has_structure": False}


class TestParseErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ParseError) as exc_info:
            FallbackReader().read(tmp_path / "missing.txt")

        assert exc_info.value.path.endswith("missing.txt")

    def test_undecodable_bytes(self, tmp_path):
        path = tmp_path / "binary.html"
        path.write_bytes(b"\xff\xfe\x00\x80 not utf-8")

        with pytest.raises(ParseError):
            HtmlReader().read(path)
