import pytest
from pydantic import ValidationError

from kbchunker.core.config import (
    ChunkingStrategyConfig,
    ContentFilteringConfig,
    PipelineConfig,
    Settings,
)

# Mark all tests as unit tests (no database needed)
pytestmark = pytest.mark.unit


def test_defaults():
    config = PipelineConfig()

    assert config.content_filtering.min_content_length == 100
    assert config.content_filtering.max_content_length is None
    assert config.chunking_strategy.optimal_chunk_size == 800
    assert config.chunking_strategy.overlap_size == 100
    assert config.quality_validation.min_quality_score == 0.4
    assert config.quality_validation.enable_real_time_validation is True
    assert config.structure.untitled_document == "single_section"
    assert config.content_classification.detect_fund_update is True


def test_camel_and_snake_keys():
    assert ChunkingStrategyConfig.model_validate({"optimalChunkSize": 400}).optimal_chunk_size == 400
    assert ChunkingStrategyConfig.model_validate({"optimal_chunk_size": 300}).optimal_chunk_size == 300


def test_invalid_values_rejected():
    with pytest.raises(ValidationError):
        ChunkingStrategyConfig(optimal_chunk_size=0)
    with pytest.raises(ValidationError):
        ContentFilteringConfig(min_content_length=-1)
    with pytest.raises(ValidationError):
        PipelineConfig.model_validate({"chunkingStrategy": {"chunkSize": 10}})


def test_yaml_auto_discovery(tmp_path):
    (tmp_path / ".kbchunker.yaml").write_text(
        "contentFiltering:\n"
        "  minContentLength: 50\n"
        "chunkingStrategy:\n"
        "  optimalChunkSize: 400\n"
        "  overlapSize: 40\n"
        "qualityValidation:\n"
        "  minQualityScore: 0.5\n"
        "contentClassification:\n"
        "  detectDefinitions: false\n"
    )

    settings = Settings.load_config()

    assert settings.pipeline.content_filtering.min_content_length == 50
    assert settings.pipeline.chunking_strategy.optimal_chunk_size == 400
    assert settings.pipeline.chunking_strategy.overlap_size == 40
    assert settings.pipeline.quality_validation.min_quality_score == 0.5
    assert settings.pipeline.content_classification.detect_definitions is False


def test_toml_pipeline_table(tmp_path):
    path = tmp_path / "custom.toml"
    path.write_text(
        'KBCHUNKER_WORKDIR = "work"\n'
        "[pipeline.chunking_strategy]\n"
        "optimal_chunk_size = 300\n"
    )

    settings = Settings.load_config(str(path))

    assert settings.KBCHUNKER_WORKDIR == "work"
    assert settings.pipeline.chunking_strategy.optimal_chunk_size == 300
    assert settings.pipeline.chunking_strategy.overlap_size == 100


def test_environment_values(monkeypatch):
    monkeypatch.setenv("KBCHUNKER_DB_URL", "sqlite://")

    assert Settings.load_config().KBCHUNKER_DB_URL == "sqlite://"


def test_file_overrides_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("KBCHUNKER_WORKDIR", "from-env")
    path = tmp_path / "settings.yml"
    path.write_text("KBCHUNKER_WORKDIR: from-file\n")

    assert Settings.load_config(str(path)).KBCHUNKER_WORKDIR == "from-file"


def test_missing_explicit_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Settings.load_config(str(tmp_path / "nope.yaml"))


def test_unsupported_format(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{}")

    with pytest.raises(ValueError, match="Unsupported config format"):
        Settings.load_config(str(path))
