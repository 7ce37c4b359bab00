from pathlib import Path
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict


class _Section(BaseModel):
    """Config section accepting camelCase (file format) or snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )


class ContentFilteringConfig(_Section):
    remove_table_of_contents: bool = True
    remove_copyright_notices: bool = True
    preserve_line_breaks: bool = True  # False collapses the document to one line
    min_content_length: int = Field(default=100, ge=0)
    max_content_length: Optional[int] = Field(default=None, ge=0)  # None/0 = no cap


class StructureConfig(_Section):
    # "single_section": one implicit untitled section; "empty": no sections
    untitled_document: Literal["single_section", "empty"] = "single_section"
    keep_preamble: bool = False  # text before the first heading


class ChunkingStrategyConfig(_Section):
    optimal_chunk_size: int = Field(default=800, gt=0)
    overlap_size: int = Field(default=100, ge=0)


class QualityValidationConfig(_Section):
    enable_real_time_validation: bool = True
    min_quality_score: float = Field(default=0.4, ge=0.0, le=1.0)


class ContentClassificationConfig(_Section):
    enable_auto_classification: bool = True
    detect_step_by_step: bool = True
    detect_procedures: bool = True
    detect_definitions: bool = True
    detect_fund_creation: bool = True
    detect_fund_update: bool = True


class PipelineConfig(_Section):
    """Recognized pipeline options, grouped the way config files spell them."""

    content_filtering: ContentFilteringConfig = Field(
        default_factory=ContentFilteringConfig
    )
    structure: StructureConfig = Field(default_factory=StructureConfig)
    chunking_strategy: ChunkingStrategyConfig = Field(
        default_factory=ChunkingStrategyConfig
    )
    quality_validation: QualityValidationConfig = Field(
        default_factory=QualityValidationConfig
    )
    content_classification: ContentClassificationConfig = Field(
        default_factory=ContentClassificationConfig
    )


PIPELINE_SECTIONS = {
    "contentFiltering",
    "content_filtering",
    "structure",
    "chunkingStrategy",
    "chunking_strategy",
    "qualityValidation",
    "quality_validation",
    "contentClassification",
    "content_classification",
}


class Settings(BaseSettings):
    # Database (required for `ingest`, optional for `chunk`)
    KBCHUNKER_DB_URL: Optional[str] = None

    # Workspace paths
    KBCHUNKER_WORKDIR: str = "var"  # Tool-managed artifacts (event logs)

    # Observability & UI
    LOG_FORMAT: str = "auto"  # json|plain|auto
    PROGRESS: bool = True  # Show progress bars
    NO_COLOR: bool = False  # Disable colored output
    EVENTS: bool = False  # Write NDJSON stage events under the workdir

    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def load_config(cls, config_file: Optional[str] = None) -> "Settings":
        """Load settings from a YAML/TOML config file plus the environment."""
        config_data: Dict[str, Any] = {}

        # Find config file
        if config_file:
            config_path: Optional[Path] = Path(config_file)
        else:
            # Auto-discover .kbchunker.{yaml,yml,toml}
            for ext in ["yaml", "yml", "toml"]:
                config_path = Path(f".kbchunker.{ext}")
                if config_path.exists():
                    break
            else:
                config_path = None

        if config_path is not None and config_file and not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        # Load config file if found
        if config_path and config_path.exists():
            if config_path.suffix in [".yaml", ".yml"]:
                import yaml  # type: ignore[import-untyped]

                with open(config_path) as f:
                    config_data = yaml.safe_load(f) or {}
            elif config_path.suffix == ".toml":
                import tomllib

                with open(config_path, "rb") as f:
                    config_data = tomllib.load(f)
            else:
                raise ValueError(
                    f"Unsupported config format: {config_path.suffix}"
                )

        # Pipeline sections may sit at top level or under "pipeline"
        pipeline_data = dict(config_data.pop("pipeline", None) or {})
        for key in list(config_data):
            if key in PIPELINE_SECTIONS:
                pipeline_data[key] = config_data.pop(key)
        if pipeline_data:
            config_data["pipeline"] = PipelineConfig.model_validate(
                pipeline_data
            )

        # Values from the file take precedence over environment variables
        return cls(**config_data)


# Default settings - will be replaced by load_config() during CLI startup
SETTINGS = Settings()
