import json
from pathlib import Path
from typing import cast
from urllib.parse import urlparse

import typer
import yaml  # type: ignore[import-untyped]

from ..core import config as config_module
from ..core.config import SETTINGS, Settings
from ..core.errors import KbChunkerError
from ..core.logging import LogFormat, log, setup_logging

app = typer.Typer(add_completion=False, help="kbchunker: structure-aware document chunking")
db_app = typer.Typer(help="Database commands")
app.add_typer(db_app, name="db")


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    log_format: str = typer.Option(
        SETTINGS.LOG_FORMAT, "--log-format", help="Logging format: json|plain|auto"
    ),
) -> None:
    setup_logging(
        format_type=(
            cast(LogFormat, log_format)
            if log_format in ("json", "plain", "auto")
            else "auto"
        )
    )

    # If no command was provided, show help
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


def _load_settings(config_file: str | None) -> Settings:
    """Load config with file < env precedence and install it as SETTINGS."""
    try:
        settings = Settings.load_config(config_file)
    except Exception as e:
        typer.echo(f"❌ Config error: {e}", err=True)
        raise typer.Exit(1) from e
    config_module.SETTINGS = settings
    log.info("config.loaded", config_file=config_file or "auto-discovered")
    return settings


def _safe_url(db_url: str) -> str:
    """Mask credentials in a database URL for display."""
    parsed_url = urlparse(db_url)
    if parsed_url.password:
        return db_url.replace(parsed_url.password, "***")
    return db_url


@app.command()
def version() -> None:
    from .. import __version__

    typer.echo(__version__)


@app.command()
def config(
    config_file: str | None = typer.Option(
        None, "--config", help="Config file (.kbchunker.yaml auto-discovered)"
    ),
    mask_secrets: bool = typer.Option(True, help="Mask secrets in output"),
) -> None:
    """Print the effective configuration."""
    settings = _load_settings(config_file)
    for k, v in settings.model_dump(exclude={"pipeline"}).items():
        if mask_secrets and k.endswith("DB_URL") and v:
            v = _safe_url(v)
        typer.echo(f"{k}={v}")
    typer.echo(
        yaml.safe_dump(
            {"pipeline": settings.pipeline.model_dump(by_alias=True)},
            sort_keys=False,
        ).rstrip()
    )


@app.command()
def chunk(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Document to chunk"),
    config_file: str | None = typer.Option(
        None, "--config", help="Config file (.kbchunker.yaml auto-discovered)"
    ),
    source_id: str | None = typer.Option(
        None, "--source-id", help="Source identifier (defaults to the file stem)"
    ),
    doc_version: str = typer.Option("1", "--version", help="Document version"),
    as_json: bool = typer.Option(False, "--json", help="Emit chunks as JSON on stdout"),
) -> None:
    """Run the pipeline without storage and print the accepted chunks."""
    from ..pipeline.runner import PipelineOrchestrator

    settings = _load_settings(config_file)
    orchestrator = PipelineOrchestrator(
        settings.pipeline, emit_events=settings.EVENTS
    )

    try:
        result = orchestrator.process_file(file, source_id or file.stem, doc_version)
    except KbChunkerError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1) from e

    if as_json:
        payload = {
            "result": result.model_dump(mode="json", exclude={"filtering_stats"}),
            "chunks": [r.model_dump(mode="json") for r in orchestrator.last_records],
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    for record in orchestrator.last_records:
        typer.echo(
            f"--- {record.chunk_id} [{record.content_type}] "
            f"heading={record.heading!r} quality={record.quality_score:.2f} "
            f"tokens={record.estimated_token_count}"
        )
        typer.echo(record.content)
    typer.echo(
        f"{result.chunks_generated} chunks accepted, "
        f"{result.rejected_count} rejected, "
        f"{result.section_count} sections",
        err=True,
    )


@app.command()
def ingest(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Document to ingest"),
    source_id: str = typer.Option(..., "--source-id", help="Source identifier"),
    doc_version: str = typer.Option(..., "--version", help="Document version"),
    db_url: str | None = typer.Option(None, "--db-url", help="Database URL (overrides KBCHUNKER_DB_URL)"),
    config_file: str | None = typer.Option(
        None, "--config", help="Config file (.kbchunker.yaml auto-discovered)"
    ),
    progress: bool | None = typer.Option(None, "--progress/--no-progress", help="Show progress bar"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
) -> None:
    """Chunk a document and store the accepted chunks in the database."""
    from ..core.models import RunResult
    from ..core.progress import ProgressRenderer
    from ..db.engine import create_tables, get_engine
    from ..db.store import SqlChunkStore, SqlJobTracker
    from ..pipeline.runner import PipelineOrchestrator

    settings = _load_settings(config_file)
    if progress is None:
        progress = None if settings.PROGRESS else False

    try:
        engine = get_engine(db_url or settings.KBCHUNKER_DB_URL)
        create_tables(engine)
    except Exception as e:
        typer.echo(f"❌ Database error: {e}", err=True)
        raise typer.Exit(1) from e

    orchestrator = PipelineOrchestrator(
        settings.pipeline,
        store=SqlChunkStore(engine),
        job_tracker=SqlJobTracker(engine),
        emit_events=settings.EVENTS,
    )
    renderer = ProgressRenderer(
        enabled=progress,
        no_color=no_color or settings.NO_COLOR,
    )
    renderer.start_banner(source_id, doc_version, str(file))
    try:
        result = orchestrator.process_file(
            file, source_id, doc_version, on_progress=renderer.on_progress
        )
    except KbChunkerError as e:
        renderer.finish_banner(
            RunResult(
                success=False,
                job_id=orchestrator.last_job_id or "-",
                source_id=source_id,
                version=doc_version,
                error=str(e),
            )
        )
        typer.echo(f"❌ Ingestion failed: {e}", err=True)
        raise typer.Exit(1) from e

    renderer.finish_banner(result)
    log.info(
        "cli.ingest.done",
        job_id=result.job_id,
        chunks=result.chunks_generated,
        rejected=result.rejected_count,
    )
    typer.echo(result.job_id)  # For scripting


@db_app.command("init")
def db_init_cmd(
    db_url: str | None = typer.Option(None, "--db-url", help="Database URL (overrides KBCHUNKER_DB_URL)"),
) -> None:
    """Initialize database schema (safe if tables already exist)."""
    from ..db.engine import check_db_health, create_tables, get_engine

    try:
        engine = get_engine(db_url)
        typer.echo(f"Initializing database: {engine.url.render_as_string(hide_password=True)}")
        create_tables(engine)
        health_info = check_db_health(engine)
    except Exception as e:
        typer.echo(f"❌ Error initializing database: {e}", err=True)
        raise typer.Exit(1) from e

    typer.echo("✅ Database schema initialized successfully")
    typer.echo(f"  Engine: {health_info['dialect']}")
    typer.echo(f"  Database: {health_info['database']}")


@db_app.command("check")
def db_check_cmd(
    db_url: str | None = typer.Option(None, "--db-url", help="Database URL (overrides KBCHUNKER_DB_URL)"),
) -> None:
    """Check database connectivity."""
    from ..db.engine import check_db_health, get_engine

    try:
        health_info = check_db_health(get_engine(db_url))
    except Exception as e:
        typer.echo(f"❌ Database check failed: {e}", err=True)
        raise typer.Exit(1) from e

    typer.echo("✅ Database connection successful")
    typer.echo(f"  Engine: {health_info['dialect']}")
    typer.echo(f"  Host: {health_info['host']}")
    typer.echo(f"  Database: {health_info['database']}")


if __name__ == "__main__":
    app()
