"""Progress rendering for TTY and CLI output separation with Rich observability."""

import os
import sys
from typing import TextIO

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskID, TextColumn, TimeElapsedColumn
from rich.table import Table

from .models import RunResult


def is_tty() -> bool:
    """Check if stderr is a TTY (interactive terminal)."""
    return sys.stderr.isatty()


def is_ci() -> bool:
    """Check if running in CI environment."""
    ci_vars = ["CI", "CONTINUOUS_INTEGRATION", "GITHUB_ACTIONS", "JENKINS_URL"]
    return any(os.environ.get(var) for var in ci_vars)


def should_use_pretty() -> bool:
    """Determine if pretty output should be used based on TTY and CI detection."""
    return is_tty() and not is_ci()


class ProgressRenderer:
    """Renders pipeline checkpoints as a Rich progress bar plus banners."""

    def __init__(
        self,
        enabled: bool | None = None,
        file: TextIO | None = None,
        no_color: bool = False,
    ):
        """
        Initialize progress renderer.

        Args:
            enabled: Whether to show progress. Auto-detected if None.
            file: Output file, defaults to stderr.
            no_color: Disable color output for Rich console.
        """
        self.enabled = enabled if enabled is not None else should_use_pretty()
        self.file = file or sys.stderr
        self.no_color = no_color

        self.console = Console(
            file=self.file,
            color_system=None if no_color else "auto",
            force_terminal=self.enabled,
        )

        self.progress: Progress | None = None
        self.task: TaskID | None = None
        self.checkpoints: list[tuple[int, str]] = []

    def start_banner(self, source_id: str, version: str, path: str | None = None):
        """Print the start banner and open the progress bar."""
        if not self.enabled:
            return

        lines = [
            f"[bold blue]🚀 Ingesting:[/bold blue] [cyan]{source_id}[/cyan] (v{version})",
        ]
        if path:
            lines.append(f"[bold]File:[/bold] {path}")

        self.console.print(
            Panel(
                "\n".join(lines),
                title="[bold green]Document Ingestion[/bold green]",
                border_style="blue",
            )
        )

        self.progress = Progress(
            TextColumn("[bold blue]Pipeline"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=self.console,
        )
        self.progress.start()
        self.task = self.progress.add_task("Starting", total=100)

    def on_progress(self, percentage: int, status_label: str) -> None:
        """Progress callback handed to the pipeline orchestrator."""
        self.checkpoints.append((percentage, status_label))
        if not self.enabled or self.progress is None or self.task is None:
            return
        self.progress.update(
            self.task, completed=percentage, description=status_label
        )

    def stop(self) -> None:
        if self.progress is not None:
            self.progress.stop()
            self.progress = None

    def finish_banner(self, result: RunResult):
        """Print the finish banner with quality statistics."""
        self.stop()
        if not self.enabled:
            return

        stats = result.quality_stats
        if result.success:
            lines = [
                f"[bold green]✅ Completed job:[/bold green] [cyan]{result.job_id}[/cyan]",
                f"[bold]Elapsed:[/bold] {result.processing_time_ms} ms",
                f"[bold]Chunks:[/bold] [green]{result.chunks_generated}[/green] accepted, "
                f"[yellow]{result.rejected_count}[/yellow] rejected",
                f"[bold]Average quality:[/bold] {stats.average_quality:.2f}",
                f"[bold]Heading coverage:[/bold] {stats.heading_coverage:.0%}",
            ]
            title = "[bold green]🎉 Ingestion Complete[/bold green]"
            style = "green"
        else:
            lines = [
                f"[bold red]❌ Failed job:[/bold red] [cyan]{result.job_id}[/cyan]",
                f"[bold]Error:[/bold] {escape(result.error or '')}",
            ]
            title = "[bold red]Ingestion Failed[/bold red]"
            style = "red"

        self.console.print()
        self.console.print(
            Panel("\n".join(lines), title=title, border_style=style)
        )

        if stats.type_distribution:
            table = Table(
                title="Content Types",
                show_header=True,
                header_style="bold blue",
            )
            table.add_column("Type", style="cyan")
            table.add_column("Chunks", justify="right", style="green")
            for content_type, count in sorted(stats.type_distribution.items()):
                table.add_row(content_type, str(count))
            self.console.print(table)
