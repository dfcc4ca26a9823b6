"""Concord CLI application using Typer and Rich."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from concord import __version__
from concord.config import get_settings
from concord.core.enums import ReportType
from concord.core.exceptions import ConfigurationError, ReviewFailed

# Initialize CLI app and console
app = typer.Typer(
    name="concord",
    help="Multi-model consensus review for security reports",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

# Sub-applications
analyzers_app = typer.Typer(help="Analyzer profile commands")
app.add_typer(analyzers_app, name="analyzers")

EXIT_ESCALATED = 2


def configure_logging(level: str) -> None:
    """Route library logging through Rich on stderr."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold cyan]Concord[/bold cyan] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Concord - two reviewing models, one consensus, humans for the hard cases."""
    configure_logging(get_settings().log_level)


@app.command()
def review(
    report_file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="Path to the report text to review",
    ),
    report_type: str = typer.Option(
        ...,
        "--type",
        "-t",
        help=f"Report type ({', '.join(t.value for t in ReportType)})",
    ),
    submission_id: Optional[str] = typer.Option(
        None,
        "--submission-id",
        "-i",
        help="Submission identifier (generated when omitted)",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Review even if the report type does not require it",
    ),
    export: Optional[str] = typer.Option(
        None,
        "--export",
        "-e",
        help="Export format: json or md",
    ),
    output_file: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file path for export",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show both analyses",
    ),
) -> None:
    """
    Review a report with both analyzers and reconcile the results.

    Examples:
        concord review incident.txt --type incident_report
        concord review log.txt --type daily_log --force
        concord review incident.txt -t incident_report --export md -o review.md
    """
    settings = get_settings()

    if not settings.is_configured:
        console.print(
            "[red]Error:[/red] ANTHROPIC_API_KEY not configured. "
            "Please set it in your .env file or environment."
        )
        raise typer.Exit(1)

    from rich.progress import Progress, SpinnerColumn, TextColumn
    from concord.review.orchestrator import ReviewOrchestrator
    from concord.output.formatters import ReviewFormatter
    from concord.output.exporters import export_review

    content = report_file.read_text(encoding="utf-8")
    if not content.strip():
        console.print(f"[red]Error:[/red] Report file is empty: {report_file}")
        raise typer.Exit(1)

    report_data = {"content": content, "source_file": report_file.name}
    if submission_id:
        report_data["submission_id"] = submission_id

    formatter = ReviewFormatter(console)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Initializing...", total=None)

        orchestrator = ReviewOrchestrator(
            settings=settings,
            progress_callback=lambda msg: progress.update(task, description=msg),
        )

        if not force and not orchestrator.should_perform_review(report_type, report_data):
            progress.stop()
            console.print(
                f"[yellow]Review not required for '{report_type}'.[/yellow] "
                "Use --force to review anyway."
            )
            raise typer.Exit(0)

        try:
            result = asyncio.run(orchestrator.perform_review(report_data, report_type))
        except ConfigurationError as e:
            progress.stop()
            console.print(f"\n[red]Configuration error:[/red] {e}")
            raise typer.Exit(1)
        except ValueError as e:
            progress.stop()
            console.print(f"\n[red]Invalid report:[/red] {e}")
            raise typer.Exit(1)
        except ReviewFailed as e:
            progress.stop()
            console.print(f"\n[red]Review inconclusive:[/red] {e.message}")
            record = asyncio.run(orchestrator.get_review_record(e.submission_id or ""))
            if record:
                formatter.display_record(record)
            console.print("Route this report to a human reviewer.")
            raise typer.Exit(1)

    formatter.display_review(result, verbose=verbose)

    if export and output_file:
        try:
            export_review(result, output_file, format=export)
            console.print(f"\n[green]Review exported to {output_file}[/green]")
        except (OSError, ValueError) as e:
            console.print(f"\n[red]Export error:[/red] {e}")

    if result.requires_human_review:
        raise typer.Exit(EXIT_ESCALATED)


@app.command()
def check(
    report_type: str = typer.Argument(..., help="Report type to check"),
) -> None:
    """Show whether a report type goes through review."""
    from concord.review.policy import ThresholdPolicy

    settings = get_settings()
    policy = ThresholdPolicy(settings)

    if policy.should_perform_review(report_type):
        console.print(f"[green]Review required[/green] for '{report_type}'.")
    elif not policy.is_enabled:
        console.print(
            f"[yellow]Review skipped[/yellow] for '{report_type}': "
            "the review pipeline is disabled (CONCORD_ENABLED)."
        )
    else:
        console.print(f"[yellow]Review skipped[/yellow] for '{report_type}'.")


@app.command("config")
def show_config(
    check_api: bool = typer.Option(
        False,
        "--check-api",
        help="Send a minimal request to each configured model",
    ),
) -> None:
    """Show the active review configuration."""
    from concord.review.policy import ThresholdPolicy
    from concord.output.formatters import ReviewFormatter

    settings = get_settings()
    ReviewFormatter(console).display_settings(settings)

    try:
        ThresholdPolicy(settings).validate()
    except ConfigurationError as e:
        console.print(f"\n[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1)

    console.print("\n[green]Configuration is valid.[/green]")

    if check_api:
        if not settings.is_configured:
            console.print("[red]Error:[/red] ANTHROPIC_API_KEY not configured.")
            raise typer.Exit(1)
        if not asyncio.run(_check_models(settings)):
            raise typer.Exit(1)


async def _check_models(settings) -> bool:
    """Run a health check against both analyzer models."""
    from concord.llm.client import ClaudeClient

    healthy = True
    for slot, model in (("A", settings.analyzer_a_model), ("B", settings.analyzer_b_model)):
        if await ClaudeClient(model, settings).health_check():
            console.print(f"[green]Analyzer {slot} model reachable:[/green] {model}")
        else:
            console.print(f"[red]Analyzer {slot} model unreachable:[/red] {model}")
            healthy = False
    return healthy


@analyzers_app.command("list")
def analyzers_list(
    show_all: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Include disabled profiles",
    ),
) -> None:
    """List analyzer profiles."""
    from concord.analyzers.registry import AnalyzerRegistry

    settings = get_settings()
    registry = AnalyzerRegistry(settings)
    profiles = registry.list_profiles(enabled_only=not show_all)

    if not profiles:
        console.print("[yellow]No analyzer profiles found.[/yellow]")
        return

    slots = {settings.analyzer_a: "A", settings.analyzer_b: "B"}

    table = Table(title="Analyzer Profiles")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Slot", justify="center")
    table.add_column("Description", max_width=60)

    for profile in profiles:
        table.add_row(
            profile.id,
            profile.name,
            slots.get(profile.id, "-"),
            profile.description,
        )

    console.print(table)


@analyzers_app.command("info")
def analyzers_info(
    analyzer_id: str = typer.Argument(..., help="Analyzer profile ID"),
) -> None:
    """Show the prompt of an analyzer profile."""
    from concord.llm.prompts import PromptBuilder, PromptLoader

    settings = get_settings()
    loader = PromptLoader(settings.prompts_dir)

    try:
        data = loader.load_analyzer_prompt(analyzer_id)
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] Analyzer profile '{analyzer_id}' not found")
        console.print(f"Available: {', '.join(loader.list_available())}")
        raise typer.Exit(1)

    system_prompt = PromptBuilder().build_system_prompt(
        persona=data.get("persona", ""),
        focus_areas=data.get("focus_areas", []),
        criteria=data.get("criteria", []),
    )

    console.print(
        Panel(
            system_prompt,
            title=f"{data.get('name', analyzer_id)} ({analyzer_id})",
            border_style="blue",
        )
    )


if __name__ == "__main__":
    app()
