"""Rich console formatters for displaying review results."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from concord.config import Settings
from concord.core.enums import ReviewStatus, SecurityLevel
from concord.core.models import ReviewRecord, ReviewResult


class ReviewFormatter:
    """Formats review results for Rich console output."""

    LEVEL_COLORS = {
        SecurityLevel.LOW: "green",
        SecurityLevel.MEDIUM: "yellow",
        SecurityLevel.HIGH: "red",
        SecurityLevel.CRITICAL: "bold red",
    }

    STATUS_COLORS = {
        ReviewStatus.NOT_STARTED: "dim",
        ReviewStatus.IN_PROGRESS: "cyan",
        ReviewStatus.COMPLETED: "green",
        ReviewStatus.ESCALATED: "yellow",
        ReviewStatus.FAILED: "bold red",
    }

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def display_review(self, result: ReviewResult, verbose: bool = False) -> None:
        """Display a finished review."""
        consensus = result.consensus
        level_color = self.LEVEL_COLORS.get(consensus.final_security_level, "white")
        status_color = self.STATUS_COLORS.get(result.status, "white")

        self.console.print()
        self.console.print(
            Panel(
                f"[bold]{result.submission_id}[/bold] (v{result.version})\n\n"
                f"Report Type: {result.report_type}\n"
                f"Status: [{status_color}]{result.status.value}[/{status_color}]\n"
                f"Security Level: [{level_color}]{consensus.final_security_level.value}"
                f"[/{level_color}]\n"
                f"Confidence: {result.overall_confidence:.0%}\n"
                f"Discrepancies: {consensus.discrepancy_count} | "
                f"Time: {result.execution_time_seconds:.1f}s\n\n"
                f"Hash: [dim]{result.consensus_hash}[/dim]",
                title="Review",
                border_style=status_color.replace("bold ", ""),
            )
        )

        if consensus.human_review_reasons:
            reasons = "\n".join(f"  - {r}" for r in consensus.human_review_reasons)
            self.console.print(
                Panel(f"[yellow]Human review required[/yellow]\n{reasons}", expand=True)
            )

        if consensus.discrepancies:
            self._display_discrepancy_table(result)

        if verbose:
            self._display_analysis_table(result)

    def _display_discrepancy_table(self, result: ReviewResult) -> None:
        """Display table of discrepancies and their resolution."""
        self.console.print()

        table = Table(title="Discrepancies")
        table.add_column("Issue", style="cyan", max_width=40)
        table.add_column("Kind", justify="center")
        table.add_column("Severity", justify="center")
        table.add_column("Resolution", max_width=50)

        for d in result.consensus.discrepancies:
            color = self.LEVEL_COLORS.get(d.resolved_severity, "white")
            table.add_row(
                d.issue,
                d.kind.value,
                f"[{color}]{d.resolved_severity.value}[/{color}]",
                d.resolution,
            )

        self.console.print(table)

    def _display_analysis_table(self, result: ReviewResult) -> None:
        """Display both analyses side by side."""
        self.console.print()

        table = Table(title="Analyses")
        table.add_column("Analyzer", style="cyan", no_wrap=True)
        table.add_column("Confidence", justify="right")
        table.add_column("Level", justify="center")
        table.add_column("Concerns", justify="right")
        table.add_column("Analysis", max_width=60)

        for analysis in result.analyses:
            color = self.LEVEL_COLORS.get(analysis.security_level, "white")
            text = analysis.analysis_text
            if len(text) > 150:
                text = text[:150] + "..."

            table.add_row(
                analysis.analyzer_name,
                f"{analysis.confidence:.0%}",
                f"[{color}]{analysis.security_level.value}[/{color}]",
                str(len(analysis.flagged_concerns)),
                text,
            )

        self.console.print(table)

    def display_record(self, record: ReviewRecord) -> None:
        """Display the state of a submission."""
        color = self.STATUS_COLORS.get(record.status, "white")
        lines = [f"Status: [{color}]{record.status.value}[/{color}]"]
        if record.failure_reason:
            lines.append(f"Reason: {record.failure_reason}")
        if record.failure_message:
            lines.append(f"Details: {record.failure_message}")

        self.console.print(Panel("\n".join(lines), title=record.submission_id, border_style="red"))

    def display_settings(self, settings: Settings) -> None:
        """Display the active review configuration."""
        table = Table(title="Review Configuration")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", justify="right")

        thresholds = settings.thresholds
        timeouts = settings.timeouts

        table.add_row("Enabled", "yes" if settings.enabled else "no")
        table.add_row("Analyzer A", f"{settings.analyzer_a} ({settings.analyzer_a_model})")
        table.add_row("Analyzer B", f"{settings.analyzer_b} ({settings.analyzer_b_model})")
        table.add_row("Min overall confidence", f"{thresholds.min_overall:.2f}")
        table.add_row("Min individual confidence", f"{thresholds.min_individual:.2f}")
        table.add_row("Discrepancy limit", str(thresholds.discrepancy_limit))
        table.add_row("Analyzer A timeout", f"{timeouts.analyzer_a:.0f}s")
        table.add_row("Analyzer B timeout", f"{timeouts.analyzer_b:.0f}s")
        table.add_row("Total timeout", f"{timeouts.total:.0f}s")
        table.add_row("Retries", str(timeouts.retries))

        for report_type, required in settings.requirements.model_dump().items():
            table.add_row(f"Review {report_type}", "required" if required else "skipped")

        self.console.print(table)
