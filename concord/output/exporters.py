"""Export utilities for review results."""

import json
from pathlib import Path

from concord.core.models import ReviewResult
from concord.review.reporter import ReviewReporter


class JSONExporter:
    """Export results to JSON format."""

    def export(self, result: ReviewResult, file_path: str | Path) -> None:
        """Export review result to JSON file."""
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(self.to_string(result))

    def to_string(self, result: ReviewResult) -> str:
        """Convert review result to JSON string."""
        return json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False)


class MarkdownExporter:
    """Export results to Markdown format."""

    def __init__(self) -> None:
        self._reporter = ReviewReporter()

    def export(self, result: ReviewResult, file_path: str | Path) -> None:
        """Export review result to Markdown file."""
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(self.to_string(result))

    def to_string(self, result: ReviewResult) -> str:
        """Convert review result to Markdown string."""
        return self._reporter.generate_detailed_report(result)


def export_review(
    result: ReviewResult,
    file_path: str | Path,
    format: str = "json",
) -> None:
    """
    Export review result to file.

    Args:
        result: Review result to export
        file_path: Output file path
        format: Export format ('json', 'md')
    """
    format = format.lower()

    if format == "json":
        JSONExporter().export(result, file_path)
    elif format in ("md", "markdown"):
        MarkdownExporter().export(result, file_path)
    else:
        raise ValueError(f"Unknown export format: {format}")
