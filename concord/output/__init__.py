"""Output formatting and export utilities."""

from concord.output.exporters import JSONExporter, MarkdownExporter, export_review
from concord.output.formatters import ReviewFormatter

__all__ = [
    "JSONExporter",
    "MarkdownExporter",
    "ReviewFormatter",
    "export_review",
]
