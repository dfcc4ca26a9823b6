"""Markdown report generation for review results."""

from concord.core.models import AnalysisResult, ReviewResult


class ReviewReporter:
    """Generates Markdown reports from review results."""

    def generate_summary(self, result: ReviewResult) -> str:
        """Generate a short review summary, suitable for embedding in a report."""
        consensus = result.consensus
        status = "Escalated to human review" if result.requires_human_review else "Completed"

        lines = [
            f"# Review Summary: {result.submission_id}",
            "",
            f"Report Type: {result.report_type}",
            f"Status: {status}",
            f"Version: {result.version}",
            f"Security Level: {consensus.final_security_level.value}",
            f"Overall Confidence: {result.overall_confidence:.0%}",
            f"Discrepancies: {consensus.discrepancy_count}",
            f"Reviewed By: {', '.join(a.analyzer_name for a in result.analyses)}",
            f"Reviewed At: {result.review_ended_at.isoformat()}",
            f"Consensus Hash: {result.consensus_hash}",
            "",
        ]

        if consensus.human_review_reasons:
            lines.append("## Human Review Reasons")
            for reason in consensus.human_review_reasons:
                lines.append(f"- {reason}")
            lines.append("")

        if consensus.discrepancies:
            lines.append("## Discrepancies")
            for d in consensus.discrepancies:
                lines.append(f"- **{d.issue}** ({d.kind.value}, {d.resolved_severity.value})")
                for item in d.opinions:
                    lines.append(f"  - {item.analyzer_id}: {item.opinion}")
                lines.append(f"  - Resolution: {d.resolution}")
            lines.append("")

        if consensus.improvements_applied:
            lines.append("## Improvements Applied")
            for item in consensus.improvements_applied:
                lines.append(f"- {item}")
            lines.append("")

        return "\n".join(lines)

    def generate_detailed_report(self, result: ReviewResult) -> str:
        """Generate a detailed report including both analyses and final content."""
        lines = [self.generate_summary(result)]

        lines.append("# Analyses")
        lines.append("")
        for analysis in result.analyses:
            lines.extend(self._format_analysis(analysis))
            lines.append("")

        lines.append("# Final Content")
        lines.append("")
        lines.append(result.final_content)

        return "\n".join(lines)

    def _format_analysis(self, analysis: AnalysisResult) -> list[str]:
        """Format a single analysis."""
        lines = [
            f"## {analysis.analyzer_name}",
            f"Model: {analysis.model or 'N/A'}",
            f"Confidence: {analysis.confidence:.0%}",
            f"Security Level: {analysis.security_level.value}",
            f"Completeness: {analysis.completeness_score:.0%}",
            f"Clarity: {analysis.clarity_score:.0%}",
            "",
            "### Analysis",
            analysis.analysis_text,
        ]

        if analysis.flagged_concerns:
            lines.append("")
            lines.append("### Flagged Concerns")
            for concern in analysis.flagged_concerns:
                lines.append(f"- [{concern.severity.value}] {concern.description}")

        if analysis.suggested_improvements:
            lines.append("")
            lines.append("### Suggested Improvements")
            for item in analysis.suggested_improvements:
                lines.append(f"- {item}")

        return lines
