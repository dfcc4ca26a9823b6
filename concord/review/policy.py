"""Configuration-driven escalation and threshold policy."""

from typing import Any, Iterable

from concord.config import Settings, get_settings
from concord.core.enums import SecurityLevel
from concord.core.exceptions import ConfigurationError


class ThresholdPolicy:
    """
    Pure predicates over confidence, severity and discrepancy count.

    Every method is deterministic and side-effect free; the policy only
    reads the settings it was built from.
    """

    ANALYZER_SLOTS = ("a", "b")

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._thresholds = self._settings.thresholds
        self._timeouts = self._settings.timeouts

    @property
    def is_enabled(self) -> bool:
        """Global feature switch."""
        return self._settings.enabled

    @property
    def min_overall(self) -> float:
        return self._thresholds.min_overall

    @property
    def min_individual(self) -> float:
        return self._thresholds.min_individual

    @property
    def discrepancy_limit(self) -> int:
        return self._thresholds.discrepancy_limit

    @property
    def total_timeout(self) -> float:
        return self._timeouts.total

    def analyzer_timeout(self, slot: str) -> float:
        """Timeout for analyzer slot 'a' or 'b'."""
        if slot not in self.ANALYZER_SLOTS:
            raise ValueError(f"Unknown analyzer slot: {slot}")
        return getattr(self._timeouts, f"analyzer_{slot}")

    def requires_review(self, report_type: str) -> bool:
        """Check if the report type is configured for mandatory review."""
        return self._settings.requirements.requires_review(report_type)

    def should_perform_review(self, report_type: Any, content: Any = None) -> bool:
        """
        Decide whether a report goes through the review pipeline.

        Never raises: anything that is not a recognisable report type simply
        does not require review.
        """
        if not self.is_enabled:
            return False
        if not isinstance(report_type, str) or not report_type.strip():
            return False
        return self.requires_review(report_type)

    def human_review_reasons(
        self,
        consensus_confidence: float,
        individual_confidences: Iterable[tuple[str, float]],
        discrepancy_count: int,
        final_security_level: SecurityLevel,
    ) -> list[str]:
        """
        Collect every reason a review must be escalated to a human.

        Args:
            consensus_confidence: Merged confidence of both analyses
            individual_confidences: (analyzer_id, confidence) pairs
            discrepancy_count: Number of recorded discrepancies
            final_security_level: Reconciled security level

        Returns:
            Reasons in a fixed order; empty when no escalation is needed
        """
        reasons = []

        if consensus_confidence < self.min_overall:
            reasons.append(
                f"Consensus confidence {consensus_confidence:.2f} is below "
                f"the minimum of {self.min_overall:.2f}"
            )

        for analyzer_id, confidence in individual_confidences:
            if confidence < self.min_individual:
                reasons.append(
                    f"Analyzer {analyzer_id} confidence {confidence:.2f} is below "
                    f"the minimum of {self.min_individual:.2f}"
                )

        if discrepancy_count > self.discrepancy_limit:
            reasons.append(
                f"{discrepancy_count} discrepancies exceed the limit of {self.discrepancy_limit}"
            )

        if final_security_level.is_elevated:
            reasons.append(f"Final security level is {final_security_level.value}")

        return reasons

    def validate(self) -> None:
        """Fail fast on missing or inconsistent configuration."""
        problems = []

        for name in ("min_overall", "min_individual"):
            value = getattr(self._thresholds, name)
            if value is None or not 0 <= value <= 1:
                problems.append(f"threshold {name} must be within [0, 1], got {value}")

        if self.discrepancy_limit is None or self.discrepancy_limit < 0:
            problems.append(
                f"discrepancy_limit must be non-negative, got {self.discrepancy_limit}"
            )

        for name in ("analyzer_a", "analyzer_b", "total"):
            value = getattr(self._timeouts, name)
            if value is None or value <= 0:
                problems.append(f"timeout {name} must be positive, got {value}")

        if not problems and self.total_timeout < max(
            self._timeouts.analyzer_a, self._timeouts.analyzer_b
        ):
            problems.append("total timeout must not be shorter than an analyzer timeout")

        if self._timeouts.retries < 0:
            problems.append(f"retries must be non-negative, got {self._timeouts.retries}")
        if self._timeouts.retry_backoff < 0:
            problems.append("retry_backoff must be non-negative")

        if self._settings.analyzer_a == self._settings.analyzer_b:
            problems.append(
                "analyzer_a and analyzer_b must be different profiles, "
                f"both are '{self._settings.analyzer_a}'"
            )

        consensus = self._settings.consensus
        if not 0 < consensus.similarity_threshold <= 1:
            problems.append("similarity_threshold must be within (0, 1]")
        if consensus.severity_gap < 1:
            problems.append("severity_gap must be at least 1")
        if consensus.spread_weight < 0:
            problems.append("spread_weight must be non-negative")
        if not 0 < consensus.discrepancy_decay < 1:
            problems.append("discrepancy_decay must be within (0, 1)")

        if problems:
            raise ConfigurationError(
                "Invalid review configuration",
                details={"problems": problems},
            )
