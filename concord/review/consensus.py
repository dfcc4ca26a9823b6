"""Two-analyzer consensus: discrepancy detection and confidence merging."""

import logging
import re
from difflib import SequenceMatcher

from concord.config import Settings, get_settings
from concord.core.enums import DiscrepancyKind, SecurityLevel
from concord.core.exceptions import ConsensusError
from concord.core.models import (
    AnalysisResult,
    ConsensusReview,
    Discrepancy,
    FlaggedConcern,
)
from concord.review.policy import ThresholdPolicy

logger = logging.getLogger(__name__)

_NON_WORD = re.compile(r"[^\w\s]")

_KIND_ORDER = {
    DiscrepancyKind.SECURITY_ASSESSMENT: 0,
    DiscrepancyKind.SEVERITY_CONFLICT: 1,
    DiscrepancyKind.MISSING_CONCERN: 2,
}


def normalize_text(text: str) -> str:
    """Lower-case, strip punctuation and collapse whitespace."""
    return " ".join(_NON_WORD.sub(" ", text.lower()).split())


def text_similarity(first: str, second: str) -> float:
    """Symmetric similarity in [0, 1]: max of token Jaccard and sequence ratio."""
    a, b = sorted((normalize_text(first), normalize_text(second)))
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    tokens_a, tokens_b = set(a.split()), set(b.split())
    jaccard = len(tokens_a & tokens_b) / len(tokens_a | tokens_b)
    ratio = SequenceMatcher(None, a, b, autojunk=False).ratio()
    return max(jaccard, ratio)


class ConsensusEngine:
    """
    Reconciles exactly two analyses into a ConsensusReview.

    The algorithm:
    1. Merges both analysis texts with attribution
    2. Matches flagged concerns by normalised similarity
    3. Records unmatched concerns, severity conflicts on matched concerns and
       differing overall assessments as discrepancies
    4. Resolves every discrepancy to the more cautious severity
    5. Merges confidences, penalising spread and discrepancies
    6. Applies the threshold policy to decide on human review
    """

    def __init__(
        self,
        settings: Settings | None = None,
        policy: ThresholdPolicy | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._config = self._settings.consensus
        self._policy = policy or ThresholdPolicy(self._settings)

    def reconcile(
        self,
        result_a: AnalysisResult,
        result_b: AnalysisResult,
    ) -> ConsensusReview:
        """
        Reconcile two independent analyses.

        Args:
            result_a: Analysis from analyzer A
            result_b: Analysis from analyzer B

        Returns:
            ConsensusReview with discrepancies, confidence and escalation flag
        """
        if result_a.analyzer_id == result_b.analyzer_id:
            raise ConsensusError(
                "Consensus requires two distinct analyzers",
                details={"analyzer_id": result_a.analyzer_id},
            )

        discrepancies = self.find_discrepancies(result_a, result_b)
        confidence = self.merge_confidence(
            result_a.confidence,
            result_b.confidence,
            len(discrepancies),
        )
        final_level = SecurityLevel.highest(
            result_a.security_level,
            result_b.security_level,
            *(d.resolved_severity for d in discrepancies),
        )

        reasons = self._policy.human_review_reasons(
            consensus_confidence=confidence,
            individual_confidences=[
                (result_a.analyzer_id, result_a.confidence),
                (result_b.analyzer_id, result_b.confidence),
            ],
            discrepancy_count=len(discrepancies),
            final_security_level=final_level,
        )

        logger.info(
            "Consensus of %s and %s: confidence=%.3f discrepancies=%d level=%s escalate=%s",
            result_a.analyzer_id,
            result_b.analyzer_id,
            confidence,
            len(discrepancies),
            final_level,
            bool(reasons),
        )

        return ConsensusReview(
            consensus_text=self._merge_text(result_a, result_b),
            consensus_confidence=confidence,
            discrepancies=discrepancies,
            flagged_for_human_review=bool(reasons),
            human_review_reasons=reasons,
            final_security_level=final_level,
            improvements_applied=self._merge_improvements(result_a, result_b),
        )

    def merge_confidence(
        self,
        confidence_a: float,
        confidence_b: float,
        discrepancy_count: int,
    ) -> float:
        """
        Merge two confidences.

        The result never exceeds the lesser input. A wider spread and every
        additional discrepancy lower it further.
        """
        lower = min(confidence_a, confidence_b)
        spread = abs(confidence_a - confidence_b)

        merged = max(0.0, lower - self._config.spread_weight * spread)
        merged *= self._config.discrepancy_decay ** discrepancy_count
        return min(1.0, merged)

    def find_discrepancies(
        self,
        result_a: AnalysisResult,
        result_b: AnalysisResult,
    ) -> list[Discrepancy]:
        """Detect disagreements between two analyses in canonical order."""
        threshold = self._config.similarity_threshold
        concerns_a = result_a.flagged_concerns
        concerns_b = result_b.flagged_concerns

        matches = [
            (i, j)
            for i, concern_a in enumerate(concerns_a)
            for j, concern_b in enumerate(concerns_b)
            if text_similarity(concern_a.description, concern_b.description) >= threshold
        ]
        matched_a = {i for i, _ in matches}
        matched_b = {j for _, j in matches}

        found: list[Discrepancy] = []

        for i, concern in enumerate(concerns_a):
            if i not in matched_a:
                found.append(self._missing_concern(concern, result_a, result_b))

        for j, concern in enumerate(concerns_b):
            if j not in matched_b:
                found.append(self._missing_concern(concern, result_b, result_a))

        for i, j in matches:
            gap = abs(concerns_a[i].severity.rank - concerns_b[j].severity.rank)
            if gap >= self._config.severity_gap:
                found.append(
                    self._severity_conflict(concerns_a[i], result_a, concerns_b[j], result_b)
                )

        if result_a.security_level != result_b.security_level:
            found.append(self._assessment_conflict(result_a, result_b))

        return self._canonicalize(found)

    def _missing_concern(
        self,
        concern: FlaggedConcern,
        raised_by: AnalysisResult,
        other: AnalysisResult,
    ) -> Discrepancy:
        return Discrepancy(
            kind=DiscrepancyKind.MISSING_CONCERN,
            issue=concern.description,
            opinions={
                raised_by.analyzer_id: f"Flagged ({concern.severity.value}): {concern.description}",
                other.analyzer_id: "Not flagged",
            },
            resolution=(
                f"Retained at {concern.severity.value}: a concern raised by "
                f"{raised_by.analyzer_name} alone is kept in the final review"
            ),
            resolved_severity=concern.severity,
        )

    def _severity_conflict(
        self,
        concern_a: FlaggedConcern,
        result_a: AnalysisResult,
        concern_b: FlaggedConcern,
        result_b: AnalysisResult,
    ) -> Discrepancy:
        if concern_a.severity > concern_b.severity:
            winner, winning = result_a, concern_a
        else:
            winner, winning = result_b, concern_b

        issue = min(
            concern_a.description,
            concern_b.description,
            key=lambda text: (normalize_text(text), text),
        )

        return Discrepancy(
            kind=DiscrepancyKind.SEVERITY_CONFLICT,
            issue=issue,
            opinions={
                result_a.analyzer_id: f"{concern_a.severity.value}: {concern_a.description}",
                result_b.analyzer_id: f"{concern_b.severity.value}: {concern_b.description}",
            },
            resolution=(
                f"Resolved to {winning.severity.value}: the more cautious classification "
                f"from {winner.analyzer_name} takes precedence on a safety-relevant conflict"
            ),
            resolved_severity=winning.severity,
        )

    def _assessment_conflict(
        self,
        result_a: AnalysisResult,
        result_b: AnalysisResult,
    ) -> Discrepancy:
        winner = result_a if result_a.security_level > result_b.security_level else result_b

        return Discrepancy(
            kind=DiscrepancyKind.SECURITY_ASSESSMENT,
            issue="Overall security assessment",
            opinions={
                result_a.analyzer_id: result_a.security_level.value,
                result_b.analyzer_id: result_b.security_level.value,
            },
            resolution=(
                f"Resolved to {winner.security_level.value}: the higher assessment "
                f"from {winner.analyzer_name} is kept"
            ),
            resolved_severity=winner.security_level,
        )

    def _canonicalize(self, discrepancies: list[Discrepancy]) -> list[Discrepancy]:
        """Drop duplicates and sort independently of analyzer order."""
        unique: dict[tuple, Discrepancy] = {}
        for d in discrepancies:
            key = (
                d.kind,
                normalize_text(d.issue),
                d.resolved_severity,
                tuple((o.analyzer_id, o.opinion) for o in d.opinions),
            )
            unique.setdefault(key, d)

        return sorted(
            unique.values(),
            key=lambda d: (
                _KIND_ORDER[d.kind],
                -d.resolved_severity.rank,
                normalize_text(d.issue),
                d.issue,
                tuple((o.analyzer_id, o.opinion) for o in d.opinions),
            ),
        )

    def _merge_text(self, result_a: AnalysisResult, result_b: AnalysisResult) -> str:
        """Concatenate both analyses with attribution."""
        return "\n\n".join(
            f"[{r.analyzer_name}]\n{r.analysis_text.strip()}" for r in (result_a, result_b)
        )

    def _merge_improvements(
        self,
        result_a: AnalysisResult,
        result_b: AnalysisResult,
    ) -> list[str]:
        """Union of suggested improvements with near-duplicates collapsed."""
        threshold = self._config.similarity_threshold
        merged: list[str] = []

        for suggestion in [*result_a.suggested_improvements, *result_b.suggested_improvements]:
            suggestion = suggestion.strip()
            if not suggestion:
                continue
            if any(text_similarity(suggestion, kept) >= threshold for kept in merged):
                continue
            merged.append(suggestion)

        return merged
