"""Core domain models for Concord."""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from concord.core.enums import DiscrepancyKind, ReviewStatus, SecurityLevel
from concord.core.hashing import compute_consensus_hash


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def new_submission_id() -> str:
    """Generate a fresh submission identifier."""
    return f"sub-{uuid4().hex}"


class AnalyzerProfile(BaseModel):
    """Analyzer configuration and metadata."""

    id: str
    name: str
    description: str = ""
    model: str | None = None
    timeout: float = Field(default=30.0, gt=0)
    enabled: bool = True


class FlaggedConcern(BaseModel):
    """A single concern raised by an analyzer."""

    model_config = ConfigDict(frozen=True)

    description: str = Field(min_length=1)
    severity: SecurityLevel = SecurityLevel.LOW


class AnalysisResult(BaseModel):
    """Structured output of one analyzer for one submission."""

    model_config = ConfigDict(frozen=True)

    analyzer_id: str
    analyzer_name: str
    model: str | None = None
    confidence: float = Field(ge=0, le=1)
    analysis_text: str
    flagged_concerns: tuple[FlaggedConcern, ...] = ()
    suggested_improvements: tuple[str, ...] = ()
    security_level: SecurityLevel = SecurityLevel.LOW
    completeness_score: float = Field(ge=0, le=1)
    clarity_score: float = Field(ge=0, le=1)
    produced_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def check_security_level_justified(self) -> "AnalysisResult":
        if self.security_level > self.justified_security_level:
            raise ValueError(
                f"security level '{self.security_level}' is not backed by a flagged concern"
            )
        return self

    @property
    def justified_security_level(self) -> SecurityLevel:
        """Highest severity backed by an explicit concern."""
        return SecurityLevel.highest(*(c.severity for c in self.flagged_concerns))


class AnalyzerOpinion(BaseModel):
    """What one analyzer said about a disputed issue."""

    model_config = ConfigDict(frozen=True)

    analyzer_id: str
    opinion: str


class Discrepancy(BaseModel):
    """A point of disagreement between two analyses and its resolution."""

    model_config = ConfigDict(frozen=True)

    kind: DiscrepancyKind
    issue: str
    opinions: tuple[AnalyzerOpinion, ...]
    resolution: str
    resolved_severity: SecurityLevel

    @field_validator("opinions", mode="before")
    @classmethod
    def opinions_from_mapping(cls, v: Any) -> Any:
        if isinstance(v, Mapping):
            return [{"analyzer_id": key, "opinion": value} for key, value in v.items()]
        return v

    @field_validator("opinions")
    @classmethod
    def sort_opinions(cls, v: tuple[AnalyzerOpinion, ...]) -> tuple[AnalyzerOpinion, ...]:
        return tuple(sorted(v, key=lambda o: (o.analyzer_id, o.opinion)))

    def opinion_of(self, analyzer_id: str) -> str | None:
        """Opinion recorded for an analyzer, if any."""
        for item in self.opinions:
            if item.analyzer_id == analyzer_id:
                return item.opinion
        return None


class ConsensusReview(BaseModel):
    """Reconciled verdict derived from exactly two analyses."""

    model_config = ConfigDict(frozen=True)

    consensus_text: str
    consensus_confidence: float = Field(ge=0, le=1)
    discrepancies: tuple[Discrepancy, ...] = ()
    flagged_for_human_review: bool
    human_review_reasons: tuple[str, ...] = ()
    final_security_level: SecurityLevel
    improvements_applied: tuple[str, ...] = ()

    @model_validator(mode="after")
    def check_reasons_match_flag(self) -> "ConsensusReview":
        if self.flagged_for_human_review != bool(self.human_review_reasons):
            raise ValueError("human review reasons must be present exactly when flagged")
        return self

    @computed_field
    @property
    def discrepancy_count(self) -> int:
        """Number of recorded discrepancies."""
        return len(self.discrepancies)


class ReviewResult(BaseModel):
    """Write-once outcome of a completed or escalated review."""

    model_config = ConfigDict(frozen=True)

    submission_id: str
    version: int = Field(default=1, ge=1)
    report_type: str
    original_content: str
    analyses: tuple[AnalysisResult, ...] = Field(min_length=2, max_length=2)
    consensus: ConsensusReview
    final_content: str
    overall_confidence: float = Field(ge=0, le=1)
    requires_human_review: bool
    review_started_at: datetime
    review_ended_at: datetime
    consensus_hash: str

    @model_validator(mode="after")
    def check_invariants(self) -> "ReviewResult":
        if self.requires_human_review != self.consensus.flagged_for_human_review:
            raise ValueError("requires_human_review must mirror the consensus flag")
        if self.review_ended_at < self.review_started_at:
            raise ValueError("review cannot end before it started")
        return self

    @property
    def analysis_a(self) -> AnalysisResult:
        return self.analyses[0]

    @property
    def analysis_b(self) -> AnalysisResult:
        return self.analyses[1]

    @property
    def status(self) -> ReviewStatus:
        """Terminal status this result represents."""
        if self.requires_human_review:
            return ReviewStatus.ESCALATED
        return ReviewStatus.COMPLETED

    @property
    def execution_time_seconds(self) -> float:
        return (self.review_ended_at - self.review_started_at).total_seconds()

    def verify_hash(self) -> bool:
        """Recompute the consensus hash and compare it to the stored one."""
        expected = compute_consensus_hash(
            report_type=self.report_type,
            original_content=self.original_content,
            final_content=self.final_content,
            overall_confidence=self.overall_confidence,
            consensus=self.consensus,
        )
        return expected == self.consensus_hash


class ReviewRecord(BaseModel):
    """Status of a submission; replaced on every state transition."""

    model_config = ConfigDict(frozen=True)

    submission_id: str
    status: ReviewStatus = ReviewStatus.NOT_STARTED
    report_type: str | None = None
    version: int = 1
    started_at: datetime | None = None
    finished_at: datetime | None = None
    failure_reason: str | None = None
    failure_message: str | None = None


class AdminAlert(BaseModel):
    """Notification raised when a review is escalated to a human."""

    model_config = ConfigDict(frozen=True)

    submission_id: str
    report_type: str
    concerns: tuple[str, ...]
    final_security_level: SecurityLevel
    overall_confidence: float
    consensus_hash: str
    raised_at: datetime = Field(default_factory=utcnow)
