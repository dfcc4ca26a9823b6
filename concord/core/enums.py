"""Core enumerations for Concord."""

from enum import Enum


class SecurityLevel(str, Enum):
    """Ordinal security severity of a report or concern."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        """Numeric rank used for ordering."""
        ranks = {
            SecurityLevel.LOW: 0,
            SecurityLevel.MEDIUM: 1,
            SecurityLevel.HIGH: 2,
            SecurityLevel.CRITICAL: 3,
        }
        return ranks[self]

    @property
    def is_elevated(self) -> bool:
        """Check if the level always requires a human reviewer."""
        return self in (SecurityLevel.HIGH, SecurityLevel.CRITICAL)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SecurityLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, SecurityLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, SecurityLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, SecurityLevel):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def highest(cls, *levels: "SecurityLevel") -> "SecurityLevel":
        """Return the most severe of the given levels (LOW when empty)."""
        if not levels:
            return cls.LOW
        return max(levels, key=lambda level: level.rank)


class ReviewStatus(str, Enum):
    """Lifecycle state of a submission in the review pipeline."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ESCALATED = "escalated"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        """Check if no further transitions are possible."""
        return self in (
            ReviewStatus.COMPLETED,
            ReviewStatus.ESCALATED,
            ReviewStatus.FAILED,
        )


class DiscrepancyKind(str, Enum):
    """Type of disagreement between two analyses."""

    MISSING_CONCERN = "missing_concern"
    SEVERITY_CONFLICT = "severity_conflict"
    SECURITY_ASSESSMENT = "security_assessment"

    def __str__(self) -> str:
        return self.value


class ReportType(str, Enum):
    """Report types known to the review requirements."""

    INCIDENT_REPORT = "incident_report"
    DAILY_LOG = "daily_log"
    MEDICAL_REPORT = "medical_report"
    AUDIT_REPORT = "audit_report"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> "ReportType | None":
        """Normalise free-form input ('Audit-Report', 'daily log') to a known type."""
        key = value.strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(key)
        except ValueError:
            return None
