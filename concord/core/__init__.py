"""Core domain models, enums, and exceptions."""

from concord.core.enums import (
    SecurityLevel,
    ReviewStatus,
    DiscrepancyKind,
    ReportType,
)
from concord.core.exceptions import (
    ConcordError,
    ConfigurationError,
    LLMError,
    AnalyzerError,
    AnalyzerTimeout,
    AnalyzerUnavailable,
    PipelineTimeout,
    ConsensusError,
    ReviewFailed,
    DuplicateReviewError,
)

__all__ = [
    "SecurityLevel",
    "ReviewStatus",
    "DiscrepancyKind",
    "ReportType",
    "ConcordError",
    "ConfigurationError",
    "LLMError",
    "AnalyzerError",
    "AnalyzerTimeout",
    "AnalyzerUnavailable",
    "PipelineTimeout",
    "ConsensusError",
    "ReviewFailed",
    "DuplicateReviewError",
]
