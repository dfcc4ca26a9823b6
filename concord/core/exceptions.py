"""Custom exceptions for Concord."""

from typing import Any


class ConcordError(Exception):
    """Base exception for all Concord errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(ConcordError):
    """Raised when thresholds or timeouts are missing or invalid."""

    pass


class LLMError(ConcordError):
    """Raised when a model API call fails."""

    def __init__(
        self,
        message: str,
        model: str | None = None,
        status_code: int | None = None,
        transient: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.model = model
        self.status_code = status_code
        self.transient = transient
        super().__init__(
            message,
            details={
                **(details or {}),
                "model": model,
                "status_code": status_code,
            },
        )


class AnalyzerError(ConcordError):
    """Raised when an analyzer fails to produce a usable analysis."""

    def __init__(
        self,
        message: str,
        analyzer_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.analyzer_id = analyzer_id
        super().__init__(
            message,
            details={
                **(details or {}),
                "analyzer_id": analyzer_id,
            },
        )


class AnalyzerTimeout(AnalyzerError):
    """Raised when a single analyzer attempt exceeds its own deadline."""

    def __init__(
        self,
        message: str,
        analyzer_id: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.timeout = timeout
        super().__init__(message, analyzer_id=analyzer_id, details={"timeout": timeout})


class AnalyzerUnavailable(AnalyzerError):
    """Raised when an analyzer has permanently failed for a submission."""

    def __init__(
        self,
        message: str,
        analyzer_id: str | None = None,
        attempts: int | None = None,
    ) -> None:
        self.attempts = attempts
        super().__init__(message, analyzer_id=analyzer_id, details={"attempts": attempts})


class PipelineTimeout(ConcordError):
    """Raised when the aggregate review deadline elapses."""

    def __init__(self, message: str, timeout: float | None = None) -> None:
        self.timeout = timeout
        super().__init__(message, details={"timeout": timeout})


class ConsensusError(ConcordError):
    """Raised when two analyses cannot be reconciled."""

    pass


class ReviewFailed(ConcordError):
    """Raised when a review ends in the failed state."""

    def __init__(
        self,
        message: str,
        submission_id: str | None = None,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.submission_id = submission_id
        self.reason = reason
        super().__init__(
            message,
            details={
                **(details or {}),
                "submission_id": submission_id,
                "reason": reason,
            },
        )


class DuplicateReviewError(ConcordError):
    """Raised when a stored review result would be overwritten."""

    def __init__(self, submission_id: str, version: int) -> None:
        self.submission_id = submission_id
        self.version = version
        super().__init__(
            "Review result already stored",
            details={"submission_id": submission_id, "version": version},
        )
