"""Pytest fixtures for Concord tests."""

import asyncio
from typing import Any

import pytest

from concord.analyzers.base import BaseAnalyzer
from concord.config import (
    ConfidenceThresholds,
    ConsensusSettings,
    ReviewRequirements,
    Settings,
    TimeoutSettings,
)
from concord.core.enums import SecurityLevel
from concord.core.models import AnalysisResult, AnalyzerProfile, FlaggedConcern


INCIDENT_REPORT = (
    "At 02:10 the north gate alarm triggered. Officer on duty inspected the "
    "perimeter and found the padlock cut. No persons were found on site. "
    "Police were not called."
)


class FakeAnalyzer(BaseAnalyzer):
    """Analyzer returning a preset result, optionally slow or failing."""

    def __init__(
        self,
        result: AnalysisResult,
        delay: float = 0.0,
        errors: list[Exception] | None = None,
        timeout: float = 0.2,
        retries: int = 1,
    ) -> None:
        super().__init__(
            AnalyzerProfile(
                id=result.analyzer_id,
                name=result.analyzer_name,
                model=result.model,
                timeout=timeout,
            ),
            retries=retries,
            retry_backoff=0.0,
            retry_backoff_max=0.0,
        )
        self.result = result
        self.delay = delay
        self.errors = list(errors or [])
        self.calls = 0
        self.cancelled = False

    async def _request(
        self,
        content: str,
        report_type: str,
        context: dict[str, Any],
    ) -> AnalysisResult:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        return self.result


class FakeLLMClient:
    """Stands in for ClaudeClient and records every request."""

    def __init__(self, response: dict[str, Any], model: str = "fake-model") -> None:
        self.response = response
        self.model = model
        self.requests: list[dict[str, Any]] = []

    async def complete(self, **kwargs: Any) -> dict[str, Any]:
        self.requests.append(kwargs)
        return self.response


@pytest.fixture
def settings() -> Settings:
    """Enabled settings with short deadlines and no retry backoff."""
    return Settings(
        enabled=True,
        anthropic_api_key="",
        thresholds=ConfidenceThresholds(
            min_overall=0.7,
            min_individual=0.6,
            discrepancy_limit=3,
        ),
        requirements=ReviewRequirements(
            incident_report=True,
            daily_log=False,
            medical_report=True,
            audit_report=True,
        ),
        timeouts=TimeoutSettings(
            analyzer_a=0.2,
            analyzer_b=0.2,
            total=2.0,
            retries=1,
            retry_backoff=0.0,
            retry_backoff_max=0.0,
        ),
        consensus=ConsensusSettings(
            similarity_threshold=0.6,
            severity_gap=1,
            spread_weight=0.25,
            discrepancy_decay=0.85,
        ),
    )


@pytest.fixture
def make_analysis():
    """Factory for analysis results."""

    def _make(
        analyzer_id: str = "compliance",
        confidence: float = 0.95,
        level: SecurityLevel = SecurityLevel.LOW,
        concerns: list[tuple[str, SecurityLevel]] | None = None,
        improvements: list[str] | None = None,
        text: str = "The report is complete and consistent.",
    ) -> AnalysisResult:
        return AnalysisResult(
            analyzer_id=analyzer_id,
            analyzer_name=analyzer_id.title(),
            model=f"model-{analyzer_id}",
            confidence=confidence,
            analysis_text=text,
            flagged_concerns=[
                FlaggedConcern(description=description, severity=severity)
                for description, severity in (concerns or [])
            ],
            suggested_improvements=improvements or [],
            security_level=level,
            completeness_score=0.9,
            clarity_score=0.85,
        )

    return _make


@pytest.fixture
def clean_pair(make_analysis) -> tuple[AnalysisResult, AnalysisResult]:
    """Two agreeing, confident analyses of a low-severity report."""
    return (
        make_analysis("compliance", confidence=0.95),
        make_analysis("security", confidence=0.95),
    )


@pytest.fixture
def critical_pair(make_analysis) -> tuple[AnalysisResult, AnalysisResult]:
    """Analyzer B flags a critical concern that analyzer A missed."""
    return (
        make_analysis(
            "compliance",
            confidence=0.9,
            level=SecurityLevel.MEDIUM,
            concerns=[("Officer badge number not recorded", SecurityLevel.MEDIUM)],
        ),
        make_analysis(
            "security",
            confidence=0.85,
            level=SecurityLevel.CRITICAL,
            concerns=[
                ("Officer badge number not recorded", SecurityLevel.MEDIUM),
                ("Forced entry was not reported to police", SecurityLevel.CRITICAL),
            ],
        ),
    )


@pytest.fixture
def analysis_response() -> dict[str, Any]:
    """Raw JSON reply of a reviewing model."""
    return {
        "confidence": 0.8,
        "analysis_text": "The report omits whether police were notified.",
        "flagged_concerns": [
            {"description": "Police notification missing", "severity": "high"},
        ],
        "suggested_improvements": ["State whether police were notified"],
        "security_assessment": "high",
        "completeness_score": 0.6,
        "clarity_score": 0.9,
    }
