"""Base analyzer classes for Concord."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from concord.core.enums import SecurityLevel
from concord.core.exceptions import (
    AnalyzerError,
    AnalyzerTimeout,
    AnalyzerUnavailable,
    LLMError,
)
from concord.core.models import AnalysisResult, AnalyzerProfile, FlaggedConcern
from concord.llm.client import ClaudeClient
from concord.llm.prompts import PromptBuilder
from concord.llm.schemas import ANALYSIS_RESULT_SCHEMA

logger = logging.getLogger(__name__)


def is_transient(error: BaseException) -> bool:
    """Check if an analyzer failure is worth one more attempt."""
    if isinstance(error, AnalyzerTimeout):
        return True
    return isinstance(error, LLMError) and error.transient


def justified_level(
    asserted: SecurityLevel,
    concerns: list[FlaggedConcern],
) -> SecurityLevel:
    """Cap an asserted security level at the highest flagged concern."""
    backed = SecurityLevel.highest(*(c.severity for c in concerns))
    return asserted if asserted <= backed else backed


class BaseAnalyzer(ABC):
    """
    Abstract base class for reviewing models.

    Wraps every attempt in the analyzer's own timeout and retries transient
    failures with exponential backoff. Once the retry budget is spent, or on
    any non-transient failure, the analyzer raises AnalyzerUnavailable so the
    review fails closed.
    """

    def __init__(
        self,
        profile: AnalyzerProfile,
        retries: int = 1,
        retry_backoff: float = 1.0,
        retry_backoff_max: float = 10.0,
    ) -> None:
        self.profile = profile
        self._retries = retries
        self._retry_backoff = retry_backoff
        self._retry_backoff_max = retry_backoff_max

    @property
    def analyzer_id(self) -> str:
        """Analyzer identifier."""
        return self.profile.id

    @property
    def name(self) -> str:
        """Analyzer display name."""
        return self.profile.name

    @property
    def timeout(self) -> float:
        """Deadline for a single attempt, in seconds."""
        return self.profile.timeout

    @property
    def max_attempts(self) -> int:
        return self._retries + 1

    @abstractmethod
    async def _request(
        self,
        content: str,
        report_type: str,
        context: dict[str, Any],
    ) -> AnalysisResult:
        """Produce one analysis without timeout or retry handling."""
        pass

    async def analyze(
        self,
        content: str,
        report_type: str,
        context: dict[str, Any] | None = None,
    ) -> AnalysisResult:
        """
        Analyze a report.

        Args:
            content: Raw report content
            report_type: Type of report being reviewed
            context: Optional submission metadata passed to the model

        Returns:
            AnalysisResult produced by this analyzer

        Raises:
            AnalyzerUnavailable: when the analyzer cannot produce a result
        """
        attempts = 0
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self._retry_backoff, max=self._retry_backoff_max),
            retry=retry_if_exception(is_transient),
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    return await self._attempt(content, report_type, context or {})
        except AnalyzerUnavailable:
            raise
        except Exception as e:
            logger.error(
                "Analyzer %s unavailable after %d attempt(s): %s",
                self.analyzer_id,
                attempts,
                e,
            )
            raise AnalyzerUnavailable(
                f"Analyzer {self.name} failed: {e}",
                analyzer_id=self.analyzer_id,
                attempts=attempts,
            ) from e

        # AsyncRetrying either returns from the block or raises
        raise AnalyzerUnavailable(
            f"Analyzer {self.name} produced no result",
            analyzer_id=self.analyzer_id,
            attempts=attempts,
        )

    async def _attempt(
        self,
        content: str,
        report_type: str,
        context: dict[str, Any],
    ) -> AnalysisResult:
        try:
            return await asyncio.wait_for(
                self._request(content, report_type, context),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise AnalyzerTimeout(
                f"Analyzer {self.name} timed out after {self.timeout}s",
                analyzer_id=self.analyzer_id,
                timeout=self.timeout,
            ) from e

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Analyzer %s attempt %d failed (%s), retrying",
            self.analyzer_id,
            retry_state.attempt_number,
            error,
        )


class LLMAnalyzer(BaseAnalyzer):
    """Analyzer backed by a hosted language model."""

    def __init__(
        self,
        profile: AnalyzerProfile,
        llm_client: ClaudeClient,
        prompt_builder: PromptBuilder,
        persona: str,
        focus_areas: list[str],
        criteria: list[str],
        max_tokens: int = 2000,
        temperature: float = 0.1,
        retries: int = 1,
        retry_backoff: float = 1.0,
        retry_backoff_max: float = 10.0,
    ) -> None:
        super().__init__(
            profile,
            retries=retries,
            retry_backoff=retry_backoff,
            retry_backoff_max=retry_backoff_max,
        )
        self.llm_client = llm_client
        self.prompt_builder = prompt_builder
        self.persona = persona
        self.focus_areas = focus_areas
        self.criteria = criteria
        self._max_tokens = max_tokens
        self._temperature = temperature

    @property
    def system_prompt(self) -> str:
        """Build system prompt from persona and criteria."""
        return self.prompt_builder.build_system_prompt(
            persona=self.persona,
            focus_areas=self.focus_areas,
            criteria=self.criteria,
        )

    async def _request(
        self,
        content: str,
        report_type: str,
        context: dict[str, Any],
    ) -> AnalysisResult:
        user_prompt = self.prompt_builder.build_analysis_prompt(
            content=content,
            report_type=report_type,
            context=context,
        )

        response = await self.llm_client.complete(
            system_prompt=self.system_prompt,
            user_prompt=user_prompt,
            response_schema=ANALYSIS_RESULT_SCHEMA,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )

        return self._parse_response(response)

    def _parse_response(self, raw_response: dict[str, Any]) -> AnalysisResult:
        """Parse LLM response into a structured AnalysisResult."""
        try:
            asserted = SecurityLevel(str(raw_response["security_assessment"]).lower())

            concerns = []
            for item in raw_response.get("flagged_concerns", []):
                if isinstance(item, str):
                    concerns.append(FlaggedConcern(description=item, severity=asserted))
                else:
                    concerns.append(
                        FlaggedConcern(
                            description=item["description"],
                            severity=SecurityLevel(str(item["severity"]).lower()),
                        )
                    )

            level = justified_level(asserted, concerns)
            if level != asserted:
                logger.warning(
                    "Analyzer %s asserted %s without a matching concern; using %s",
                    self.analyzer_id,
                    asserted,
                    level,
                )

            return AnalysisResult(
                analyzer_id=self.analyzer_id,
                analyzer_name=self.name,
                model=self.llm_client.model,
                confidence=raw_response["confidence"],
                analysis_text=raw_response["analysis_text"],
                flagged_concerns=concerns,
                suggested_improvements=raw_response.get("suggested_improvements", []),
                security_level=level,
                completeness_score=raw_response["completeness_score"],
                clarity_score=raw_response["clarity_score"],
            )
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise AnalyzerError(
                f"Analyzer {self.name} returned an invalid analysis: {e}",
                analyzer_id=self.analyzer_id,
            ) from e
