"""Review orchestrator coordinating the two-analyzer consensus pipeline."""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, Callable

from concord.config import Settings, get_settings
from concord.core.enums import ReviewStatus
from concord.core.exceptions import (
    AnalyzerUnavailable,
    ConfigurationError,
    ConsensusError,
    DuplicateReviewError,
    PipelineTimeout,
    ReviewFailed,
)
from concord.core.hashing import compute_consensus_hash
from concord.core.models import (
    AdminAlert,
    AnalysisResult,
    ConsensusReview,
    ReviewRecord,
    ReviewResult,
    new_submission_id,
    utcnow,
)
from concord.analyzers.base import BaseAnalyzer
from concord.analyzers.registry import AnalyzerRegistry
from concord.review.consensus import ConsensusEngine
from concord.review.notifier import AdminNotifier, LoggingAdminNotifier
from concord.review.policy import ThresholdPolicy
from concord.review.store import ReviewStore

logger = logging.getLogger(__name__)

ReportData = str | Mapping[str, Any]


class ReviewOrchestrator:
    """
    Orchestrates the multi-model review pipeline.

    Pipeline:
    1. Validate configuration
    2. Run analyzer A and analyzer B concurrently, each under its own timeout
    3. Reconcile both analyses into a consensus
    4. Assemble, fingerprint and store the result
    5. Flag escalated results for admin review

    Steps 2 and 3 share one total deadline. A submission moves through
    not_started -> in_progress -> completed | escalated | failed.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        analyzers: tuple[BaseAnalyzer, BaseAnalyzer] | None = None,
        registry: AnalyzerRegistry | None = None,
        consensus: ConsensusEngine | None = None,
        policy: ThresholdPolicy | None = None,
        store: ReviewStore | None = None,
        notifier: AdminNotifier | None = None,
        progress_callback: Callable[[str], None] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._policy = policy or ThresholdPolicy(self._settings)
        self._consensus = consensus or ConsensusEngine(self._settings, self._policy)
        self._analyzers = analyzers
        self._registry = registry
        self._store = store or ReviewStore()
        self._notifier = notifier or LoggingAdminNotifier()
        self._progress_callback = progress_callback

    @property
    def store(self) -> ReviewStore:
        return self._store

    @property
    def policy(self) -> ThresholdPolicy:
        return self._policy

    def _ensure_analyzers(self) -> tuple[BaseAnalyzer, BaseAnalyzer]:
        """Ensure the analyzer pair is initialized."""
        if self._analyzers is None:
            registry = self._registry or AnalyzerRegistry(self._settings)
            self._analyzers = registry.get_analyzer_pair()
        return self._analyzers

    def _report_progress(self, message: str) -> None:
        """Report progress if callback is configured."""
        logger.info(message)
        if self._progress_callback:
            self._progress_callback(message)

    def should_perform_review(self, report_type: Any, report_data: Any = None) -> bool:
        """Check whether a report must go through review. Never raises."""
        return self._policy.should_perform_review(report_type, report_data)

    async def review_if_required(
        self,
        report_data: ReportData,
        report_type: str,
    ) -> ReviewResult | None:
        """Run the review only when the policy requires it."""
        if not self.should_perform_review(report_type, report_data):
            self._report_progress(f"Review not required for report type '{report_type}'")
            return None
        return await self.perform_review(report_data, report_type)

    async def perform_review(
        self,
        report_data: ReportData,
        report_type: str,
    ) -> ReviewResult:
        """
        Run the full review for one submission.

        Args:
            report_data: Report content, or a mapping with 'content' and
                optional 'submission_id' plus metadata passed as context
            report_type: Type of report being reviewed

        Returns:
            Stored ReviewResult (completed or escalated)

        Raises:
            ConfigurationError: before any analyzer call on invalid settings
            ReviewFailed: when an analyzer is unavailable, the total deadline
                elapses or the result cannot be stored; nothing is stored in
                that case
        """
        content, submission_id, context = self._unpack(report_data)
        return await self._run(
            submission_id=submission_id,
            report_type=report_type,
            content=content,
            context=context,
        )

    async def revise_review(self, submission_id: str) -> ReviewResult:
        """Re-run the review of a stored submission as a new version."""
        previous = self._store.get(submission_id)
        if previous is None:
            raise ReviewFailed(
                f"No stored review to revise for {submission_id}",
                submission_id=submission_id,
                reason="NotFound",
            )

        return await self._run(
            submission_id=submission_id,
            report_type=previous.report_type,
            content=previous.original_content,
            context={"previous_consensus_hash": previous.consensus_hash},
        )

    async def get_review_status(self, submission_id: str) -> ReviewResult | None:
        """Latest stored result for a submission, or None."""
        return self._store.get(submission_id)

    async def get_review_record(self, submission_id: str) -> ReviewRecord | None:
        """Current state-machine record for a submission, or None."""
        return self._store.get_record(submission_id)

    async def flag_for_admin_review(
        self,
        submission_id: str,
        concerns: Sequence[str],
        review_result: ReviewResult,
    ) -> None:
        """Raise an admin alert once per submission."""
        if not await self._store.mark_flagged(submission_id):
            logger.debug("Submission %s already flagged for admin review", submission_id)
            return

        alert = AdminAlert(
            submission_id=submission_id,
            report_type=review_result.report_type,
            concerns=tuple(concerns),
            final_security_level=review_result.consensus.final_security_level,
            overall_confidence=review_result.overall_confidence,
            consensus_hash=review_result.consensus_hash,
        )

        try:
            await self._notifier.notify(alert)
        except Exception as e:
            await self._store.unmark_flagged(submission_id)
            logger.error("Failed to notify admins about %s: %s", submission_id, e)
            self._report_progress(f"Warning: Failed to flag {submission_id} for admin review: {e}")
            return

        self._report_progress(f"Submission {submission_id} flagged for admin review")

    async def _run(
        self,
        submission_id: str,
        report_type: str,
        content: str,
        context: dict[str, Any],
    ) -> ReviewResult:
        """Validate, reserve a version and drive the submission through review."""
        self._policy.validate()
        analyzer_a, analyzer_b = self._ensure_analyzers()
        if analyzer_a.analyzer_id == analyzer_b.analyzer_id:
            raise ConfigurationError(
                "Analyzer A and B must use different profiles",
                details={"analyzer_id": analyzer_a.analyzer_id},
            )

        version = await self._store.reserve_version(submission_id)
        try:
            return await self._review(
                analyzer_a=analyzer_a,
                analyzer_b=analyzer_b,
                submission_id=submission_id,
                report_type=report_type,
                content=content,
                context=context,
                version=version,
            )
        finally:
            await self._store.release_version(submission_id, version)

    async def _review(
        self,
        analyzer_a: BaseAnalyzer,
        analyzer_b: BaseAnalyzer,
        submission_id: str,
        report_type: str,
        content: str,
        context: dict[str, Any],
        version: int,
    ) -> ReviewResult:
        """Drive one submission through the state machine."""
        started_at = utcnow()
        record = ReviewRecord(
            submission_id=submission_id,
            status=ReviewStatus.IN_PROGRESS,
            report_type=report_type,
            version=version,
            started_at=started_at,
        )
        await self._store.set_record(record)
        self._report_progress(
            f"Reviewing {submission_id} ({report_type}) with "
            f"{analyzer_a.name} and {analyzer_b.name}..."
        )

        total_timeout = self._policy.total_timeout
        try:
            analysis_a, analysis_b, consensus = await asyncio.wait_for(
                self._analyze_and_reconcile(
                    analyzer_a, analyzer_b, content, report_type, context
                ),
                timeout=total_timeout,
            )
        except asyncio.TimeoutError:
            error = PipelineTimeout(
                f"Review exceeded the total timeout of {total_timeout}s",
                timeout=total_timeout,
            )
            await self._fail(record, "PipelineTimeout", error)
            raise ReviewFailed(
                f"Review of {submission_id} failed: {error.message}",
                submission_id=submission_id,
                reason="PipelineTimeout",
            ) from error
        except AnalyzerUnavailable as e:
            await self._fail(record, "AnalyzerUnavailable", e)
            raise ReviewFailed(
                f"Review of {submission_id} failed: {e.message}",
                submission_id=submission_id,
                reason="AnalyzerUnavailable",
                details={"analyzer_id": e.analyzer_id},
            ) from e
        except ConsensusError as e:
            await self._fail(record, "ConsensusError", e)
            raise ReviewFailed(
                f"Review of {submission_id} failed: {e.message}",
                submission_id=submission_id,
                reason="ConsensusError",
            ) from e
        except Exception as e:
            await self._fail(record, "UnexpectedError", e)
            raise ReviewFailed(
                f"Review of {submission_id} failed: {e}",
                submission_id=submission_id,
                reason="UnexpectedError",
            ) from e

        try:
            result = self._assemble(
                submission_id=submission_id,
                version=version,
                report_type=report_type,
                content=content,
                analyses=(analysis_a, analysis_b),
                consensus=consensus,
                started_at=started_at,
                ended_at=utcnow(),
            )
            await self._store.save(result)
        except DuplicateReviewError as e:
            await self._fail(record, "DuplicateReview", e)
            raise ReviewFailed(
                f"Review of {submission_id} failed: {e.message}",
                submission_id=submission_id,
                reason="DuplicateReview",
                details={"version": e.version},
            ) from e
        except Exception as e:
            await self._fail(record, "UnexpectedError", e)
            raise ReviewFailed(
                f"Review of {submission_id} failed: {e}",
                submission_id=submission_id,
                reason="UnexpectedError",
            ) from e

        await self._store.set_record(
            record.model_copy(
                update={"status": result.status, "finished_at": result.review_ended_at}
            )
        )

        if result.requires_human_review:
            self._report_progress(
                f"Review of {submission_id} escalated: "
                + "; ".join(consensus.human_review_reasons)
            )
            await self.flag_for_admin_review(
                submission_id, consensus.human_review_reasons, result
            )
        else:
            self._report_progress(
                f"Review of {submission_id} completed "
                f"(confidence {result.overall_confidence:.2f})"
            )

        return result

    async def _analyze_and_reconcile(
        self,
        analyzer_a: BaseAnalyzer,
        analyzer_b: BaseAnalyzer,
        content: str,
        report_type: str,
        context: dict[str, Any],
    ) -> tuple[AnalysisResult, AnalysisResult, ConsensusReview]:
        """Fan out to both analyzers, fan in, then reconcile."""
        tasks = [
            asyncio.create_task(analyzer.analyze(content, report_type, context))
            for analyzer in (analyzer_a, analyzer_b)
        ]

        try:
            analysis_a, analysis_b = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        self._report_progress("Both analyses received, reconciling...")
        consensus = self._consensus.reconcile(analysis_a, analysis_b)
        return analysis_a, analysis_b, consensus

    async def _fail(self, record: ReviewRecord, reason: str, error: Exception) -> None:
        """Move a submission to the failed state."""
        logger.error("Review of %s failed (%s): %s", record.submission_id, reason, error)
        self._report_progress(f"Review of {record.submission_id} failed: {reason}")
        await self._store.set_record(
            record.model_copy(
                update={
                    "status": ReviewStatus.FAILED,
                    "finished_at": utcnow(),
                    "failure_reason": reason,
                    "failure_message": str(error),
                }
            )
        )

    def _assemble(
        self,
        submission_id: str,
        version: int,
        report_type: str,
        content: str,
        analyses: tuple[AnalysisResult, AnalysisResult],
        consensus: ConsensusReview,
        started_at: datetime,
        ended_at: datetime,
    ) -> ReviewResult:
        """Build the write-once result and its consensus hash."""
        final_content = self.compose_final_content(content, consensus.improvements_applied)
        overall_confidence = consensus.consensus_confidence

        consensus_hash = compute_consensus_hash(
            report_type=report_type,
            original_content=content,
            final_content=final_content,
            overall_confidence=overall_confidence,
            consensus=consensus,
        )

        return ReviewResult(
            submission_id=submission_id,
            version=version,
            report_type=report_type,
            original_content=content,
            analyses=list(analyses),
            consensus=consensus,
            final_content=final_content,
            overall_confidence=overall_confidence,
            requires_human_review=consensus.flagged_for_human_review,
            review_started_at=started_at,
            review_ended_at=ended_at,
            consensus_hash=consensus_hash,
        )

    @staticmethod
    def compose_final_content(content: str, improvements: Sequence[str]) -> str:
        """Merge applied improvements into the original content."""
        if not improvements:
            return content

        notes = "\n".join(f"- {item}" for item in improvements)
        return f"{content.rstrip()}\n\n## Review Notes\n{notes}\n"

    def _unpack(self, report_data: ReportData) -> tuple[str, str, dict[str, Any]]:
        """Split report data into content, submission id and context."""
        if isinstance(report_data, str):
            content, submission_id, context = report_data, None, {}
        elif isinstance(report_data, Mapping):
            content = report_data.get("content")
            submission_id = report_data.get("submission_id")
            context = {
                key: value
                for key, value in report_data.items()
                if key not in ("content", "submission_id")
            }
        else:
            raise ValueError(
                f"report_data must be a string or a mapping, got {type(report_data).__name__}"
            )

        if not isinstance(content, str) or not content.strip():
            raise ValueError("report_data must provide non-empty string content")

        return content, str(submission_id or new_submission_id()), context
