"""Tests for the review orchestrator."""

import asyncio

import pytest

from concord.core.enums import ReviewStatus, SecurityLevel
from concord.core.exceptions import ConfigurationError, LLMError, ReviewFailed
from concord.review.consensus import ConsensusEngine
from concord.review.notifier import AdminNotifier, InMemoryAdminNotifier
from concord.review.orchestrator import ReviewOrchestrator
from concord.review.store import ReviewStore

from conftest import INCIDENT_REPORT, FakeAnalyzer


def _orchestrator(settings, analyzers, notifier=None, store=None, messages=None):
    return ReviewOrchestrator(
        settings=settings,
        analyzers=analyzers,
        store=store or ReviewStore(),
        notifier=notifier or InMemoryAdminNotifier(),
        progress_callback=messages.append if messages is not None else None,
    )


class _BrokenConsensus(ConsensusEngine):
    def reconcile(self, analysis_a, analysis_b):
        raise RuntimeError("similarity backend crashed")


class _StaleVersionStore(ReviewStore):
    async def reserve_version(self, submission_id):
        return 1


class TestShouldPerformReview:
    """Test the review gate on the orchestrator."""

    def test_daily_log_skipped_when_disabled(self, settings, clean_pair):
        """A disabled pipeline never reviews."""
        disabled = settings.model_copy(update={"enabled": False})
        orchestrator = _orchestrator(disabled, tuple(FakeAnalyzer(r) for r in clean_pair))

        assert orchestrator.should_perform_review("daily_log", {"content": "x"}) is False
        assert orchestrator.should_perform_review("incident_report", {"content": "x"}) is False

    def test_garbage_input_never_raises(self, settings, clean_pair):
        """Malformed input is answered with False."""
        orchestrator = _orchestrator(settings, tuple(FakeAnalyzer(r) for r in clean_pair))

        assert orchestrator.should_perform_review(None, None) is False
        assert orchestrator.should_perform_review(3.14, object()) is False

    @pytest.mark.asyncio
    async def test_review_if_required_skips(self, settings, clean_pair):
        """Types without a review requirement return None without analyzer calls."""
        analyzers = tuple(FakeAnalyzer(r) for r in clean_pair)
        orchestrator = _orchestrator(settings, analyzers)

        assert await orchestrator.review_if_required(INCIDENT_REPORT, "daily_log") is None
        assert all(a.calls == 0 for a in analyzers)


class TestPerformReview:
    """Test the full pipeline."""

    @pytest.mark.asyncio
    async def test_completed_review(self, settings, clean_pair):
        """Two confident, agreeing analyzers complete without escalation."""
        messages: list[str] = []
        notifier = InMemoryAdminNotifier()
        orchestrator = _orchestrator(
            settings,
            tuple(FakeAnalyzer(r) for r in clean_pair),
            notifier=notifier,
            messages=messages,
        )

        result = await orchestrator.perform_review(
            {"content": INCIDENT_REPORT, "submission_id": "sub-100"},
            "incident_report",
        )

        assert result.submission_id == "sub-100"
        assert result.version == 1
        assert result.status == ReviewStatus.COMPLETED
        assert not result.requires_human_review
        assert result.overall_confidence == pytest.approx(0.95)
        assert result.consensus.final_security_level == SecurityLevel.LOW
        assert result.final_content == INCIDENT_REPORT
        assert [a.analyzer_id for a in result.analyses] == ["compliance", "security"]
        assert result.verify_hash()
        assert notifier.alerts == []

        record = await orchestrator.get_review_record("sub-100")
        assert record.status == ReviewStatus.COMPLETED
        assert any("completed" in m for m in messages)

    @pytest.mark.asyncio
    async def test_hash_is_deterministic_across_runs(self, settings, clean_pair):
        """Identical inputs give identical hashes regardless of ids and timing."""
        first = await _orchestrator(
            settings, tuple(FakeAnalyzer(r) for r in clean_pair)
        ).perform_review({"content": INCIDENT_REPORT, "submission_id": "sub-1"}, "incident_report")
        second = await _orchestrator(
            settings, tuple(FakeAnalyzer(r) for r in clean_pair)
        ).perform_review({"content": INCIDENT_REPORT, "submission_id": "sub-2"}, "incident_report")

        assert first.consensus_hash == second.consensus_hash

    @pytest.mark.asyncio
    async def test_escalated_review(self, settings, critical_pair):
        """A critical concern escalates and notifies admins once."""
        notifier = InMemoryAdminNotifier()
        orchestrator = _orchestrator(
            settings,
            tuple(FakeAnalyzer(r) for r in critical_pair),
            notifier=notifier,
        )

        result = await orchestrator.perform_review(
            {"content": INCIDENT_REPORT, "submission_id": "sub-200", "site": "north gate"},
            "incident_report",
        )

        assert result.status == ReviewStatus.ESCALATED
        assert result.requires_human_review
        assert result.consensus.final_security_level == SecurityLevel.CRITICAL
        assert len(notifier.alerts) == 1
        assert notifier.alerts[0].submission_id == "sub-200"
        assert notifier.alerts[0].consensus_hash == result.consensus_hash
        assert orchestrator.store.is_flagged("sub-200")

        record = await orchestrator.get_review_record("sub-200")
        assert record.status == ReviewStatus.ESCALATED

        await orchestrator.flag_for_admin_review("sub-200", ["again"], result)
        assert len(notifier.alerts) == 1

    @pytest.mark.asyncio
    async def test_improvements_merged_into_final_content(self, settings, make_analysis):
        """Applied improvements are appended as review notes."""
        analyzers = (
            FakeAnalyzer(make_analysis("compliance", improvements=["Add the arrival time"])),
            FakeAnalyzer(make_analysis("security")),
        )
        result = await _orchestrator(settings, analyzers).perform_review(
            INCIDENT_REPORT, "incident_report"
        )

        assert result.original_content == INCIDENT_REPORT
        assert result.final_content.startswith(INCIDENT_REPORT)
        assert "## Review Notes\n- Add the arrival time" in result.final_content
        assert result.submission_id.startswith("sub-")

    @pytest.mark.asyncio
    async def test_analyzer_timeout_fails_closed(self, settings, clean_pair):
        """An analyzer timing out twice fails the review and stores nothing."""
        analyzer_a = FakeAnalyzer(clean_pair[0])
        analyzer_b = FakeAnalyzer(clean_pair[1], delay=1.0, timeout=0.05)
        orchestrator = _orchestrator(settings, (analyzer_a, analyzer_b))

        with pytest.raises(ReviewFailed) as exc_info:
            await orchestrator.perform_review(
                {"content": INCIDENT_REPORT, "submission_id": "sub-300"},
                "incident_report",
            )

        assert exc_info.value.reason == "AnalyzerUnavailable"
        assert exc_info.value.submission_id == "sub-300"
        assert analyzer_b.calls == 2
        assert await orchestrator.get_review_status("sub-300") is None
        assert len(orchestrator.store) == 0

        record = await orchestrator.get_review_record("sub-300")
        assert record.status == ReviewStatus.FAILED
        assert record.failure_reason == "AnalyzerUnavailable"

    @pytest.mark.asyncio
    async def test_total_timeout_fails_closed(self, settings, clean_pair):
        """The aggregate deadline bounds the whole pipeline."""
        slow = settings.model_copy(
            update={
                "timeouts": settings.timeouts.model_copy(
                    update={"analyzer_a": 0.5, "analyzer_b": 0.5, "total": 0.5}
                )
            }
        )
        analyzers = (
            FakeAnalyzer(clean_pair[0], delay=0.3, timeout=0.5),
            FakeAnalyzer(clean_pair[1], delay=5.0, timeout=10.0),
        )
        orchestrator = _orchestrator(slow, analyzers)

        with pytest.raises(ReviewFailed) as exc_info:
            await orchestrator.perform_review(
                {"content": INCIDENT_REPORT, "submission_id": "sub-400"},
                "incident_report",
            )

        assert exc_info.value.reason == "PipelineTimeout"
        assert await orchestrator.get_review_status("sub-400") is None
        record = await orchestrator.get_review_record("sub-400")
        assert record.status == ReviewStatus.FAILED
        assert analyzers[1].cancelled

    @pytest.mark.asyncio
    async def test_failing_analyzer_cancels_sibling(self, settings, clean_pair):
        """A permanent failure on one side stops the other analyzer."""
        analyzer_a = FakeAnalyzer(
            clean_pair[0],
            errors=[LLMError("bad request", status_code=400)],
        )
        analyzer_b = FakeAnalyzer(clean_pair[1], delay=1.0, timeout=1.5)
        orchestrator = _orchestrator(settings, (analyzer_a, analyzer_b))

        with pytest.raises(ReviewFailed) as exc_info:
            await orchestrator.perform_review(
                {"content": INCIDENT_REPORT, "submission_id": "sub-410"},
                "incident_report",
            )

        assert exc_info.value.reason == "AnalyzerUnavailable"
        assert analyzer_a.calls == 1
        assert analyzer_b.cancelled

    @pytest.mark.asyncio
    async def test_same_profile_rejected_before_analyzer_calls(self, settings, make_analysis):
        """Two analyzers built from one profile never reach a model."""
        analyzers = (
            FakeAnalyzer(make_analysis("security")),
            FakeAnalyzer(make_analysis("security")),
        )
        orchestrator = _orchestrator(settings, analyzers)

        with pytest.raises(ConfigurationError):
            await orchestrator.perform_review(INCIDENT_REPORT, "incident_report")

        assert all(a.calls == 0 for a in analyzers)
        assert len(orchestrator.store) == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_record(self, settings, clean_pair):
        """Errors outside the known failure modes still leave a failed record."""
        orchestrator = ReviewOrchestrator(
            settings=settings,
            analyzers=tuple(FakeAnalyzer(r) for r in clean_pair),
            consensus=_BrokenConsensus(settings),
            store=ReviewStore(),
            notifier=InMemoryAdminNotifier(),
        )

        with pytest.raises(ReviewFailed) as exc_info:
            await orchestrator.perform_review(
                {"content": INCIDENT_REPORT, "submission_id": "sub-420"},
                "incident_report",
            )

        assert exc_info.value.reason == "UnexpectedError"
        record = await orchestrator.get_review_record("sub-420")
        assert record.status == ReviewStatus.FAILED
        assert record.failure_reason == "UnexpectedError"

    @pytest.mark.asyncio
    async def test_invalid_configuration_before_analyzer_calls(self, settings, clean_pair):
        """Configuration errors surface before any analyzer runs."""
        broken = settings.model_copy(
            update={
                "thresholds": settings.thresholds.model_copy(update={"min_individual": -1.0})
            }
        )
        analyzers = tuple(FakeAnalyzer(r) for r in clean_pair)
        orchestrator = _orchestrator(broken, analyzers)

        with pytest.raises(ConfigurationError):
            await orchestrator.perform_review(INCIDENT_REPORT, "incident_report")

        assert all(a.calls == 0 for a in analyzers)

    @pytest.mark.asyncio
    async def test_empty_content_rejected(self, settings, clean_pair):
        """Reports without content are refused."""
        orchestrator = _orchestrator(settings, tuple(FakeAnalyzer(r) for r in clean_pair))

        with pytest.raises(ValueError):
            await orchestrator.perform_review({"content": "   "}, "incident_report")
        with pytest.raises(ValueError):
            await orchestrator.perform_review(42, "incident_report")


class TestStatusAndRevision:
    """Test reads and versioned revisions."""

    @pytest.mark.asyncio
    async def test_get_review_status_is_idempotent(self, settings, clean_pair):
        """Repeated reads return the same stored result."""
        orchestrator = _orchestrator(settings, tuple(FakeAnalyzer(r) for r in clean_pair))
        result = await orchestrator.perform_review(
            {"content": INCIDENT_REPORT, "submission_id": "sub-500"},
            "incident_report",
        )

        first = await orchestrator.get_review_status("sub-500")
        second = await orchestrator.get_review_status("sub-500")

        assert first == second == result
        assert await orchestrator.get_review_status("sub-unknown") is None

    @pytest.mark.asyncio
    async def test_revise_review_creates_new_version(self, settings, clean_pair):
        """A revision never overwrites the original result."""
        orchestrator = _orchestrator(settings, tuple(FakeAnalyzer(r) for r in clean_pair))
        original = await orchestrator.perform_review(
            {"content": INCIDENT_REPORT, "submission_id": "sub-600"},
            "incident_report",
        )

        revised = await orchestrator.revise_review("sub-600")

        assert revised.version == 2
        assert revised.original_content == original.original_content
        assert orchestrator.store.versions("sub-600") == [1, 2]
        assert orchestrator.store.get("sub-600", version=1) == original
        assert await orchestrator.get_review_status("sub-600") == revised

    @pytest.mark.asyncio
    async def test_concurrent_reviews_get_distinct_versions(self, settings, clean_pair):
        """Reviews of one submission running together never share a version."""
        orchestrator = _orchestrator(
            settings,
            tuple(FakeAnalyzer(r, delay=0.05) for r in clean_pair),
        )
        report = {"content": INCIDENT_REPORT, "submission_id": "sub-610"}

        results = await asyncio.gather(
            orchestrator.perform_review(report, "incident_report"),
            orchestrator.perform_review(report, "incident_report"),
        )

        assert sorted(r.version for r in results) == [1, 2]
        assert orchestrator.store.versions("sub-610") == [1, 2]
        assert orchestrator.store.next_version("sub-610") == 3

    @pytest.mark.asyncio
    async def test_duplicate_version_fails_record(self, settings, clean_pair):
        """A version collision at save time is reported as a failed review."""
        orchestrator = _orchestrator(
            settings,
            tuple(FakeAnalyzer(r) for r in clean_pair),
            store=_StaleVersionStore(),
        )
        report = {"content": INCIDENT_REPORT, "submission_id": "sub-620"}
        first = await orchestrator.perform_review(report, "incident_report")

        with pytest.raises(ReviewFailed) as exc_info:
            await orchestrator.perform_review(report, "incident_report")

        assert exc_info.value.reason == "DuplicateReview"
        assert orchestrator.store.versions("sub-620") == [1]
        assert await orchestrator.get_review_status("sub-620") == first
        record = await orchestrator.get_review_record("sub-620")
        assert record.status == ReviewStatus.FAILED
        assert record.failure_reason == "DuplicateReview"

    @pytest.mark.asyncio
    async def test_revise_unknown_submission(self, settings, clean_pair):
        """Revising nothing is a failure."""
        orchestrator = _orchestrator(settings, tuple(FakeAnalyzer(r) for r in clean_pair))

        with pytest.raises(ReviewFailed) as exc_info:
            await orchestrator.revise_review("sub-missing")

        assert exc_info.value.reason == "NotFound"


class _BrokenNotifier(AdminNotifier):
    async def notify(self, alert):
        raise ConnectionError("mail relay down")


class TestAdminFlag:
    """Test admin notification failure handling."""

    @pytest.mark.asyncio
    async def test_notifier_failure_keeps_result(self, settings, critical_pair):
        """A failing notifier does not undo a stored escalation."""
        messages: list[str] = []
        orchestrator = _orchestrator(
            settings,
            tuple(FakeAnalyzer(r) for r in critical_pair),
            notifier=_BrokenNotifier(),
            messages=messages,
        )

        result = await orchestrator.perform_review(
            {"content": INCIDENT_REPORT, "submission_id": "sub-700"},
            "incident_report",
        )

        assert result.status == ReviewStatus.ESCALATED
        assert await orchestrator.get_review_status("sub-700") == result
        assert not orchestrator.store.is_flagged("sub-700")
        assert any("Failed to flag" in m for m in messages)
