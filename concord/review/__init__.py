"""Review orchestration, consensus and escalation policy."""

from concord.review.consensus import ConsensusEngine
from concord.review.notifier import AdminNotifier, InMemoryAdminNotifier, LoggingAdminNotifier
from concord.review.orchestrator import ReviewOrchestrator
from concord.review.policy import ThresholdPolicy
from concord.review.reporter import ReviewReporter
from concord.review.store import ReviewStore

__all__ = [
    "AdminNotifier",
    "ConsensusEngine",
    "InMemoryAdminNotifier",
    "LoggingAdminNotifier",
    "ReviewOrchestrator",
    "ReviewReporter",
    "ReviewStore",
    "ThresholdPolicy",
]
