"""
Concord - Multi-Model Consensus Review

Two independent reviewing models analyse a security report, a consensus engine
reconciles them and low-confidence or high-severity reports go to a human.
"""

__version__ = "0.1.0"

from concord.core.enums import SecurityLevel, ReviewStatus, ReportType

__all__ = [
    "__version__",
    "SecurityLevel",
    "ReviewStatus",
    "ReportType",
]
