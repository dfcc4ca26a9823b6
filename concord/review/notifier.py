"""Admin notification for escalated reviews."""

import logging
from abc import ABC, abstractmethod

from concord.core.models import AdminAlert

logger = logging.getLogger(__name__)


class AdminNotifier(ABC):
    """Delivers admin alerts; implementations dedup by submission id."""

    @abstractmethod
    async def notify(self, alert: AdminAlert) -> bool:
        """Deliver an alert. Returns False if it was already delivered."""
        pass


class LoggingAdminNotifier(AdminNotifier):
    """Writes alerts to the log."""

    def __init__(self) -> None:
        self._sent: set[str] = set()

    async def notify(self, alert: AdminAlert) -> bool:
        if alert.submission_id in self._sent:
            return False
        self._sent.add(alert.submission_id)

        logger.warning(
            "Submission %s (%s) flagged for admin review at %s security level: %s",
            alert.submission_id,
            alert.report_type,
            alert.final_security_level,
            "; ".join(alert.concerns),
        )
        return True


class InMemoryAdminNotifier(AdminNotifier):
    """Collects alerts in memory for embedding applications and tests."""

    def __init__(self) -> None:
        self.alerts: list[AdminAlert] = []

    async def notify(self, alert: AdminAlert) -> bool:
        if any(a.submission_id == alert.submission_id for a in self.alerts):
            return False
        self.alerts.append(alert)
        return True
