"""In-memory keyed store for review results and submission status."""

import asyncio
import logging

from concord.core.exceptions import DuplicateReviewError
from concord.core.models import ReviewRecord, ReviewResult

logger = logging.getLogger(__name__)


class ReviewStore:
    """
    Insert-once store keyed by submission id and version.

    Results are never replaced; a correction is stored as a new version.
    Status records are immutable models replaced on every transition.
    """

    def __init__(self) -> None:
        self._results: dict[str, dict[int, ReviewResult]] = {}
        self._records: dict[str, ReviewRecord] = {}
        self._flagged: set[str] = set()
        self._reserved: dict[str, set[int]] = {}
        self._lock = asyncio.Lock()

    async def save(self, result: ReviewResult) -> None:
        """Store a result; raises DuplicateReviewError if the version exists."""
        async with self._lock:
            versions = self._results.setdefault(result.submission_id, {})
            if result.version in versions:
                raise DuplicateReviewError(result.submission_id, result.version)
            versions[result.version] = result

        logger.debug("Stored review %s v%d", result.submission_id, result.version)

    def get(self, submission_id: str, version: int | None = None) -> ReviewResult | None:
        """Get a specific version, or the latest when version is None."""
        versions = self._results.get(submission_id)
        if not versions:
            return None
        if version is None:
            return versions[max(versions)]
        return versions.get(version)

    def versions(self, submission_id: str) -> list[int]:
        """List stored versions for a submission."""
        return sorted(self._results.get(submission_id, {}))

    def next_version(self, submission_id: str) -> int:
        """Version number the next reservation for this submission will get."""
        taken = set(self._results.get(submission_id, {})) | self._reserved.get(submission_id, set())
        return max(taken, default=0) + 1

    async def reserve_version(self, submission_id: str) -> int:
        """Claim the next version so concurrent reviews never share one."""
        async with self._lock:
            version = self.next_version(submission_id)
            self._reserved.setdefault(submission_id, set()).add(version)
        return version

    async def release_version(self, submission_id: str, version: int) -> None:
        """Drop a reservation once its review is stored or has failed."""
        async with self._lock:
            reserved = self._reserved.get(submission_id)
            if reserved is None:
                return
            reserved.discard(version)
            if not reserved:
                del self._reserved[submission_id]

    async def set_record(self, record: ReviewRecord) -> None:
        """Replace the status record of a submission."""
        async with self._lock:
            self._records[record.submission_id] = record

    def get_record(self, submission_id: str) -> ReviewRecord | None:
        return self._records.get(submission_id)

    async def mark_flagged(self, submission_id: str) -> bool:
        """Remember an admin flag; returns False if already flagged."""
        async with self._lock:
            if submission_id in self._flagged:
                return False
            self._flagged.add(submission_id)
            return True

    async def unmark_flagged(self, submission_id: str) -> None:
        """Forget an admin flag so the submission can be flagged again."""
        async with self._lock:
            self._flagged.discard(submission_id)

    def is_flagged(self, submission_id: str) -> bool:
        return submission_id in self._flagged

    async def purge(self, submission_id: str) -> bool:
        """Remove everything stored for a submission (retention policies)."""
        async with self._lock:
            removed = self._results.pop(submission_id, None) is not None
            removed = self._records.pop(submission_id, None) is not None or removed
            self._flagged.discard(submission_id)
        return removed

    def __len__(self) -> int:
        return len(self._results)
