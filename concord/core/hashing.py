"""Deterministic audit fingerprint for finished reviews."""

import hashlib
import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from concord.core.models import ConsensusReview


def canonical_payload(
    report_type: str,
    original_content: str,
    final_content: str,
    overall_confidence: float,
    consensus: "ConsensusReview",
) -> dict[str, Any]:
    """Content fields covered by the consensus hash.

    Identifiers, versions and timestamps are excluded so that identical
    inputs always produce the same fingerprint.
    """
    return {
        "report_type": report_type,
        "original_content": original_content,
        "final_content": final_content,
        "overall_confidence": overall_confidence,
        "consensus": consensus.model_dump(mode="json"),
    }


def compute_consensus_hash(
    report_type: str,
    original_content: str,
    final_content: str,
    overall_confidence: float,
    consensus: "ConsensusReview",
) -> str:
    """SHA-256 over the canonical JSON encoding of the review content."""
    payload = canonical_payload(
        report_type=report_type,
        original_content=original_content,
        final_content=final_content,
        overall_confidence=overall_confidence,
        consensus=consensus,
    )
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()
