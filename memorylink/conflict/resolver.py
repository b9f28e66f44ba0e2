"""Deterministic resolution of competing records.

Several ACTIVE records may share a conflict key ("which package
manager?"). Exactly one of them is the answer, chosen by:

1. Evidence level: E2 > E1 > E0
2. Recency: newer ``created_at`` wins
3. Id: lexicographically greatest id wins (total order tiebreak)

The result never depends on input order, and resolving never touches
records or storage.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from memorylink.protocols import ConflictResolutionError
from memorylink.types import EVIDENCE_RANK, ConflictResolution, MemoryRecord, RecordStatus, parse_datetime

logger = logging.getLogger(__name__)

REASON_ONLY_MATCH = "Only match"
REASON_RECENCY = "Recency (newer created_at)"
REASON_ID = "Lexicographic ID (tiebreaker)"


def _check_candidates(candidates: Sequence[MemoryRecord]) -> Dict[str, datetime]:
    """Reject malformed candidate sets; returns parsed created_at per id."""
    keys = {r.conflict_key for r in candidates}
    if len(keys) > 1:
        raise ConflictResolutionError(f"Candidates span several conflict keys: {sorted(keys)}")

    timestamps: Dict[str, datetime] = {}
    for record in candidates:
        if record.status != RecordStatus.ACTIVE.value:
            raise ConflictResolutionError(
                f"Record {record.id} is {record.status}; only ACTIVE records can be resolved"
            )
        if record.evidence_level not in EVIDENCE_RANK:
            raise ConflictResolutionError(
                f"Record {record.id} has unknown evidence level {record.evidence_level!r}"
            )
        if record.id in timestamps:
            raise ConflictResolutionError(f"Record {record.id} appears more than once")
        try:
            created = parse_datetime(record.created_at)
        except (TypeError, ValueError) as e:
            raise ConflictResolutionError(
                f"Record {record.id} has an invalid created_at {record.created_at!r}"
            ) from e
        if created is None:
            raise ConflictResolutionError(f"Record {record.id} has no created_at")
        timestamps[record.id] = created
    return timestamps


def _reason(winner: MemoryRecord, runner_up: MemoryRecord, timestamps: Dict[str, datetime]) -> str:
    if winner.evidence_level != runner_up.evidence_level:
        return f"Evidence level ({winner.evidence_level} > {runner_up.evidence_level})"
    if timestamps[winner.id] != timestamps[runner_up.id]:
        return REASON_RECENCY
    return REASON_ID


def resolve(candidates: Sequence[MemoryRecord]) -> Optional[ConflictResolution]:
    """Pick the canonical record among ACTIVE candidates for one topic.

    Args:
        candidates: ACTIVE records sharing one conflict key, in any order.

    Returns:
        None for no candidates; otherwise the winner, the deciding rule,
        and all candidates in resolution order.

    Raises:
        ConflictResolutionError: If the set mixes conflict keys, contains a
            non-ACTIVE record or a duplicate id, or has an unparseable
            ``created_at``.
    """
    if not candidates:
        return None

    timestamps = _check_candidates(candidates)

    def sort_key(record: MemoryRecord) -> Tuple[int, datetime, str]:
        return (EVIDENCE_RANK[record.evidence_level], timestamps[record.id], record.id)

    ordered: List[MemoryRecord] = sorted(candidates, key=sort_key, reverse=True)
    winner = ordered[0]
    reason = REASON_ONLY_MATCH if len(ordered) == 1 else _reason(winner, ordered[1], timestamps)
    logger.debug(f"Resolved {winner.conflict_key}: {winner.id} ({reason}) among {len(ordered)}")
    return ConflictResolution(winner=winner, reason=reason, candidates=ordered)
