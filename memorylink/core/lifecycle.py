"""Record lifecycle transitions.

::

    capture ──> (E0|E1, ACTIVE) ──promote──> (E2, ACTIVE)
                     │                            │
                     └──────────deprecate─────────┴──> DEPRECATED
    any non-quarantined ──quarantine──> QUARANTINED (terminal)

All functions are pure: they take a record and return a new one, or
raise. Persisting the result is the caller's job.
"""

import dataclasses
from typing import Optional

from memorylink.core.validation import validate_evidence_level, validate_reason
from memorylink.protocols import EvidenceLevelError, GovernanceError, InvalidTransitionError
from memorylink.types import EvidenceLevel, MemoryRecord, RecordStatus

QUARANTINE_PLACEHOLDER = (
    "[QUARANTINED] Content withheld: a secret was detected. "
    "The original is stored encrypted at {ref}."
)


def check_promotion(
    record: MemoryRecord,
    reason: str,
    to: str = EvidenceLevel.E2.value,
    constitution_approved: bool = False,
    governed: bool = False,
) -> str:
    """Validate a promotion without applying it.

    Checks run in a fixed order so each failure is reported distinctly:
    reason, target level, status, current level, governance.

    Args:
        record: The record as currently stored.
        reason: Why the record is being promoted (required).
        to: Target level; only E2 is a legal promotion target.
        constitution_approved: Explicit approval for governed sources.
        governed: Whether the record's sources point at a governed file.

    Returns:
        The normalized reason.

    Raises:
        ValidationError: If the reason is empty.
        EvidenceLevelError: If the target is not E2 or the record is already E2.
        InvalidTransitionError: If the record is not ACTIVE.
        GovernanceError: If governed sources lack approval.
    """
    normalized_reason = validate_reason(reason)
    target = validate_evidence_level(to, allow_e2=True)
    if target != EvidenceLevel.E2.value:
        raise EvidenceLevelError(
            "evidence_level", f"can only promote to E2, got {target}; use capture for E0/E1"
        )
    if record.status != RecordStatus.ACTIVE.value:
        raise InvalidTransitionError(
            "status", f"cannot promote a {record.status} record; only ACTIVE records can be promoted"
        )
    if record.evidence_level == EvidenceLevel.E2.value:
        raise EvidenceLevelError("evidence_level", f"record {record.id} is already E2")
    if record.evidence_level not in (EvidenceLevel.E0.value, EvidenceLevel.E1.value):
        raise EvidenceLevelError(
            "evidence_level", f"cannot promote from {record.evidence_level!r} to E2"
        )
    if governed and not constitution_approved:
        raise GovernanceError(
            f"Record {record.id} is sourced from the project constitution; "
            "promotion requires explicit constitution approval"
        )
    return normalized_reason


def promote(
    record: MemoryRecord,
    reason: str,
    to: str = EvidenceLevel.E2.value,
    constitution_approved: bool = False,
    governed: bool = False,
) -> MemoryRecord:
    """Return ``record`` promoted to E2. Only the evidence level changes."""
    check_promotion(record, reason, to, constitution_approved, governed)
    return dataclasses.replace(record, evidence_level=EvidenceLevel.E2.value)


def deprecate(record: MemoryRecord, superseded_by: Optional[str] = None) -> MemoryRecord:
    """Return ``record`` marked DEPRECATED. Evidence level is untouched.

    Raises:
        InvalidTransitionError: If the record is not ACTIVE.
    """
    if record.status != RecordStatus.ACTIVE.value:
        raise InvalidTransitionError(
            "status", f"cannot deprecate a {record.status} record; only ACTIVE records can be deprecated"
        )
    if superseded_by is not None and superseded_by == record.id:
        raise InvalidTransitionError("superseded_by", "a record cannot supersede itself")
    return dataclasses.replace(
        record, status=RecordStatus.DEPRECATED.value, superseded_by=superseded_by
    )


def quarantine(record: MemoryRecord, quarantine_ref: str) -> MemoryRecord:
    """Return ``record`` as QUARANTINED with its content replaced by a reference.

    Raises:
        InvalidTransitionError: If the record is already quarantined, or no
            reference is given.
    """
    if record.status == RecordStatus.QUARANTINED.value:
        raise InvalidTransitionError("status", f"record {record.id} is already quarantined")
    if not quarantine_ref:
        raise InvalidTransitionError("quarantine_ref", "a quarantined record needs a reference")
    return dataclasses.replace(
        record,
        status=RecordStatus.QUARANTINED.value,
        content=QUARANTINE_PLACEHOLDER.format(ref=quarantine_ref),
        quarantine_ref=quarantine_ref,
    )
