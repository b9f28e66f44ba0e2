"""Record write operations for MemoryLink: capture, promote, deprecate, supersede."""

import logging
from typing import Any, Iterable, List, Optional, Union

from memorylink.audit.logger import try_append
from memorylink.core import lifecycle
from memorylink.core.ids import generate_record_id
from memorylink.core.results import CaptureResult, DeprecateResult, PromoteResult, SupersedeResult
from memorylink.core.validation import (
    validate_content,
    validate_evidence_level,
    validate_purpose_tags,
    validate_reason,
    validate_record_id,
    validate_topic,
)
from memorylink.protocols import (
    InvalidTransitionError,
    NotFoundError,
    QuarantineError,
    SecurityError,
    ValidationError,
)
from memorylink.types import (
    VALID_SOURCE_KINDS,
    AuditEventType,
    EvidenceLevel,
    MemoryRecord,
    RecordStatus,
    Source,
    utc_now,
)

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 5


def coerce_sources(sources: Optional[Iterable[Union[Source, dict]]]) -> List[Source]:
    """Validate provenance references given as Source objects or dicts."""
    result = []
    for item in sources or ():
        if isinstance(item, dict):
            try:
                item = Source(
                    type=item["type"], ref=item["ref"], captured_at=item.get("captured_at") or utc_now()
                )
            except KeyError as e:
                raise ValidationError("sources", f"source is missing {e.args[0]!r}") from e
        if not isinstance(item, Source):
            raise ValidationError("sources", f"invalid source {item!r}")
        if item.type not in VALID_SOURCE_KINDS:
            raise ValidationError(
                "sources", f"source type must be one of {sorted(VALID_SOURCE_KINDS)}, got {item.type!r}"
            )
        if not isinstance(item.ref, str) or not item.ref.strip():
            raise ValidationError("sources", "source ref cannot be empty")
        result.append(item)
    return result


class WritersMixin:
    """Record write operations for MemoryLink."""

    # =========================================================================
    # CAPTURE
    # =========================================================================

    def capture(
        self,
        topic: str,
        content: str,
        evidence: str = EvidenceLevel.E0.value,
        scope_type: Optional[str] = None,
        identifier: Optional[str] = None,
        purpose_tags: Optional[List[str]] = None,
        sources: Optional[Iterable[Any]] = None,
        author: Optional[str] = None,
    ) -> CaptureResult:
        """Capture a new ACTIVE record at E0 or E1.

        Content is scanned before anything is written. A blocking secret
        sends the original to the quarantine partition, stores the record
        as QUARANTINED with its content replaced, and raises.

        Args:
            topic: Free-text topic, normalized into the conflict key
            content: The fact to remember
            evidence: "E0" or "E1"; E2 is only reachable through promote()
            scope_type: project, user or org (default from config)
            identifier: Repository URL or other scope identifier
                (default: the project root path)
            purpose_tags: Labels; order is irrelevant
            sources: Provenance references (Source objects or dicts)
            author: Recorded in the record's provenance

        Raises:
            ValidationError: For invalid input (nothing is written).
            QuarantineError: When a blocking secret was found and quarantined.
            StorageError: If the record cannot be written.
        """
        conflict_key = validate_topic(topic)
        validate_content(content)
        level = validate_evidence_level(evidence)
        tags = validate_purpose_tags(
            purpose_tags if purpose_tags else self.config.default_purpose_tags
        )
        source_list = coerce_sources(sources)
        scope = self._scope(scope_type, identifier)

        scan = self.scanner.scan(content)
        warnings: List[str] = []

        record = MemoryRecord(
            id=self._new_record_id(scope),
            content=content,
            evidence_level=level,
            status=RecordStatus.ACTIVE.value,
            scope=scope,
            conflict_key=conflict_key,
            created_at=utc_now(),
            purpose_tags=tags,
            sources=source_list,
            provenance={"author": author} if author else None,
        )

        if scan.blocking:
            ref = self.vault.put(record.id, content)
            record = lifecycle.quarantine(record, ref)
            self.store.save(record)
            try_append(
                self.audit,
                warnings,
                AuditEventType.QUARANTINE.value,
                record_id=record.id,
                conflict_key=conflict_key,
                pattern_id=scan.pattern_id,
                pattern_name=scan.pattern_name,
                quarantine_ref=ref,
            )
            for warning in warnings:
                logger.warning(warning)
            raise QuarantineError(
                f"Blocked: {scan.pattern_name} detected in content; record {record.id} was quarantined",
                record_id=record.id,
                quarantine_ref=ref,
                pattern_id=scan.pattern_id,
                pattern_name=scan.pattern_name,
            )

        if scan.found:
            message = f"Possible leak in {record.id}: {scan.pattern_name} ({scan.masked_value})"
            logger.warning(message)
            warnings.append(message)

        self.store.save(record)
        try_append(
            self.audit,
            warnings,
            AuditEventType.CAPTURE.value,
            record_id=record.id,
            conflict_key=conflict_key,
            to_evidence=level,
            scope_type=scope.type,
            scan_tier=scan.tier.value,
        )
        return CaptureResult(record=record, scan=scan, warnings=warnings)

    def _new_record_id(self, scope) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            record_id = generate_record_id()
            if not self.store.exists(scope, record_id):
                return record_id
        raise ValidationError("record_id", "could not generate an unused record id")

    # =========================================================================
    # PROMOTE
    # =========================================================================

    def promote(
        self,
        record_id: str,
        reason: str,
        to: str = EvidenceLevel.E2.value,
        scope_type: Optional[str] = None,
        identifier: Optional[str] = None,
        constitution_approved: bool = False,
    ) -> PromoteResult:
        """Promote an ACTIVE E0/E1 record to E2.

        The id and reason are validated before any disk access. The stored
        content is re-scanned; a blocking secret aborts without writing.

        Raises:
            ValidationError: Bad id or empty reason.
            NotFoundError: No such record.
            InvalidTransitionError: Record is not ACTIVE.
            EvidenceLevelError: Record is already E2, or target is not E2.
            GovernanceError: Governed sources without constitution approval.
            SecurityError: Content contains a blocking secret.
        """
        validate_record_id(record_id)
        reason = validate_reason(reason)
        scope = self._find_scope(record_id, scope_type, identifier)

        def _apply(record: MemoryRecord) -> MemoryRecord:
            scan = self.scanner.scan(record.content)
            if scan.blocking:
                raise SecurityError(
                    f"Blocked: {scan.pattern_name} detected in record {record.id}; promotion refused",
                    pattern_id=scan.pattern_id,
                    pattern_name=scan.pattern_name,
                )
            governed = self.governance.requires_approval(record.sources)
            return lifecycle.promote(
                record,
                reason,
                to=to,
                constitution_approved=constitution_approved,
                governed=governed,
            )

        before, after = self.store.update(scope, record_id, _apply)
        warnings: List[str] = []
        try_append(
            self.audit,
            warnings,
            AuditEventType.PROMOTE.value,
            record_id=record_id,
            from_evidence=before.evidence_level,
            to_evidence=after.evidence_level,
            reason=reason,
            constitution_approved=bool(constitution_approved),
        )
        logger.info(f"Promoted {record_id} {before.evidence_level} -> {after.evidence_level}")
        return PromoteResult(record=after, from_level=before.evidence_level, warnings=warnings)

    # =========================================================================
    # DEPRECATE / SUPERSEDE
    # =========================================================================

    def deprecate(
        self,
        record_id: str,
        reason: str,
        superseded_by: Optional[str] = None,
        scope_type: Optional[str] = None,
        identifier: Optional[str] = None,
    ) -> DeprecateResult:
        """Mark an ACTIVE record DEPRECATED. The file stays on disk.

        Raises:
            ValidationError: Bad id, bad superseded_by id, or empty reason.
            NotFoundError: The record (or its replacement) does not exist.
            InvalidTransitionError: The record is not ACTIVE.
        """
        validate_record_id(record_id)
        reason = validate_reason(reason)
        if superseded_by is not None:
            validate_record_id(superseded_by)
        scope = self._find_scope(record_id, scope_type, identifier)
        return self._deprecate_in(scope, record_id, reason, superseded_by)

    def _deprecate_in(self, scope, record_id: str, reason: str, superseded_by: Optional[str]) -> DeprecateResult:
        if superseded_by is not None and not self.store.exists(scope, superseded_by):
            raise NotFoundError(f"Replacement record not found: {superseded_by}", operation="read")

        before, after = self.store.update(
            scope, record_id, lambda r: lifecycle.deprecate(r, superseded_by=superseded_by)
        )
        warnings: List[str] = []
        try_append(
            self.audit,
            warnings,
            AuditEventType.DEPRECATE.value,
            record_id=record_id,
            from_status=before.status,
            to_status=after.status,
            reason=reason,
            superseded_by=superseded_by,
        )
        return DeprecateResult(record=after, warnings=warnings)

    def supersede(
        self,
        topic: str,
        reason: str,
        scope_type: Optional[str] = None,
        identifier: Optional[str] = None,
    ) -> SupersedeResult:
        """Deprecate every ACTIVE record on a topic except the resolved winner.

        Records that change state between resolution and deprecation are
        skipped with a warning.
        """
        reason = validate_reason(reason)
        answer = self.query(topic, scope_type=scope_type, identifier=identifier)
        result = SupersedeResult(winner=answer.winner, warnings=list(answer.warnings))
        if answer.resolution is None:
            return result

        scope = answer.winner.scope
        for loser in answer.candidates[1:]:
            try:
                outcome = self._deprecate_in(scope, loser.id, reason, answer.winner.id)
            except (InvalidTransitionError, NotFoundError) as e:
                message = f"Skipped {loser.id}: {e.message}"
                logger.warning(message)
                result.warnings.append(message)
                continue
            result.deprecated.append(outcome.record)
            result.warnings.extend(outcome.warnings)
        return result
