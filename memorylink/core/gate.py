"""Pre-commit gate checks for MemoryLink.

Two rules:

- block-quarantined: any QUARANTINED record in the scope fails the gate
- ownership: a record sourced from a team file the actor may not edit

Findings carry ids and paths only, never record content.
"""

import logging
from typing import List, Optional

from memorylink.audit.logger import try_append
from memorylink.config import get_actor
from memorylink.core.results import GateResult, GateViolation
from memorylink.protocols import ValidationError
from memorylink.types import AuditEventType, MemoryRecord, SourceKind

logger = logging.getLogger(__name__)

RULE_BLOCK_QUARANTINED = "block-quarantined"
RULE_OWNERSHIP = "ownership"


class GateMixin:
    """Gate checks for MemoryLink."""

    def gate(
        self,
        scope_type: Optional[str] = None,
        identifier: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> GateResult:
        """Check a scope for quarantined records and ownership violations."""
        scope = self._scope(scope_type, identifier)
        actor = get_actor(actor)
        result = GateResult()

        for record in self.store.iter_records(scope, result.warnings):
            if record.is_quarantined:
                result.violations.append(
                    GateViolation(
                        rule=RULE_BLOCK_QUARANTINED,
                        record_id=record.id,
                        conflict_key=record.conflict_key,
                        created_at=record.created_at,
                        quarantine_ref=record.quarantine_ref,
                    )
                )
            result.violations.extend(self._ownership_violations(record, actor, result.warnings))

        try_append(
            self.audit,
            result.warnings,
            AuditEventType.GATE.value,
            scope_type=scope.type,
            passed=result.passed,
            violations=len(result.violations),
        )
        return result

    def _ownership_violations(
        self, record: MemoryRecord, actor: Optional[str], warnings: List[str]
    ) -> List[GateViolation]:
        violations = []
        for source in record.sources:
            if source.type != SourceKind.FILE.value:
                continue
            path = self.root / source.ref
            if not self.ownership.is_team_file(path):
                continue
            try:
                allowed = self.ownership.can_edit(path, actor)
            except ValidationError as e:
                message = f"Could not read ownership of {source.ref}: {e.message}"
                logger.warning(message)
                warnings.append(message)
                continue
            if not allowed:
                violations.append(
                    GateViolation(
                        rule=RULE_OWNERSHIP,
                        record_id=record.id,
                        conflict_key=record.conflict_key,
                        created_at=record.created_at,
                        source_ref=source.ref,
                    )
                )
        return violations
