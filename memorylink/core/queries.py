"""Read operations for MemoryLink: query, list, scan."""

import logging
from typing import List, Optional

from memorylink.conflict.resolver import resolve
from memorylink.core.results import QueryResult
from memorylink.core.validation import validate_content, validate_topic
from memorylink.security.detector import ScanResult
from memorylink.types import MemoryRecord, RecordStatus

logger = logging.getLogger(__name__)


class QueriesMixin:
    """Read operations for MemoryLink."""

    def query(
        self,
        topic: str,
        scope_type: Optional[str] = None,
        identifier: Optional[str] = None,
    ) -> QueryResult:
        """Resolve the canonical ACTIVE record for a topic.

        Unreadable record files are skipped and reported in ``warnings``.
        QUARANTINED and DEPRECATED records never take part.
        """
        conflict_key = validate_topic(topic)
        scope = self._scope(scope_type, identifier)
        warnings: List[str] = []
        candidates = [
            record
            for record in self.store.iter_records(scope, warnings)
            if record.status == RecordStatus.ACTIVE.value and record.conflict_key == conflict_key
        ]
        return QueryResult(
            conflict_key=conflict_key, resolution=resolve(candidates), warnings=warnings
        )

    def list_records(
        self,
        scope_type: Optional[str] = None,
        identifier: Optional[str] = None,
        topic: Optional[str] = None,
        include_deprecated: bool = False,
        warnings: Optional[List[str]] = None,
    ) -> List[MemoryRecord]:
        """Records in a scope, oldest first. Never includes QUARANTINED records."""
        scope = self._scope(scope_type, identifier)
        conflict_key = validate_topic(topic) if topic else None
        allowed = {RecordStatus.ACTIVE.value}
        if include_deprecated:
            allowed.add(RecordStatus.DEPRECATED.value)

        records = [
            record
            for record in self.store.iter_records(scope, warnings)
            if record.status in allowed
            and (conflict_key is None or record.conflict_key == conflict_key)
        ]
        return sorted(records, key=lambda r: (r.created_at, r.id))

    def scan(self, content: str) -> ScanResult:
        """Run the secret scanner over content without storing anything."""
        validate_content(content)
        return self.scanner.scan(content)

    def load_quarantined(self, record_id: str) -> str:
        """Original content of a quarantined record, decrypted. For forensic tooling only."""
        return self.vault.get(record_id)
