"""Result types returned by MemoryLink operations."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from memorylink.protocols import EXIT_FAILURE, EXIT_SUCCESS
from memorylink.security.detector import ScanResult
from memorylink.types import ConflictResolution, MemoryRecord


@dataclass
class CaptureResult:
    record: MemoryRecord
    scan: ScanResult
    warnings: List[str] = field(default_factory=list)


@dataclass
class PromoteResult:
    record: MemoryRecord
    from_level: str
    warnings: List[str] = field(default_factory=list)


@dataclass
class DeprecateResult:
    record: MemoryRecord
    warnings: List[str] = field(default_factory=list)


@dataclass
class SupersedeResult:
    """Outcome of deprecating every loser for a topic."""

    winner: Optional[MemoryRecord] = None
    deprecated: List[MemoryRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class QueryResult:
    """Resolved answer for a topic, plus anything skipped along the way."""

    conflict_key: str
    resolution: Optional[ConflictResolution] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.resolution is not None

    @property
    def winner(self) -> Optional[MemoryRecord]:
        return self.resolution.winner if self.resolution else None

    @property
    def reason(self) -> Optional[str]:
        return self.resolution.reason if self.resolution else None

    @property
    def candidates(self) -> List[MemoryRecord]:
        return self.resolution.candidates if self.resolution else []


@dataclass
class GateViolation:
    """One gate finding. Carries ids and paths only, never record content."""

    rule: str
    record_id: str
    conflict_key: str
    created_at: str
    quarantine_ref: Optional[str] = None
    source_ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "rule": self.rule,
            "record_id": self.record_id,
            "conflict_key": self.conflict_key,
            "created_at": self.created_at,
        }
        if self.quarantine_ref:
            data["quarantine_ref"] = self.quarantine_ref
        if self.source_ref:
            data["source_ref"] = self.source_ref
        return data


@dataclass
class GateResult:
    violations: List[GateViolation] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.violations

    @property
    def exit_code(self) -> int:
        return EXIT_SUCCESS if self.passed else EXIT_FAILURE
