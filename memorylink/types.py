"""
Shared record types for memorylink.

All record dataclasses and lifecycle enums live here. They are the
vocabulary shared by storage, the secret-scan gate, the lifecycle
validator and the conflict resolver. A record is created by capture,
stored by the record store and read back by query; these types are the
contract between them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

# === Shared Utility Functions ===


def utc_now() -> str:
    """Get current timestamp as ISO string in UTC."""
    return datetime.now(timezone.utc).isoformat()


def parse_datetime(s: Optional[str]) -> Optional[datetime]:
    """Parse an ISO datetime string, treating naive values as UTC.

    Raises:
        ValueError: If the string is not a valid ISO timestamp.
    """
    if not s:
        return None
    parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# === Enums ===


class EvidenceLevel(str, Enum):
    """How trustworthy a record is.

    E0 is raw capture, E1 is corroborated, E2 is promoted truth.
    E2 is reachable only through promotion.
    """

    E0 = "E0"
    E1 = "E1"
    E2 = "E2"

    @property
    def rank(self) -> int:
        return EVIDENCE_RANK[self.value]


EVIDENCE_RANK: Dict[str, int] = {"E0": 0, "E1": 1, "E2": 2}

VALID_EVIDENCE_LEVELS = frozenset(e.value for e in EvidenceLevel)


class RecordStatus(str, Enum):
    """Lifecycle status of a record."""

    ACTIVE = "ACTIVE"
    DEPRECATED = "DEPRECATED"
    QUARANTINED = "QUARANTINED"  # terminal


VALID_STATUSES = frozenset(s.value for s in RecordStatus)


class ScopeType(str, Enum):
    """Partition a record belongs to."""

    PROJECT = "project"
    USER = "user"
    ORG = "org"


VALID_SCOPE_TYPES = frozenset(s.value for s in ScopeType)


class SourceKind(str, Enum):
    """Kind of provenance reference attached to a record."""

    FILE = "file"
    URL = "url"
    COMMIT = "commit"
    CONVERSATION = "conversation"
    MANUAL = "manual"


VALID_SOURCE_KINDS = frozenset(s.value for s in SourceKind)


class AuditEventType(str, Enum):
    """Kinds of append-only audit events."""

    CAPTURE = "CAPTURE"
    PROMOTE = "PROMOTE"
    QUARANTINE = "QUARANTINE"
    DEPRECATE = "DEPRECATE"
    GATE = "GATE"


DEFAULT_PURPOSE_TAGS = ["work"]


# === Record Types ===


@dataclass(frozen=True)
class Scope:
    """Partition key: scope type plus sha256 of the normalized identifier."""

    type: str
    id: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "id": self.id}


@dataclass
class Source:
    """Provenance reference for a record.

    Attributes:
        type: One of VALID_SOURCE_KINDS
        ref: Path, URL, commit sha or free-form reference
        captured_at: ISO timestamp of when the reference was taken
    """

    type: str
    ref: str
    captured_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "ref": self.ref, "captured_at": self.captured_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Source":
        return cls(type=data["type"], ref=data["ref"], captured_at=data["captured_at"])


@dataclass
class MemoryRecord:
    """A single fact with evidence level, lifecycle status and scope.

    The record file on disk is the JSON rendering of ``to_dict()``. The
    ``id`` is immutable and maps to exactly one file.
    """

    id: str
    content: str
    evidence_level: str
    status: str
    scope: Scope
    conflict_key: str
    created_at: str = field(default_factory=utc_now)
    purpose_tags: List[str] = field(default_factory=lambda: list(DEFAULT_PURPOSE_TAGS))
    sources: List[Source] = field(default_factory=list)
    quarantine_ref: Optional[str] = None
    superseded_by: Optional[str] = None
    provenance: Optional[Dict[str, Any]] = None

    @property
    def is_active(self) -> bool:
        return self.status == RecordStatus.ACTIVE.value

    @property
    def is_quarantined(self) -> bool:
        return self.status == RecordStatus.QUARANTINED.value

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "evidence_level": self.evidence_level,
            "status": self.status,
            "scope": self.scope.to_dict(),
            "conflict_key": self.conflict_key,
            "purpose_tags": sorted(set(self.purpose_tags)),
            "created_at": self.created_at,
            "sources": [s.to_dict() for s in self.sources],
        }
        if self.quarantine_ref is not None:
            data["quarantine_ref"] = self.quarantine_ref
        if self.superseded_by is not None:
            data["superseded_by"] = self.superseded_by
        if self.provenance is not None:
            data["provenance"] = dict(self.provenance)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemoryRecord":
        scope = data["scope"]
        return cls(
            id=data["id"],
            content=data["content"],
            evidence_level=data["evidence_level"],
            status=data["status"],
            scope=Scope(type=scope["type"], id=scope["id"]),
            conflict_key=data["conflict_key"],
            created_at=data["created_at"],
            purpose_tags=list(data.get("purpose_tags", DEFAULT_PURPOSE_TAGS)),
            sources=[Source.from_dict(s) for s in data.get("sources", [])],
            quarantine_ref=data.get("quarantine_ref"),
            superseded_by=data.get("superseded_by"),
            provenance=data.get("provenance"),
        )


@dataclass
class ConflictResolution:
    """Outcome of resolving competing ACTIVE records for one topic.

    Attributes:
        winner: The canonical record
        reason: Which rule decided ("Only match", evidence, recency, id)
        candidates: All candidates in resolution order (winner first)
    """

    winner: MemoryRecord
    reason: str
    candidates: List[MemoryRecord] = field(default_factory=list)
