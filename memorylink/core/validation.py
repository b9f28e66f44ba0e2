"""Input validation for record fields.

Every validator returns the normalized value or raises
:class:`~memorylink.protocols.ValidationError` naming the field. They are
pure and run before any disk access.

Record files read back from disk are checked against ``RECORD_SCHEMA``
(JSON Schema draft 7) by :func:`validate_record_data`.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from jsonschema import Draft7Validator

from memorylink.core.ids import RECORD_ID_PATTERN
from memorylink.protocols import EvidenceLevelError, ValidationError
from memorylink.types import (
    DEFAULT_PURPOSE_TAGS,
    VALID_EVIDENCE_LEVELS,
    VALID_SCOPE_TYPES,
    VALID_SOURCE_KINDS,
    VALID_STATUSES,
    EvidenceLevel,
)

logger = logging.getLogger(__name__)

MAX_TOPIC_LENGTH = 200
MAX_CONTENT_BYTES = 1024 * 1024  # 1 MiB, measured as UTF-8
MAX_REASON_LENGTH = 2000
MAX_TAG_LENGTH = 50

_WHITESPACE_RE = re.compile(r"\s+")
_TAG_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def validate_topic(topic: Any) -> str:
    """Normalize a topic into a conflict key.

    Trims, lowercases and collapses whitespace runs into ``.``, so
    ``"Package Manager"`` becomes ``"package.manager"``.

    Args:
        topic: Raw topic string.

    Returns:
        The normalized conflict key.

    Raises:
        ValidationError: If the topic is empty, or its conflict key is longer
            than 200 characters.
    """
    if not isinstance(topic, str):
        raise ValidationError("topic", f"must be a string, got {type(topic).__name__}")
    if not topic.strip():
        raise ValidationError("topic", "cannot be empty")
    key = _WHITESPACE_RE.sub(".", topic.strip().lower())
    if len(key) > MAX_TOPIC_LENGTH:
        raise ValidationError(
            "topic", f"too long (max {MAX_TOPIC_LENGTH} characters, got {len(key)})"
        )
    return key


def validate_content(content: Any) -> str:
    """Check record content. Returned unchanged when valid.

    Raises:
        ValidationError: If content is empty, whitespace-only, or over 1 MiB.
    """
    if not isinstance(content, str):
        raise ValidationError("content", f"must be a string, got {type(content).__name__}")
    if not content.strip():
        raise ValidationError("content", "cannot be empty")
    size = len(content.encode("utf-8"))
    if size > MAX_CONTENT_BYTES:
        raise ValidationError(
            "content", f"too large (max {MAX_CONTENT_BYTES} bytes, got {size})"
        )
    return content


def validate_evidence_level(level: Any, allow_e2: bool = False) -> str:
    """Check an evidence level.

    Args:
        level: ``"E0"``, ``"E1"`` or ``"E2"`` (case-insensitive).
        allow_e2: Only promotion passes True; capture may never create E2.

    Returns:
        The canonical level string.

    Raises:
        EvidenceLevelError: For unknown levels, or E2 when not allowed.
    """
    if isinstance(level, EvidenceLevel):
        level = level.value
    if not isinstance(level, str) or level.strip().upper() not in VALID_EVIDENCE_LEVELS:
        raise EvidenceLevelError(
            "evidence_level", f"must be one of {sorted(VALID_EVIDENCE_LEVELS)}, got {level!r}"
        )
    normalized = level.strip().upper()
    if normalized == EvidenceLevel.E2.value and not allow_e2:
        raise EvidenceLevelError(
            "evidence_level", "E2 can only be reached by promoting an existing record"
        )
    return normalized


def validate_record_id(record_id: Any) -> str:
    """Check a record id against the generated format.

    Rejects anything that could escape the records directory
    (``../``, slashes, absolute paths).
    """
    if not isinstance(record_id, str) or not RECORD_ID_PATTERN.match(record_id):
        raise ValidationError("record_id", f"invalid record id {record_id!r}")
    return record_id


def validate_reason(reason: Any) -> str:
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("reason", "cannot be empty")
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationError("reason", f"too long (max {MAX_REASON_LENGTH} characters)")
    return reason.strip()


def validate_scope_type(scope_type: Any) -> str:
    if scope_type not in VALID_SCOPE_TYPES:
        raise ValidationError(
            "scope_type", f"must be one of {sorted(VALID_SCOPE_TYPES)}, got {scope_type!r}"
        )
    return scope_type


def validate_purpose_tags(tags: Optional[Iterable[Any]]) -> List[str]:
    """Normalize purpose tags: lowercased, de-duplicated, sorted.

    Tag order carries no meaning. None or an empty list gives the default
    ``["work"]``.
    """
    if tags is None:
        return list(DEFAULT_PURPOSE_TAGS)
    if isinstance(tags, str):
        raise ValidationError("purpose_tags", "must be a list of strings")
    normalized = set()
    for tag in tags:
        if not isinstance(tag, str) or not tag.strip():
            raise ValidationError("purpose_tags", f"invalid tag {tag!r}")
        value = tag.strip().lower()
        if len(value) > MAX_TAG_LENGTH or not _TAG_RE.match(value):
            raise ValidationError("purpose_tags", f"invalid tag {tag!r}")
        normalized.add(value)
    return sorted(normalized) or list(DEFAULT_PURPOSE_TAGS)


# =============================================================================
# Record file schema
# =============================================================================

RECORD_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "MemoryRecord",
    "type": "object",
    "required": [
        "id",
        "content",
        "evidence_level",
        "status",
        "scope",
        "conflict_key",
        "created_at",
    ],
    "properties": {
        "id": {"type": "string", "pattern": RECORD_ID_PATTERN.pattern},
        "content": {"type": "string", "minLength": 1},
        "evidence_level": {"enum": sorted(VALID_EVIDENCE_LEVELS)},
        "status": {"enum": sorted(VALID_STATUSES)},
        "scope": {
            "type": "object",
            "required": ["type", "id"],
            "properties": {
                "type": {"enum": sorted(VALID_SCOPE_TYPES)},
                "id": {"type": "string", "pattern": "^[a-f0-9]{64}$"},
            },
        },
        "conflict_key": {"type": "string", "minLength": 1, "maxLength": MAX_TOPIC_LENGTH},
        "purpose_tags": {"type": "array", "items": {"type": "string"}},
        "created_at": {"type": "string", "minLength": 1},
        "sources": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["type", "ref", "captured_at"],
                "properties": {
                    "type": {"enum": sorted(VALID_SOURCE_KINDS)},
                    "ref": {"type": "string", "minLength": 1},
                    "captured_at": {"type": "string"},
                },
            },
        },
        "quarantine_ref": {"type": "string", "minLength": 1},
        "superseded_by": {"type": "string", "pattern": RECORD_ID_PATTERN.pattern},
        "provenance": {"type": "object"},
    },
    "if": {"required": ["status"], "properties": {"status": {"const": "QUARANTINED"}}},
    "then": {"required": ["quarantine_ref"]},
}

_record_validator = Draft7Validator(RECORD_SCHEMA)


def record_schema_errors(data: Any) -> List[str]:
    """Human readable schema violations for a record dict (empty when valid)."""
    errors = sorted(_record_validator.iter_errors(data), key=lambda e: [str(p) for p in e.absolute_path])
    messages = []
    for error in errors:
        where = ".".join(str(p) for p in error.absolute_path) or "<root>"
        messages.append(f"{where}: {error.message}")
    return messages


def validate_record_data(data: Any) -> Dict[str, Any]:
    """Validate a record dict loaded from disk.

    Raises:
        ValidationError: With every schema violation in the message.
    """
    errors = record_schema_errors(data)
    if errors:
        raise ValidationError("record", "; ".join(errors))
    return data
