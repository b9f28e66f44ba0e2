"""Append-only audit trail.

Every lifecycle change appends one JSON line to
``.memorylink/audit/events.ndjson``. Events are hash-chained: each one
stores the hash of its predecessor (``prev_event_hash``) and its own hash
(``event_hash``, sha256 of its canonical JSON without that field), so a
rewritten or removed line is detectable with :meth:`AuditLogger.verify_chain`.

The log is never rewritten or compacted. Events never carry record
content. Appending is best-effort from the caller's point of view: use
:func:`try_append` so a failed append becomes a warning instead of
failing the operation that triggered it.
"""

import hashlib
import json
import logging
import os
import secrets
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from memorylink.core.ids import to_base36
from memorylink.protocols import MemoryLinkError, ValidationError
from memorylink.storage import paths
from memorylink.storage.filelock import DEFAULT_LOCK_TIMEOUT_MS, file_lock
from memorylink.storage.resilience import classify_os_error, ensure_directory
from memorylink.storage.retry import FILE_RETRY_POLICY, RetryPolicy, with_retry
from memorylink.types import AuditEventType, utc_now

logger = logging.getLogger(__name__)

FORBIDDEN_FIELDS = frozenset({"content", "original", "secret"})
TAIL_BYTES = 64 * 1024


def canonical_json(data: Dict[str, Any]) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def event_hash(event: Dict[str, Any]) -> str:
    """sha256 of the event's canonical JSON, excluding ``event_hash`` itself."""
    body = {k: v for k, v in event.items() if k != "event_hash"}
    return hashlib.sha256(canonical_json(body).encode("utf-8")).hexdigest()


def generate_event_id() -> str:
    return f"evt_{to_base36(int(time.time() * 1000))}_{secrets.token_hex(4)}"


def _last_event_hash(lines: Iterable[bytes]) -> Optional[str]:
    last_hash = None
    for raw in lines:
        stripped = raw.strip()
        if not stripped:
            continue
        try:
            data = json.loads(stripped)
        except (json.JSONDecodeError, UnicodeDecodeError):
            continue
        if isinstance(data, dict) and "event_hash" in data:
            last_hash = data["event_hash"]
    return last_hash


@dataclass
class ChainReport:
    """Result of verifying the audit hash chain."""

    checked: int = 0
    problems: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems


class AuditLogger:
    """Hash-chained NDJSON audit log for one project."""

    def __init__(
        self,
        root: Path,
        lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
        retry_policy: RetryPolicy = FILE_RETRY_POLICY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.root = Path(root)
        self.path = paths.audit_events_path(self.root)
        self.lock_timeout_ms = lock_timeout_ms
        self.retry_policy = retry_policy
        self._sleep = sleep

    def append(self, event_type: str, record_id: Optional[str] = None, **details: Any) -> Dict[str, Any]:
        """Append one event and return it as written.

        Args:
            event_type: One of AuditEventType.
            record_id: Record the event is about, if any.
            **details: Extra fields (from_evidence, to_evidence, reason, ...).

        Raises:
            ValidationError: For unknown event types or content-bearing fields.
            StorageError: Classified subclass if the append fails after retries.
        """
        try:
            event_type = AuditEventType(event_type).value
        except ValueError as e:
            raise ValidationError("event_type", f"unknown audit event type {event_type!r}") from e
        leaked = FORBIDDEN_FIELDS.intersection(details)
        if leaked:
            raise ValidationError("event", f"audit events must not carry {sorted(leaked)}")

        def _append() -> Dict[str, Any]:
            ensure_directory(self.path.parent)
            with file_lock(self.path, timeout_ms=self.lock_timeout_ms):
                prev_hash, needs_newline = self._tail_state()
                event: Dict[str, Any] = {
                    "event_id": generate_event_id(),
                    "event_type": event_type,
                    "timestamp": utc_now(),
                }
                if record_id is not None:
                    event["record_id"] = record_id
                event.update({k: v for k, v in details.items() if v is not None})
                if prev_hash:
                    event["prev_event_hash"] = prev_hash
                event["event_hash"] = event_hash(event)
                line = json.dumps(event, ensure_ascii=False) + "\n"
                if needs_newline:
                    line = "\n" + line
                try:
                    with open(self.path, "a", encoding="utf-8") as f:
                        f.write(line)
                        f.flush()
                        os.fsync(f.fileno())
                except OSError as e:
                    raise classify_os_error(e, self.path, "append") from e
                return event

        event = with_retry(_append, self.retry_policy, sleep=self._sleep, description="audit append")
        logger.debug(f"Audit {event_type} {record_id or ''}".rstrip())
        return event

    def _tail_state(self):
        """(hash of the last valid event, whether the file lacks a final newline).

        Only the last TAIL_BYTES are read. The whole file is scanned only
        when that window holds no complete valid event.
        """
        if not self.path.exists():
            return None, False
        try:
            with open(self.path, "rb") as f:
                size = f.seek(0, os.SEEK_END)
                if size == 0:
                    return None, False
                # One byte before the window, so dropping the first piece never loses a line inside it.
                offset = max(0, size - TAIL_BYTES - 1)
                f.seek(offset)
                tail = f.read()
                lines = tail.split(b"\n")
                if offset > 0:
                    lines = lines[1:]
                last_hash = _last_event_hash(lines)
                if last_hash is None and offset > 0:
                    logger.debug(f"No complete event in the tail of {self.path}; scanning the whole log")
                    f.seek(0)
                    last_hash = _last_event_hash(f)
        except OSError as e:
            raise classify_os_error(e, self.path, "read") from e
        return last_hash, not tail.endswith(b"\n")

    def read_events(
        self,
        event_type: Optional[str] = None,
        record_id: Optional[str] = None,
        warnings: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        """All events in log order, optionally filtered. Corrupted lines are skipped."""
        if not self.path.exists():
            return []
        events = []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                for lineno, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        event = json.loads(line)
                    except json.JSONDecodeError:
                        message = f"Skipped corrupted audit line {lineno}"
                        logger.warning(message)
                        if warnings is not None:
                            warnings.append(message)
                        continue
                    if not isinstance(event, dict):
                        continue
                    if event_type and event.get("event_type") != event_type:
                        continue
                    if record_id and event.get("record_id") != record_id:
                        continue
                    events.append(event)
        except OSError as e:
            raise classify_os_error(e, self.path, "read") from e
        return events

    def verify_chain(self) -> ChainReport:
        """Recompute every hash and check each link to its predecessor."""
        report = ChainReport()
        warnings: List[str] = []
        prev_hash = None
        for event in self.read_events(warnings=warnings):
            report.checked += 1
            label = event.get("event_id", f"#{report.checked}")
            stored = event.get("event_hash")
            if stored != event_hash(event):
                report.problems.append(f"{label}: event_hash does not match content")
            if event.get("prev_event_hash") != prev_hash:
                report.problems.append(f"{label}: chain broken (prev_event_hash mismatch)")
            prev_hash = stored
        report.problems.extend(warnings)
        return report


def try_append(
    audit: AuditLogger,
    warnings: List[str],
    event_type: str,
    record_id: Optional[str] = None,
    **details: Any,
) -> Optional[Dict[str, Any]]:
    """Append an event; on failure log it and add a warning instead of raising."""
    try:
        return audit.append(event_type, record_id=record_id, **details)
    except MemoryLinkError as e:
        message = f"Failed to write {event_type} audit event: {e.message}"
        logger.warning(message)
        warnings.append(message)
        return None
