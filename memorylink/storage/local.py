"""Record store over the .memorylink directory layout.

Each record is one JSON file named after its id. Writes go through the
atomic writer under the record's path lock and are retried on transient
errors. Reads validate the file against the record schema; a file that
fails to parse, fails the schema, carries an unparseable created_at, or
whose id does not match its name is reported as corrupted.

Listing and bulk loading tolerate files that vanish or are corrupted
between the directory listing and the read: those are skipped and
reported as warnings.
"""

import json
import logging
import time
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple

from memorylink.core.ids import is_record_id
from memorylink.core.validation import record_schema_errors, validate_record_id
from memorylink.protocols import CorruptedRecordError, NotFoundError, StorageError
from memorylink.storage import paths
from memorylink.storage.atomic import atomic_write, atomic_write_json, dumps_json
from memorylink.storage.filelock import DEFAULT_LOCK_TIMEOUT_MS, file_lock
from memorylink.storage.resilience import read_text_guarded
from memorylink.storage.retry import FILE_RETRY_POLICY, RetryPolicy, with_retry
from memorylink.types import MemoryRecord, Scope, parse_datetime

logger = logging.getLogger(__name__)


class RecordStore:
    """File-per-record storage rooted at a project directory."""

    def __init__(
        self,
        root: Path,
        lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
        retry_policy: RetryPolicy = FILE_RETRY_POLICY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.root = Path(root)
        self.lock_timeout_ms = lock_timeout_ms
        self.retry_policy = retry_policy
        self._sleep = sleep

    def _retry(self, operation, description: str):
        return with_retry(operation, self.retry_policy, sleep=self._sleep, description=description)

    # === Paths ===

    def record_path(self, scope: Scope, record_id: str) -> Path:
        return paths.record_path(self.root, scope, validate_record_id(record_id))

    def exists(self, scope: Scope, record_id: str) -> bool:
        return self.record_path(scope, record_id).exists()

    def locate(self, record_id: str) -> Optional[Scope]:
        """Find which scope holds ``record_id``, searching every scope directory."""
        validate_record_id(record_id)
        base = paths.records_root(self.root)
        if not base.is_dir():
            return None
        for candidate in sorted(base.glob(f"*/*/{record_id}{paths.RECORD_SUFFIX}")):
            scope_dir = candidate.parent
            return Scope(type=scope_dir.parent.name, id=scope_dir.name)
        return None

    # === Writes ===

    def save(self, record: MemoryRecord) -> Path:
        """Write a record under its path lock, retrying transient failures.

        Raises:
            CorruptedRecordError: If the record would not pass the schema.
            StorageError: Classified subclass when the write fails.
        """
        data = record.to_dict()
        errors = record_schema_errors(data)
        if errors:
            raise CorruptedRecordError(
                f"Refusing to write invalid record {record.id}: {'; '.join(errors)}",
                operation="write",
            )
        path = self.record_path(record.scope, record.id)
        payload = dumps_json(data)

        def _write():
            with file_lock(path, timeout_ms=self.lock_timeout_ms):
                return atomic_write(path, payload)

        self._retry(_write, f"write {record.id}")
        logger.debug(f"Saved record {record.id} ({record.status}, {record.evidence_level})")
        return path

    def update(
        self,
        scope: Scope,
        record_id: str,
        mutate: Callable[[MemoryRecord], MemoryRecord],
    ) -> Tuple[MemoryRecord, MemoryRecord]:
        """Read, mutate and rewrite one record while holding its lock.

        ``mutate`` receives the current record and returns the new one. It
        may raise to abort; nothing is written in that case.

        Returns:
            Tuple of (before, after).
        """
        path = self.record_path(scope, record_id)

        def _update():
            with file_lock(path, timeout_ms=self.lock_timeout_ms):
                before = self._read(path, record_id)
                after = mutate(MemoryRecord.from_dict(before.to_dict()))
                if after.id != before.id:
                    raise StorageError(f"Record id is immutable ({before.id})", operation="update")
                errors = record_schema_errors(after.to_dict())
                if errors:
                    raise CorruptedRecordError(
                        f"Refusing to write invalid record {after.id}: {'; '.join(errors)}",
                        operation="update",
                    )
                atomic_write_json(path, after.to_dict())
                return before, after

        return self._retry(_update, f"update {record_id}")

    # === Reads ===

    def load(self, scope: Scope, record_id: str) -> MemoryRecord:
        """Load one record.

        Raises:
            ValidationError: If ``record_id`` is malformed (before any disk access).
            NotFoundError: If the record does not exist.
            CorruptedRecordError: If the file is unreadable as a record.
        """
        path = self.record_path(scope, record_id)
        return self._retry(lambda: self._read(path, record_id), f"read {record_id}")

    def _read(self, path: Path, record_id: str) -> MemoryRecord:
        if not path.exists():
            raise NotFoundError(f"Record not found: {record_id}", operation="read", path=str(path))
        try:
            data = json.loads(read_text_guarded(path))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptedRecordError(
                f"Record file {path.name} is not valid JSON: {e}", operation="read", path=str(path)
            ) from e
        errors = record_schema_errors(data)
        if errors:
            raise CorruptedRecordError(
                f"Record file {path.name} failed validation: {'; '.join(errors)}",
                operation="read",
                path=str(path),
            )
        if data["id"] != record_id:
            raise CorruptedRecordError(
                f"Record file {path.name} holds id {data['id']}", operation="read", path=str(path)
            )
        try:
            parse_datetime(data["created_at"])
        except ValueError as e:
            raise CorruptedRecordError(
                f"Record file {path.name} has an invalid created_at: {e}", operation="read", path=str(path)
            ) from e
        return MemoryRecord.from_dict(data)

    def list_ids(self, scope: Scope) -> List[str]:
        """Record ids in a scope, sorted. Temp, broken and lock files are ignored."""
        directory = paths.records_dir(self.root, scope)
        if not directory.is_dir():
            return []
        ids = []
        for entry in directory.iterdir():
            if entry.suffix != paths.RECORD_SUFFIX or not entry.is_file():
                continue
            if is_record_id(entry.stem):
                ids.append(entry.stem)
        return sorted(ids)

    def iter_records(self, scope: Scope, warnings: Optional[List[str]] = None) -> Iterator[MemoryRecord]:
        """Yield every readable record in a scope.

        Files that disappear or are corrupted are skipped; a message is
        appended to ``warnings`` (when given) and logged.
        """
        for record_id in self.list_ids(scope):
            try:
                yield self.load(scope, record_id)
            except NotFoundError:
                logger.debug(f"Record {record_id} disappeared during listing")
            except StorageError as e:
                message = f"Skipped unreadable record {record_id}: {e.message}"
                logger.warning(message)
                if warnings is not None:
                    warnings.append(message)

    def list_scopes(self) -> List[Scope]:
        base = paths.records_root(self.root)
        if not base.is_dir():
            return []
        scopes = []
        for type_dir in sorted(p for p in base.iterdir() if p.is_dir()):
            for id_dir in sorted(p for p in type_dir.iterdir() if p.is_dir() and not p.name.startswith(".")):
                scopes.append(Scope(type=type_dir.name, id=id_dir.name))
        return scopes

    # === Quarantine partition ===

    def write_quarantined(self, record_id: str, text: str) -> Path:
        """Store a quarantined original at ``quarantined/<id>.original``."""
        path = paths.quarantine_path(self.root, validate_record_id(record_id))

        def _write():
            with file_lock(path, timeout_ms=self.lock_timeout_ms):
                return atomic_write(path, text)

        return self._retry(_write, f"quarantine {record_id}")

    def read_quarantined(self, record_id: str) -> str:
        path = paths.quarantine_path(self.root, validate_record_id(record_id))
        if not path.exists():
            raise NotFoundError(
                f"No quarantined original for {record_id}", operation="read", path=str(path)
            )
        return read_text_guarded(path)
