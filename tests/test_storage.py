"""Tests for the storage layer: atomic writes, locks, retry, record store."""

import errno
import json
import platform
import random
from unittest.mock import patch

import pytest

from memorylink.protocols import (
    CorruptedRecordError,
    DiskFullError,
    LockTimeoutError,
    NotFoundError,
    PermissionDeniedError,
    ResourceBusyError,
    StorageError,
    ValidationError,
)
from memorylink.storage import paths
from memorylink.storage.atomic import (
    BROKEN_SUFFIX,
    atomic_write,
    atomic_write_json_locked,
    dumps_json,
)
from memorylink.storage.filelock import file_lock, lock_path_for
from memorylink.storage.local import RecordStore
from memorylink.storage.resilience import (
    classify_os_error,
    ensure_directory,
    friendly_message,
    read_text_guarded,
)
from memorylink.storage.retry import (
    FILE_RETRY_POLICY,
    NETWORK_RETRY_POLICY,
    RetryPolicy,
    is_transient,
    policy_for_profile,
    with_retry,
)
from memorylink.types import RecordStatus

# =============================================================================
# Atomic writes
# =============================================================================


class TestAtomicWrite:
    def test_writes_and_creates_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "file.json"
        atomic_write(target, "hello")
        assert target.read_text(encoding="utf-8") == "hello"

    def test_overwrites(self, tmp_path):
        target = tmp_path / "file.txt"
        atomic_write(target, "old")
        atomic_write(target, b"new")
        assert target.read_bytes() == b"new"

    def test_crash_before_rename_keeps_old_content(self, tmp_path):
        target = tmp_path / "record.json"
        atomic_write(target, "old content")

        with patch("memorylink.storage.atomic.os.replace", side_effect=OSError(errno.EIO, "I/O error")):
            with pytest.raises(StorageError):
                atomic_write(target, "new content")

        assert target.read_text(encoding="utf-8") == "old content"
        leftovers = [p.name for p in tmp_path.iterdir() if p.name != "record.json"]
        assert len(leftovers) == 1
        assert leftovers[0].endswith(".tmp" + BROKEN_SUFFIX)

    def test_interrupted_write_is_set_aside_and_reraised(self, tmp_path):
        target = tmp_path / "record.json"
        with patch("memorylink.storage.atomic.os.fsync", side_effect=RuntimeError("power cut")):
            with pytest.raises(RuntimeError, match="power cut"):
                atomic_write(target, "content")
        assert not target.exists()
        assert all(p.name.endswith(BROKEN_SUFFIX) for p in tmp_path.iterdir())

    def test_disk_full_is_classified(self, tmp_path):
        with patch("memorylink.storage.atomic.os.replace", side_effect=OSError(errno.ENOSPC, "No space")):
            with pytest.raises(DiskFullError):
                atomic_write(tmp_path / "x.json", "data")

    def test_dumps_json_format(self):
        text = dumps_json({"name": "café"})
        assert text.endswith("\n")
        assert "café" in text
        assert json.loads(text) == {"name": "café"}

    def test_locked_write(self, tmp_path):
        target = tmp_path / "config.json"
        atomic_write_json_locked(target, {"a": 1})
        assert json.loads(target.read_text()) == {"a": 1}
        assert lock_path_for(target).exists()


# =============================================================================
# Locks
# =============================================================================


class TestFileLock:
    def test_lock_path(self, tmp_path):
        assert lock_path_for(tmp_path / "rec.json") == tmp_path / ".locks" / "rec.json.lock"

    def test_acquire_and_release(self, tmp_path):
        target = tmp_path / "rec.json"
        with file_lock(target) as lock_file:
            assert lock_file.exists()
        with file_lock(target, timeout_ms=0):
            pass

    @pytest.mark.skipif(platform.system() == "Windows", reason="flock semantics")
    def test_held_lock_times_out(self, tmp_path):
        target = tmp_path / "rec.json"
        with file_lock(target):
            with pytest.raises(LockTimeoutError, match="Timed out"):
                with file_lock(target, timeout_ms=0):
                    pass

    def test_lock_timeout_is_retryable(self):
        assert LockTimeoutError("busy").retryable

    def test_released_after_exception(self, tmp_path):
        target = tmp_path / "rec.json"
        with pytest.raises(ValueError):
            with file_lock(target):
                raise ValueError("boom")
        with file_lock(target, timeout_ms=0):
            pass

    def test_unusable_lock_directory(self, tmp_path):
        (tmp_path / ".locks").write_text("a file, not a directory")
        with pytest.raises(StorageError):
            with file_lock(tmp_path / "rec.json"):
                pass


# =============================================================================
# Retry
# =============================================================================


class TestRetry:
    def test_transient_errors_retried(self):
        sleeps = []
        calls = {"n": 0}

        def flaky():
            calls["n"] += 1
            if calls["n"] < 3:
                raise ResourceBusyError("busy")
            return "ok"

        assert with_retry(flaky, FILE_RETRY_POLICY, sleep=sleeps.append) == "ok"
        assert calls["n"] == 3
        assert len(sleeps) == 2

    def test_permanent_errors_fail_fast(self):
        sleeps = []
        calls = {"n": 0}

        def denied():
            calls["n"] += 1
            raise PermissionDeniedError("denied")

        with pytest.raises(PermissionDeniedError):
            with_retry(denied, FILE_RETRY_POLICY, sleep=sleeps.append)
        assert calls["n"] == 1
        assert sleeps == []

    def test_exhaustion_reraises_last_error_unchanged(self):
        error = ResourceBusyError("still busy")
        calls = {"n": 0}

        def always_busy():
            calls["n"] += 1
            raise error

        with pytest.raises(ResourceBusyError) as excinfo:
            with_retry(always_busy, FILE_RETRY_POLICY, sleep=lambda s: None)
        assert excinfo.value is error
        assert calls["n"] == FILE_RETRY_POLICY.max_attempts

    def test_delays_grow_and_cap(self):
        policy = RetryPolicy(initial_delay_ms=100, multiplier=2.0, max_delay_ms=300, jitter=False)
        assert [policy.delay_ms(n) for n in range(5)] == [100, 200, 300, 300, 300]

    def test_jitter_bounded(self):
        policy = RetryPolicy(initial_delay_ms=100, jitter=True)
        rng = random.Random(7)
        for _ in range(50):
            assert 100 <= policy.delay_ms(0, rng) <= 130

    def test_sleep_receives_seconds(self):
        sleeps = []
        policy = RetryPolicy(max_attempts=2, initial_delay_ms=250, jitter=False)
        calls = {"n": 0}

        def flaky():
            calls["n"] += 1
            if calls["n"] == 1:
                raise ResourceBusyError("busy")
            return True

        with_retry(flaky, policy, sleep=sleeps.append)
        assert sleeps == [0.25]

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (OSError(errno.EBUSY, "busy"), True),
            (OSError(errno.EACCES, "denied"), False),
            (FileNotFoundError(errno.ENOENT, "missing"), False),
            (StorageError("flaky", retryable=True), True),
            (StorageError("broken"), False),
            (CorruptedRecordError("bad json"), False),
            (DiskFullError("full"), False),
            (ValueError("not io"), False),
        ],
    )
    def test_is_transient(self, error, expected):
        assert is_transient(error) is expected

    def test_network_policy_retries_connection_errors(self):
        error = ConnectionResetError(errno.ECONNRESET, "reset")
        assert is_transient(error, NETWORK_RETRY_POLICY)
        assert not is_transient(error, FILE_RETRY_POLICY)

    def test_policy_for_profile(self):
        assert policy_for_profile("network") is NETWORK_RETRY_POLICY
        assert policy_for_profile("local") is FILE_RETRY_POLICY
        assert NETWORK_RETRY_POLICY.max_attempts > FILE_RETRY_POLICY.max_attempts


# =============================================================================
# Error classification
# =============================================================================


class TestResilience:
    @pytest.mark.parametrize(
        ("code", "error_type"),
        [
            (errno.ENOENT, NotFoundError),
            (errno.EACCES, PermissionDeniedError),
            (errno.ENOSPC, DiskFullError),
            (errno.EBUSY, ResourceBusyError),
        ],
    )
    def test_classify(self, tmp_path, code, error_type):
        error = classify_os_error(OSError(code, "raw system text"), tmp_path / "f", "write")
        assert isinstance(error, error_type)
        assert error.operation == "write"
        assert "raw system text" not in error.message

    def test_unknown_errno_keeps_code_name(self):
        error = classify_os_error(OSError(errno.EIO, "raw system text"), None, "read")
        assert type(error) is StorageError
        assert "EIO" in error.message
        assert "raw system text" not in error.message

    def test_friendly_messages(self):
        assert "Disk is full" in friendly_message(DiskFullError("x"))
        assert "Permission denied" in friendly_message(OSError(errno.EACCES, "x"))
        assert friendly_message(CorruptedRecordError("bad record")) == "bad record"

    def test_ensure_directory_with_file_in_the_way(self, tmp_path):
        (tmp_path / "blocker").write_text("x")
        with pytest.raises(StorageError):
            ensure_directory(tmp_path / "blocker")

    def test_read_guard(self, tmp_path):
        path = tmp_path / "big.txt"
        path.write_text("x" * 100)
        assert read_text_guarded(path, max_size=100) == "x" * 100
        with pytest.raises(StorageError, match="exceeds limit"):
            read_text_guarded(path, max_size=99)


# =============================================================================
# Record store
# =============================================================================


@pytest.fixture
def store(project_root):
    return RecordStore(project_root, sleep=lambda s: None)


class TestRecordStore:
    def test_save_and_load(self, store, record_factory):
        record = record_factory(purpose_tags=["ci", "build"])
        path = store.save(record)
        assert path == paths.record_path(store.root, record.scope, record.id)
        loaded = store.load(record.scope, record.id)
        assert loaded.to_dict() == record.to_dict()
        assert loaded.purpose_tags == ["build", "ci"]

    def test_invalid_record_never_written(self, store, record_factory):
        record = record_factory(content="")
        with pytest.raises(CorruptedRecordError, match="Refusing"):
            store.save(record)
        assert not store.exists(record.scope, record.id)

    def test_load_missing(self, store, record_factory):
        record = record_factory()
        with pytest.raises(NotFoundError):
            store.load(record.scope, record.id)

    def test_invalid_id_rejected_before_disk(self, store, record_factory):
        scope = record_factory().scope
        with patch("memorylink.storage.local.read_text_guarded") as reader:
            with pytest.raises(ValidationError):
                store.load(scope, "../../etc/passwd")
        reader.assert_not_called()

    def test_corrupted_json(self, store, record_factory):
        record = record_factory()
        path = store.save(record)
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(CorruptedRecordError, match="not valid JSON"):
            store.load(record.scope, record.id)

    def test_schema_failure(self, store, record_factory):
        record = record_factory()
        path = store.save(record)
        data = json.loads(path.read_text())
        data["status"] = "ZOMBIE"
        path.write_text(json.dumps(data))
        with pytest.raises(CorruptedRecordError, match="failed validation"):
            store.load(record.scope, record.id)

    def test_id_mismatch(self, store, record_factory):
        record = record_factory()
        other = record_factory(scope=record.scope)
        path = store.save(record)
        path.write_text(dumps_json(other.to_dict()))
        with pytest.raises(CorruptedRecordError, match="holds id"):
            store.load(record.scope, record.id)

    def test_unparseable_created_at(self, store, record_factory):
        record = record_factory()
        path = store.save(record)
        data = json.loads(path.read_text())
        data["created_at"] = "not-a-date"
        path.write_text(json.dumps(data))
        with pytest.raises(CorruptedRecordError, match="invalid created_at"):
            store.load(record.scope, record.id)

    def test_iter_records_skips_corrupted(self, store, record_factory):
        good = record_factory()
        bad = record_factory(scope=good.scope)
        store.save(good)
        store.save(bad).write_text("garbage")
        warnings = []
        records = list(store.iter_records(good.scope, warnings))
        assert [r.id for r in records] == [good.id]
        assert len(warnings) == 1
        assert bad.id in warnings[0]

    def test_list_ids_ignores_temp_and_broken_files(self, store, record_factory):
        record = record_factory()
        path = store.save(record)
        (path.parent / f"{path.name}.abc.tmp").write_text("partial")
        (path.parent / f"{path.name}.abc.tmp{BROKEN_SUFFIX}").write_text("partial")
        (path.parent / "notes.json").write_text("{}")
        assert store.list_ids(record.scope) == [record.id]

    def test_update(self, store, record_factory):
        record = record_factory()
        store.save(record)
        def raise_to_e1(r):
            r.evidence_level = "E1"
            return r

        before, after = store.update(record.scope, record.id, raise_to_e1)
        assert before.evidence_level == "E0"
        assert after.evidence_level == "E1"
        assert store.load(record.scope, record.id).evidence_level == "E1"

    def test_update_aborted_by_mutator(self, store, record_factory):
        record = record_factory()
        path = store.save(record)
        original = path.read_bytes()

        def refuse(_):
            raise ValidationError("reason", "nope")

        with pytest.raises(ValidationError):
            store.update(record.scope, record.id, refuse)
        assert path.read_bytes() == original

    def test_update_cannot_change_id(self, store, record_factory):
        record = record_factory()
        store.save(record)
        replacement = record_factory(scope=record.scope)
        with pytest.raises(StorageError, match="immutable"):
            store.update(record.scope, record.id, lambda r: replacement)

    def test_update_rejects_invalid_result(self, store, record_factory):
        record = record_factory()
        store.save(record)

        def quarantine_without_ref(r):
            r.status = RecordStatus.QUARANTINED.value
            return r

        with pytest.raises(CorruptedRecordError):
            store.update(record.scope, record.id, quarantine_without_ref)
        assert store.load(record.scope, record.id).is_active

    def test_locate_and_list_scopes(self, store, record_factory):
        record = record_factory()
        store.save(record)
        assert store.locate(record.id) == record.scope
        assert store.locate(record_factory().id) is None
        assert store.list_scopes() == [record.scope]

    def test_transient_write_failure_retried(self, store, record_factory):
        record = record_factory()
        real_write = atomic_write
        calls = {"n": 0}

        def flaky_write(path, data):
            calls["n"] += 1
            if calls["n"] == 1:
                raise ResourceBusyError("busy", operation="write")
            return real_write(path, data)

        with patch("memorylink.storage.local.atomic_write", side_effect=flaky_write):
            store.save(record)
        assert calls["n"] == 2
        assert store.exists(record.scope, record.id)

    def test_quarantine_partition(self, store):
        path = store.write_quarantined("mem_abc_0123abcd", "original")
        assert path == paths.quarantine_path(store.root, "mem_abc_0123abcd")
        assert store.read_quarantined("mem_abc_0123abcd") == "original"
        with pytest.raises(NotFoundError):
            store.read_quarantined("mem_abc_0123abce")
