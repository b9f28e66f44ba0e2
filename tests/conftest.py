"""
Pytest fixtures and test configuration for MemoryLink tests.
"""

from pathlib import Path

import pytest

from memorylink import MemoryLink
from memorylink.core.ids import generate_record_id
from memorylink.storage.paths import make_scope
from memorylink.types import MemoryRecord, RecordStatus, utc_now


@pytest.fixture(autouse=True)
def memorylink_home(tmp_path, monkeypatch):
    """Keep keys and environment overrides out of the real home directory."""
    home = tmp_path / "memorylink-home"
    monkeypatch.setenv("MEMORYLINK_HOME", str(home))
    for name in (
        "MEMORYLINK_ROOT",
        "MEMORYLINK_ACTOR",
        "MEMORYLINK_LOCK_TIMEOUT_MS",
        "MEMORYLINK_STORAGE_PROFILE",
    ):
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture
def key_dir(memorylink_home) -> Path:
    return memorylink_home / "keys"


@pytest.fixture
def project_root(tmp_path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def ml(project_root, key_dir):
    """Initialized MemoryLink instance that never sleeps between retries."""
    instance = MemoryLink(root=project_root, key_dir=key_dir, sleep=lambda seconds: None)
    instance.init()
    return instance


def make_record(**overrides) -> MemoryRecord:
    """Build a valid ACTIVE E0 record; any field can be overridden."""
    defaults = {
        "id": generate_record_id(),
        "content": "Use pnpm for package management",
        "evidence_level": "E0",
        "status": RecordStatus.ACTIVE.value,
        "scope": make_scope("project", "github.com/acme/widgets"),
        "conflict_key": "package.manager",
        "created_at": utc_now(),
    }
    defaults.update(overrides)
    return MemoryRecord(**defaults)


@pytest.fixture
def record_factory():
    """Factory for valid records: ``record_factory(evidence_level="E1")``."""
    return make_record
