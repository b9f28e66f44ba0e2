"""Project configuration.

Settings are read from ``.memorylink/config.json`` and can be overridden
with environment variables:

- MEMORYLINK_LOCK_TIMEOUT_MS: lock wait in milliseconds
- MEMORYLINK_STORAGE_PROFILE: ``local`` or ``network``
- MEMORYLINK_HOME: root for quarantine keys (default ~/.memorylink)
- MEMORYLINK_ACTOR: identity used for ownership checks
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from memorylink.protocols import ConfigError
from memorylink.security.patterns import compile_custom_pattern
from memorylink.storage.atomic import atomic_write_json_locked
from memorylink.storage.paths import config_path
from memorylink.storage.resilience import read_text_guarded
from memorylink.types import DEFAULT_PURPOSE_TAGS, VALID_SCOPE_TYPES

logger = logging.getLogger(__name__)

STORAGE_PROFILES = ("local", "network")


@dataclass
class MemoryLinkConfig:
    """Settings for one project.

    Attributes:
        lock_timeout_ms: How long writers wait for a path lock
        storage_profile: "network" selects the slower, more patient retry policy
        default_scope_type: Scope used when a command does not name one
        default_purpose_tags: Tags applied when capture gets none
        encrypt_quarantine: Encrypt quarantined originals at rest
        custom_patterns: Extra secret patterns ({id, name, pattern, severity})
        disabled_patterns: Built-in pattern ids to skip
    """

    lock_timeout_ms: int = 5000
    storage_profile: str = "local"
    default_scope_type: str = "project"
    default_purpose_tags: List[str] = field(default_factory=lambda: list(DEFAULT_PURPOSE_TAGS))
    encrypt_quarantine: bool = True
    custom_patterns: List[Dict[str, Any]] = field(default_factory=list)
    disabled_patterns: List[str] = field(default_factory=list)

    def validate(self) -> "MemoryLinkConfig":
        """Check every value. Returns self for chaining.

        Raises:
            ConfigError: On the first invalid value.
        """
        if (
            not isinstance(self.lock_timeout_ms, int)
            or isinstance(self.lock_timeout_ms, bool)
            or self.lock_timeout_ms < 0
        ):
            raise ConfigError(f"lock_timeout_ms must be a non-negative integer, got {self.lock_timeout_ms!r}")
        if self.storage_profile not in STORAGE_PROFILES:
            raise ConfigError(f"storage_profile must be one of {STORAGE_PROFILES}, got {self.storage_profile!r}")
        if self.default_scope_type not in VALID_SCOPE_TYPES:
            raise ConfigError(
                f"default_scope_type must be one of {sorted(VALID_SCOPE_TYPES)}, "
                f"got {self.default_scope_type!r}"
            )
        if not isinstance(self.encrypt_quarantine, bool):
            raise ConfigError("encrypt_quarantine must be true or false")
        if not isinstance(self.default_purpose_tags, list) or not all(
            isinstance(t, str) and t for t in self.default_purpose_tags
        ):
            raise ConfigError("default_purpose_tags must be a list of strings")
        if not isinstance(self.disabled_patterns, list) or not all(
            isinstance(p, str) for p in self.disabled_patterns
        ):
            raise ConfigError("disabled_patterns must be a list of pattern ids")
        if not isinstance(self.custom_patterns, list):
            raise ConfigError("custom_patterns must be a list")
        for pattern in self.custom_patterns:
            compile_custom_pattern(pattern)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemoryLinkConfig":
        """Build a config from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.debug(f"Ignoring unknown config keys: {unknown}")
        return cls(**{k: v for k, v in data.items() if k in known}).validate()


def _apply_env(data: Dict[str, Any]) -> Dict[str, Any]:
    timeout = os.environ.get("MEMORYLINK_LOCK_TIMEOUT_MS")
    if timeout:
        try:
            data["lock_timeout_ms"] = int(timeout)
        except ValueError as e:
            raise ConfigError(f"MEMORYLINK_LOCK_TIMEOUT_MS must be an integer, got {timeout!r}") from e
    profile = os.environ.get("MEMORYLINK_STORAGE_PROFILE")
    if profile:
        data["storage_profile"] = profile
    return data


def load_config(root: Path) -> MemoryLinkConfig:
    """Load config for a project, falling back to defaults when absent.

    Raises:
        ConfigError: If config.json is not valid JSON or holds invalid values.
    """
    path = config_path(root)
    data: Dict[str, Any] = {}
    if path.exists():
        try:
            data = json.loads(read_text_guarded(path))
        except json.JSONDecodeError as e:
            raise ConfigError(f"{path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a JSON object")
    return MemoryLinkConfig.from_dict(_apply_env(data))


def save_config(root: Path, config: MemoryLinkConfig) -> Path:
    """Validate and write config.json atomically."""
    config.validate()
    path = config_path(root)
    atomic_write_json_locked(path, config.to_dict(), timeout_ms=config.lock_timeout_ms)
    return path


def get_actor(explicit: Optional[str] = None) -> Optional[str]:
    """Identity used for ownership checks.

    Resolution order:
    1. Explicit value (e.g. --actor)
    2. MEMORYLINK_ACTOR environment variable
    3. USER / USERNAME
    """
    if explicit:
        return explicit
    return (
        os.environ.get("MEMORYLINK_ACTOR")
        or os.environ.get("USER")
        or os.environ.get("USERNAME")
    )
