"""MemoryLink class, the main interface for record operations.

The class is assembled from operation mixins. It holds no state beyond
its explicit project root and the collaborators built from it; every
operation reads what it needs from disk.
"""

import logging
import os
import time
from pathlib import Path
from typing import Callable, List, Optional

from memorylink.audit.logger import AuditLogger
from memorylink.config import MemoryLinkConfig, load_config
from memorylink.core.gate import GateMixin
from memorylink.core.queries import QueriesMixin
from memorylink.core.validation import validate_scope_type
from memorylink.core.writers import WritersMixin
from memorylink.protection.governance import GovernanceDetector
from memorylink.protection.ownership import OwnershipReader
from memorylink.protocols import NotFoundError
from memorylink.security.detector import SecretScanner
from memorylink.security.quarantine import QuarantineVault
from memorylink.storage import paths
from memorylink.storage.local import RecordStore
from memorylink.storage.resilience import ensure_directory
from memorylink.storage.retry import policy_for_profile
from memorylink.types import Scope

logger = logging.getLogger(__name__)


class MemoryLink(WritersMixin, QueriesMixin, GateMixin):
    """Record lifecycle operations over one project's .memorylink directory.

    Examples:
        ml = MemoryLink("/path/to/project")
        ml.capture("package manager", "Use pnpm for packages", evidence="E1")
        answer = ml.query("package manager")
        print(answer.winner.content, answer.reason)
    """

    def __init__(
        self,
        root: Optional[Path] = None,
        config: Optional[MemoryLinkConfig] = None,
        key_dir: Optional[Path] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize MemoryLink.

        Args:
            root: Project root (default: MEMORYLINK_ROOT or the current directory)
            config: Settings; loaded from .memorylink/config.json when omitted
            key_dir: Where quarantine keys live (default: ~/.memorylink/keys)
            sleep: Sleep function used between retries
        """
        self.root = Path(root or os.environ.get("MEMORYLINK_ROOT") or Path.cwd()).expanduser().resolve()
        self.config = config if config is not None else load_config(self.root)
        retry_policy = policy_for_profile(self.config.storage_profile)

        self.store = RecordStore(
            self.root,
            lock_timeout_ms=self.config.lock_timeout_ms,
            retry_policy=retry_policy,
            sleep=sleep,
        )
        self.audit = AuditLogger(
            self.root,
            lock_timeout_ms=self.config.lock_timeout_ms,
            retry_policy=retry_policy,
            sleep=sleep,
        )
        self.scanner = SecretScanner.from_config(self.config)
        self.vault = QuarantineVault(self.store, encrypt=self.config.encrypt_quarantine, key_dir=key_dir)
        self.governance = GovernanceDetector(self.root)
        self.ownership = OwnershipReader(self.root)

        logger.debug(
            f"MemoryLink initialized at {self.root} "
            f"(profile: {self.config.storage_profile}, lock timeout: {self.config.lock_timeout_ms}ms)"
        )

    def init(self) -> List[Path]:
        """Create the .memorylink layout. Safe to run repeatedly.

        Returns:
            Directories that were created by this call.
        """
        created = []
        for directory in (
            paths.records_root(self.root),
            paths.quarantine_dir(self.root),
            paths.audit_events_path(self.root).parent,
        ):
            if not directory.is_dir():
                created.append(directory)
            ensure_directory(directory)
        return created

    @property
    def is_initialized(self) -> bool:
        return paths.memorylink_root(self.root).is_dir()

    def _scope(self, scope_type: Optional[str], identifier: Optional[str]) -> Scope:
        scope_type = validate_scope_type(scope_type or self.config.default_scope_type)
        return paths.make_scope(scope_type, identifier or str(self.root))

    def _find_scope(self, record_id: str, scope_type: Optional[str], identifier: Optional[str]) -> Scope:
        """Scope holding ``record_id``.

        An explicit scope type or identifier is used as given; otherwise
        every scope is searched.
        """
        if scope_type or identifier:
            return self._scope(scope_type, identifier)
        scope = self.store.locate(record_id)
        if scope is None:
            raise NotFoundError(f"Record not found: {record_id}", operation="read")
        return scope
