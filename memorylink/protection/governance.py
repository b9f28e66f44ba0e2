"""Detection of governed project files.

Tier 1 files (a project constitution) are locked: promoting a record
whose sources point at one needs explicit approval. Tier 2 files are the
shared agent hub documents (AI.md, AGENTS.md, AGENT.md).
"""

from pathlib import Path
from typing import Iterable, Optional

from memorylink.types import Source

CONSTITUTION_PATHS = ("constitution.md", ".specify/memory/constitution.md")
HUB_PATHS = ("AI.md", "AGENTS.md", "AGENT.md")

TIER_CONSTITUTION = 1
TIER_HUB = 2


def _relative(path: str, root: Optional[Path]) -> str:
    normalized = str(path).replace("\\", "/")
    if root is not None:
        prefix = str(root).replace("\\", "/").rstrip("/") + "/"
        if normalized.startswith(prefix):
            return normalized[len(prefix) :]
    return normalized


def _matches(relative: str, candidates: Iterable[str]) -> bool:
    return any(relative == c or relative.endswith("/" + c) for c in candidates)


class GovernanceDetector:
    """Answers "is this path governed?" for one project root."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def find_governing_file(self) -> Optional[Path]:
        """First constitution file present in the project, if any."""
        for candidate in CONSTITUTION_PATHS:
            path = self.root / candidate
            if path.is_file():
                return path
        return None

    def is_governed(self, path: str) -> bool:
        return _matches(_relative(path, self.root), CONSTITUTION_PATHS)

    def is_hub_file(self, path: str) -> bool:
        return _matches(_relative(path, self.root), HUB_PATHS)

    def protection_tier(self, path: str) -> Optional[int]:
        if self.is_governed(path):
            return TIER_CONSTITUTION
        if self.is_hub_file(path):
            return TIER_HUB
        return None

    def requires_approval(self, sources: Iterable[Source]) -> bool:
        """Whether promoting a record with these sources needs constitution approval.

        Only applies when the project actually has a constitution file.
        """
        if self.find_governing_file() is None:
            return False
        return any(self.is_governed(source.ref) for source in sources)
