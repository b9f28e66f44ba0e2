"""Ownership metadata for team files.

Team files (``.agent/teams/<team>.md``) may declare who can edit them in
YAML front-matter::

    ---
    memorylink:
      owner: frontend
      editors: [alice, bob]
      readonly: [contractors]
    ---

Files without metadata are editable by everyone.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

from memorylink.protocols import ValidationError

logger = logging.getLogger(__name__)

TEAMS_DIR = ".agent/teams"

_FRONT_MATTER_RE = re.compile(r"\A---\r?\n(.*?)\r?\n---\s*(?:\r?\n|\Z)", re.DOTALL)


@dataclass
class OwnershipMetadata:
    owner: Optional[str] = None
    editors: List[str] = field(default_factory=list)
    readonly: List[str] = field(default_factory=list)


def _as_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [s.strip() for s in str(value).split(",") if s.strip()]


def parse_ownership(text: str) -> Optional[OwnershipMetadata]:
    """Parse the ``memorylink`` front-matter block.

    Returns:
        The metadata, or None when the text has no front-matter or no
        ``memorylink`` section.

    Raises:
        ValidationError: If the front-matter is not valid YAML.
    """
    match = _FRONT_MATTER_RE.match(text)
    if not match:
        return None
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        raise ValidationError("ownership", f"front-matter is not valid YAML: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("memorylink"), dict):
        return None
    section = data["memorylink"]
    owner = section.get("owner")
    metadata = OwnershipMetadata(
        owner=str(owner).strip() if owner else None,
        editors=_as_list(section.get("editors")),
        readonly=_as_list(section.get("readonly")),
    )
    if metadata.owner is None and not metadata.editors and not metadata.readonly:
        return None
    return metadata


class OwnershipReader:
    """Edit permission checks for team files under one project root."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def is_team_file(self, path: Path) -> bool:
        normalized = str(path).replace("\\", "/")
        return f"{TEAMS_DIR}/" in normalized

    def team_files(self) -> List[Path]:
        teams = self.root / TEAMS_DIR
        if not teams.is_dir():
            return []
        return sorted(teams.glob("*.md"))

    def read_metadata(self, path: Path) -> Optional[OwnershipMetadata]:
        path = Path(path)
        if not path.is_file():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ValidationError("ownership", f"cannot read {path}: {e}") from e
        return parse_ownership(text)

    def can_edit(self, path: Path, actor: Optional[str]) -> bool:
        """Whether ``actor`` may edit ``path``.

        Precedence: editors and owner allow, readonly denies, and a file
        with an owner denies everyone else.
        """
        if not self.is_team_file(path):
            return True
        metadata = self.read_metadata(path)
        if metadata is None:
            return True
        if actor is None:
            return metadata.owner is None and not metadata.readonly
        if actor in metadata.editors or actor == metadata.owner:
            return True
        if actor in metadata.readonly:
            return False
        return metadata.owner is None
