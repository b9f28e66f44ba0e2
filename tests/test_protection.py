"""Tests for governed-file detection and team file ownership."""

import pytest

from memorylink.protection.governance import TIER_CONSTITUTION, TIER_HUB, GovernanceDetector
from memorylink.protection.ownership import OwnershipReader, parse_ownership
from memorylink.protocols import ValidationError
from memorylink.types import Source

TEAM_FILE = """---
memorylink:
  owner: frontend
  editors: [alice, bob]
  readonly: contractors, interns
---
# Frontend team

Use pnpm.
"""


def _source(ref):
    return Source(type="file", ref=ref, captured_at="2026-03-01T12:00:00+00:00")


class TestGovernance:
    def test_no_constitution_means_no_approval(self, project_root):
        detector = GovernanceDetector(project_root)
        assert detector.find_governing_file() is None
        assert not detector.requires_approval([_source("constitution.md")])

    def test_constitution_source_requires_approval(self, project_root):
        (project_root / "constitution.md").write_text("# Rules\n")
        detector = GovernanceDetector(project_root)
        assert detector.find_governing_file() == project_root / "constitution.md"
        assert detector.requires_approval([_source("README.md"), _source("constitution.md")])
        assert not detector.requires_approval([_source("README.md")])
        assert not detector.requires_approval([])

    def test_spec_kit_location(self, project_root):
        path = project_root / ".specify" / "memory" / "constitution.md"
        path.parent.mkdir(parents=True)
        path.write_text("# Rules\n")
        detector = GovernanceDetector(project_root)
        assert detector.find_governing_file() == path
        assert detector.is_governed(str(path))

    @pytest.mark.parametrize(
        ("ref", "tier"),
        [
            ("constitution.md", TIER_CONSTITUTION),
            ("docs/constitution.md", TIER_CONSTITUTION),
            ("AGENTS.md", TIER_HUB),
            ("AI.md", TIER_HUB),
            ("README.md", None),
            ("not-a-constitution.md", None),
        ],
    )
    def test_protection_tier(self, project_root, ref, tier):
        assert GovernanceDetector(project_root).protection_tier(ref) == tier


class TestParseOwnership:
    def test_full_block(self):
        metadata = parse_ownership(TEAM_FILE)
        assert metadata.owner == "frontend"
        assert metadata.editors == ["alice", "bob"]
        assert metadata.readonly == ["contractors", "interns"]

    @pytest.mark.parametrize(
        "text",
        [
            "# No front-matter\n",
            "---\ntitle: Team\n---\n",
            "---\nmemorylink: {}\n---\n",
        ],
    )
    def test_no_metadata(self, text):
        assert parse_ownership(text) is None

    def test_invalid_yaml(self):
        with pytest.raises(ValidationError, match="not valid YAML"):
            parse_ownership("---\nmemorylink: [unclosed\n---\n")


class TestCanEdit:
    @pytest.fixture
    def reader(self, project_root):
        teams = project_root / ".agent" / "teams"
        teams.mkdir(parents=True)
        (teams / "frontend.md").write_text(TEAM_FILE)
        (teams / "open.md").write_text("# Anyone can edit\n")
        return OwnershipReader(project_root)

    @pytest.fixture
    def team_file(self, project_root):
        return project_root / ".agent" / "teams" / "frontend.md"

    @pytest.mark.parametrize(
        ("actor", "allowed"),
        [
            ("frontend", True),
            ("alice", True),
            ("contractors", False),
            ("mallory", False),
            (None, False),
        ],
    )
    def test_rules(self, reader, team_file, actor, allowed):
        assert reader.can_edit(team_file, actor) is allowed

    def test_file_without_metadata(self, reader, project_root):
        assert reader.can_edit(project_root / ".agent" / "teams" / "open.md", "mallory")

    def test_non_team_files_unrestricted(self, reader, project_root):
        (project_root / "README.md").write_text(TEAM_FILE)
        assert reader.can_edit(project_root / "README.md", "mallory")

    def test_team_files_listing(self, reader):
        assert [p.name for p in reader.team_files()] == ["frontend.md", "open.md"]
