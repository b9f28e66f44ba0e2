"""Scanning and gate commands for MemoryLink CLI."""

from pathlib import Path
from typing import TYPE_CHECKING

from memorylink.cli.commands.helpers import print_json, print_warnings, read_content
from memorylink.remediation import format_remediation
from memorylink.security.severity import SeverityTier, tier_description, tier_exit_code
from memorylink.storage.resilience import read_text_guarded

if TYPE_CHECKING:
    from memorylink import MemoryLink


def cmd_scan(args, ml: "MemoryLink"):
    """Scan a file (or stdin) for secrets without storing anything."""
    if args.file and args.file != "-":
        content = read_text_guarded(Path(args.file))
    else:
        content = read_content(None)

    result = ml.scan(content)
    if getattr(args, "json", False):
        print_json(result.to_dict())
    else:
        print(tier_description(result.tier))
        if result.found:
            print(f"  {result.pattern_name} at offset {result.position}: {result.masked_value}")
        if result.tier == SeverityTier.RED:
            print()
            print(format_remediation(result.pattern_id))
    return tier_exit_code(result.tier)


def cmd_gate(args, ml: "MemoryLink"):
    """Fail when a scope holds quarantined records or ownership violations."""
    result = ml.gate(scope_type=args.scope_type, identifier=args.repo_url, actor=args.actor)
    print_warnings(result.warnings)

    if getattr(args, "json", False):
        print_json({"passed": result.passed, "violations": [v.to_dict() for v in result.violations]})
    elif result.passed:
        print("✓ Gate passed")
    else:
        print(f"✗ Gate failed: {len(result.violations)} violation(s)")
        for violation in result.violations:
            where = violation.quarantine_ref or violation.source_ref or ""
            print(f"  [{violation.rule}] {violation.record_id} ({violation.conflict_key}) {where}".rstrip())
    return result.exit_code
