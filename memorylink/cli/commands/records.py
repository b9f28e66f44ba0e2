"""Record commands for MemoryLink CLI: capture, promote, query, list, deprecate, supersede."""

from typing import TYPE_CHECKING

from memorylink.cli.commands.helpers import (
    format_record_line,
    print_json,
    print_warnings,
    read_content,
)
from memorylink.protocols import EXIT_FAILURE

if TYPE_CHECKING:
    from memorylink import MemoryLink


def cmd_capture(args, ml: "MemoryLink"):
    """Capture a new record."""
    result = ml.capture(
        args.topic,
        read_content(args.content),
        evidence=args.evidence,
        scope_type=args.scope_type,
        identifier=args.repo_url,
        purpose_tags=args.tag,
        sources=args.source,
        author=getattr(args, "author", None),
    )
    print_warnings(result.warnings)
    if getattr(args, "json", False):
        print_json(result.record.to_dict())
        return
    print(f"✓ Captured {result.record.id} ({result.record.evidence_level}) for '{result.record.conflict_key}'")


def cmd_promote(args, ml: "MemoryLink"):
    """Promote a record to E2."""
    result = ml.promote(
        args.record_id,
        args.reason,
        scope_type=args.scope_type,
        identifier=args.repo_url,
        constitution_approved=args.constitution,
    )
    print_warnings(result.warnings)
    print(f"✓ Promoted {result.record.id}: {result.from_level} → {result.record.evidence_level}")


def cmd_query(args, ml: "MemoryLink"):
    """Show the canonical record for a topic."""
    answer = ml.query(args.topic, scope_type=args.scope_type, identifier=args.repo_url)
    print_warnings(answer.warnings)

    if getattr(args, "json", False):
        print_json(
            {
                "conflict_key": answer.conflict_key,
                "found": answer.found,
                "winner": answer.winner.to_dict() if answer.winner else None,
                "reason": answer.reason,
                "candidates": [r.id for r in answer.candidates],
            }
        )
    elif not answer.found:
        print(f"No active record for '{answer.conflict_key}'")
    else:
        winner = answer.winner
        print(f"{winner.content}")
        print()
        print(f"  id: {winner.id}  evidence: {winner.evidence_level}  created: {winner.created_at}")
        print(f"  why: {answer.reason}")
        if len(answer.candidates) > 1:
            others = ", ".join(r.id for r in answer.candidates[1:])
            print(f"  also on this topic: {others}")

    if not answer.found:
        return EXIT_FAILURE


def cmd_list(args, ml: "MemoryLink"):
    """List records in a scope."""
    warnings = []
    records = ml.list_records(
        scope_type=args.scope_type,
        identifier=args.repo_url,
        topic=args.topic,
        include_deprecated=args.include_deprecated,
        warnings=warnings,
    )
    print_warnings(warnings)

    if getattr(args, "json", False):
        print_json([r.to_dict() for r in records])
        return
    if not records:
        print("No records.")
        return
    for record in records:
        print(format_record_line(record))


def cmd_deprecate(args, ml: "MemoryLink"):
    """Deprecate a record."""
    result = ml.deprecate(
        args.record_id,
        args.reason,
        superseded_by=args.superseded_by,
        scope_type=args.scope_type,
        identifier=args.repo_url,
    )
    print_warnings(result.warnings)
    suffix = f" (superseded by {result.record.superseded_by})" if result.record.superseded_by else ""
    print(f"✓ Deprecated {result.record.id}{suffix}")


def cmd_supersede(args, ml: "MemoryLink"):
    """Deprecate every loser on a topic in favour of the resolved winner."""
    result = ml.supersede(args.topic, args.reason, scope_type=args.scope_type, identifier=args.repo_url)
    print_warnings(result.warnings)
    if result.winner is None:
        print("No active record on this topic.")
        return EXIT_FAILURE
    if not result.deprecated:
        print(f"Nothing to supersede; {result.winner.id} is the only active record.")
        return
    print(f"✓ Kept {result.winner.id}, deprecated {len(result.deprecated)}:")
    for record in result.deprecated:
        print(f"  {record.id}")
