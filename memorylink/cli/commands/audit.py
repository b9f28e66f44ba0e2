"""Audit log commands for MemoryLink CLI."""

from typing import TYPE_CHECKING

from memorylink.cli.commands.helpers import print_json, print_warnings
from memorylink.protocols import EXIT_FAILURE

if TYPE_CHECKING:
    from memorylink import MemoryLink


def cmd_audit(args, ml: "MemoryLink"):
    """Handle audit subcommands."""
    if args.audit_action == "verify":
        report = ml.audit.verify_chain()
        if report.ok:
            print(f"✓ Audit chain intact ({report.checked} events)")
            return
        print(f"✗ Audit chain has {len(report.problems)} problem(s) in {report.checked} events:")
        for problem in report.problems:
            print(f"  {problem}")
        return EXIT_FAILURE

    warnings = []
    events = ml.audit.read_events(
        event_type=args.type, record_id=args.record_id, warnings=warnings
    )
    print_warnings(warnings)
    if args.limit:
        events = events[-args.limit :]

    if getattr(args, "json", False):
        print_json(events)
        return
    if not events:
        print("No audit events.")
        return
    for event in events:
        target = event.get("record_id", "")
        extra = ""
        if "from_evidence" in event:
            extra = f" {event['from_evidence']} → {event.get('to_evidence')}"
        elif "to_status" in event:
            extra = f" → {event['to_status']}"
        print(f"{event.get('timestamp', '?')}  {event.get('event_type', '?'):<10} {target}{extra}".rstrip())
