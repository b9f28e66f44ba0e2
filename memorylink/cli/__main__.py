"""
MemoryLink CLI - Command-line interface for project memory.

Usage:
    memorylink init
    memorylink capture TOPIC CONTENT [--evidence E0|E1] [--tag T]... [--source TYPE:REF]...
    memorylink promote RECORD_ID --reason R [--constitution]
    memorylink query TOPIC [--json]
    memorylink list [--topic T] [--include-deprecated] [--json]
    memorylink deprecate RECORD_ID --reason R [--superseded-by ID]
    memorylink supersede TOPIC --reason R
    memorylink scan [FILE|-]
    memorylink gate
    memorylink audit list|verify
    memorylink config show|set KEY VALUE
"""

import argparse
import logging
import sys

from memorylink import MemoryLink
from memorylink.cli.commands import (
    cmd_audit,
    cmd_capture,
    cmd_config,
    cmd_deprecate,
    cmd_gate,
    cmd_init,
    cmd_list,
    cmd_promote,
    cmd_query,
    cmd_scan,
    cmd_supersede,
)
from memorylink.cli.commands.helpers import parse_source
from memorylink.protocols import EXIT_ERROR, EXIT_SUCCESS, MemoryLinkError, SecurityError, StorageError
from memorylink.remediation import format_remediation
from memorylink.storage.resilience import friendly_message
from memorylink.types import VALID_EVIDENCE_LEVELS, VALID_SCOPE_TYPES, AuditEventType, EvidenceLevel

# Set up logging
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def _add_scope_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--scope-type", choices=sorted(VALID_SCOPE_TYPES), help="Scope type (default from config)")
    parser.add_argument("--repo-url", help="Scope identifier, e.g. a repository URL (default: project root)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memorylink",
        description="File-backed project memory with evidence levels",
    )
    parser.add_argument("--root", help="Project root (default: current directory)", default=None)
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # init
    subparsers.add_parser("init", help="Create .memorylink/ in the project")

    # capture
    p_capture = subparsers.add_parser("capture", help="Capture a new record")
    p_capture.add_argument("topic", help="Topic (normalized into the conflict key)")
    p_capture.add_argument("content", nargs="?", default="-", help="Content, or - to read stdin")
    p_capture.add_argument(
        "--evidence",
        "-e",
        choices=sorted(VALID_EVIDENCE_LEVELS - {EvidenceLevel.E2.value}),
        default=EvidenceLevel.E0.value,
        help="Evidence level (E2 is reached through promote)",
    )
    p_capture.add_argument("--tag", "-t", action="append", help="Purpose tag (repeatable)")
    p_capture.add_argument(
        "--source", "-s", action="append", type=parse_source, help="Provenance TYPE:REF (repeatable)"
    )
    p_capture.add_argument("--author", help="Author recorded in provenance")
    p_capture.add_argument("--json", "-j", action="store_true")
    _add_scope_args(p_capture)

    # promote
    p_promote = subparsers.add_parser("promote", help="Promote a record to E2")
    p_promote.add_argument("record_id", help="Record ID")
    p_promote.add_argument("--reason", "-r", required=True, help="Why this record is now canonical")
    p_promote.add_argument(
        "--constitution", action="store_true", help="Confirm approval for records sourced from governed files"
    )
    _add_scope_args(p_promote)

    # query
    p_query = subparsers.add_parser("query", help="Show the canonical record for a topic")
    p_query.add_argument("topic", help="Topic")
    p_query.add_argument("--json", "-j", action="store_true")
    _add_scope_args(p_query)

    # list
    p_list = subparsers.add_parser("list", help="List records")
    p_list.add_argument("--topic", help="Only records on this topic")
    p_list.add_argument("--include-deprecated", action="store_true", help="Include DEPRECATED records")
    p_list.add_argument("--json", "-j", action="store_true")
    _add_scope_args(p_list)

    # deprecate
    p_deprecate = subparsers.add_parser("deprecate", help="Deprecate a record")
    p_deprecate.add_argument("record_id", help="Record ID")
    p_deprecate.add_argument("--reason", "-r", required=True, help="Why the record is deprecated")
    p_deprecate.add_argument("--superseded-by", help="ID of the record that replaces it")
    _add_scope_args(p_deprecate)

    # supersede
    p_supersede = subparsers.add_parser("supersede", help="Deprecate all but the winning record on a topic")
    p_supersede.add_argument("topic", help="Topic")
    p_supersede.add_argument("--reason", "-r", required=True, help="Why the losers are deprecated")
    _add_scope_args(p_supersede)

    # scan
    p_scan = subparsers.add_parser("scan", help="Scan a file for secrets")
    p_scan.add_argument("file", nargs="?", default="-", help="File to scan, or - for stdin")
    p_scan.add_argument("--json", "-j", action="store_true")

    # gate
    p_gate = subparsers.add_parser("gate", help="Pre-commit check for quarantined records and ownership")
    p_gate.add_argument("--actor", help="Identity for ownership checks (default: MEMORYLINK_ACTOR or USER)")
    p_gate.add_argument("--json", "-j", action="store_true")
    _add_scope_args(p_gate)

    # audit
    p_audit = subparsers.add_parser("audit", help="Audit log")
    audit_sub = p_audit.add_subparsers(dest="audit_action", required=True)

    audit_list = audit_sub.add_parser("list", help="List audit events")
    audit_list.add_argument("--type", choices=[t.value for t in AuditEventType], help="Event type")
    audit_list.add_argument("--record-id", help="Only events for this record")
    audit_list.add_argument("--limit", "-n", type=int, default=0, help="Show only the last N events")
    audit_list.add_argument("--json", "-j", action="store_true")

    audit_sub.add_parser("verify", help="Verify the audit hash chain")

    # config
    p_config = subparsers.add_parser("config", help="Project configuration")
    config_sub = p_config.add_subparsers(dest="config_action", required=True)
    config_sub.add_parser("show", help="Show effective configuration")
    config_set = config_sub.add_parser("set", help="Set a configuration value")
    config_set.add_argument("key", help="Config key")
    config_set.add_argument("value", help="Value (JSON for numbers, booleans and lists)")

    return parser


def _dispatch(args, ml: MemoryLink):
    if args.command == "init":
        return cmd_init(args, ml)
    elif args.command == "capture":
        return cmd_capture(args, ml)
    elif args.command == "promote":
        return cmd_promote(args, ml)
    elif args.command == "query":
        return cmd_query(args, ml)
    elif args.command == "list":
        return cmd_list(args, ml)
    elif args.command == "deprecate":
        return cmd_deprecate(args, ml)
    elif args.command == "supersede":
        return cmd_supersede(args, ml)
    elif args.command == "scan":
        return cmd_scan(args, ml)
    elif args.command == "gate":
        return cmd_gate(args, ml)
    elif args.command == "audit":
        return cmd_audit(args, ml)
    elif args.command == "config":
        return cmd_config(args, ml)
    raise ValueError(f"Unknown command: {args.command}")


def _report_error(e: MemoryLinkError) -> None:
    print(f"[{e.kind}] {e.message}", file=sys.stderr)
    if isinstance(e, StorageError):
        print(f"  {friendly_message(e)}", file=sys.stderr)
    if isinstance(e, SecurityError) and e.pattern_id:
        print(file=sys.stderr)
        print(format_remediation(e.pattern_id), file=sys.stderr)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger("memorylink").setLevel(logging.DEBUG)

    try:
        ml = MemoryLink(root=args.root)
        exit_code = _dispatch(args, ml)
    except MemoryLinkError as e:
        logger.debug(f"{args.command} failed: {e.code}", exc_info=True)
        _report_error(e)
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    sys.exit(exit_code if exit_code is not None else EXIT_SUCCESS)


if __name__ == "__main__":
    main()
