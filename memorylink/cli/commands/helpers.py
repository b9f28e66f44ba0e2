"""Shared helper functions for CLI commands."""

import argparse
import json
import sys
from typing import Any, List, Optional

from memorylink.types import VALID_SOURCE_KINDS, MemoryRecord, Source, utc_now

PREVIEW_LENGTH = 60


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    print(json.dumps(data, indent=2, default=str))


def parse_source(value: str) -> Source:
    """argparse type for ``--source TYPE:REF`` (e.g. ``file:docs/setup.md``)."""
    kind, sep, ref = value.partition(":")
    if not sep or not ref.strip():
        raise argparse.ArgumentTypeError(f"Source must look like TYPE:REF, got '{value}'")
    if kind not in VALID_SOURCE_KINDS:
        raise argparse.ArgumentTypeError(
            f"Source type must be one of {', '.join(sorted(VALID_SOURCE_KINDS))}, got '{kind}'"
        )
    return Source(type=kind, ref=ref.strip(), captured_at=utc_now())


def read_content(value: Optional[str]) -> str:
    """Content argument, with ``-`` (or nothing) meaning stdin."""
    if value is None or value == "-":
        return sys.stdin.read()
    return value


def preview(content: str, length: int = PREVIEW_LENGTH) -> str:
    flat = " ".join(content.split())
    return flat if len(flat) <= length else flat[: length - 3] + "..."


def format_record_line(record: MemoryRecord) -> str:
    marker = "" if record.is_active else f" [{record.status}]"
    return (
        f"{record.id}  {record.evidence_level}  {record.conflict_key}{marker}\n"
        f"    {preview(record.content)}"
    )


def print_warnings(warnings: List[str]) -> None:
    for warning in warnings:
        print(f"⚠ {warning}", file=sys.stderr)
