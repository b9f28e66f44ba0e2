"""MemoryLink Core - record lifecycle over local files.

This package provides the main MemoryLink class. Operations are split
across mixins by concern:
    writers.py  - capture, promote, deprecate, supersede
    queries.py  - query, list, scan
    gate.py     - pre-commit gate checks

Re-exported names:
    from memorylink.core import MemoryLink
    from memorylink.core import QueryResult, GateResult
"""

from memorylink.core.memorylink_class import MemoryLink
from memorylink.core.results import (
    CaptureResult,
    DeprecateResult,
    GateResult,
    GateViolation,
    PromoteResult,
    QueryResult,
    SupersedeResult,
)

__all__ = [
    "MemoryLink",
    "CaptureResult",
    "DeprecateResult",
    "GateResult",
    "GateViolation",
    "PromoteResult",
    "QueryResult",
    "SupersedeResult",
]
