"""Append-only, hash-chained audit log."""

from memorylink.audit.logger import AuditLogger, ChainReport, try_append

__all__ = ["AuditLogger", "ChainReport", "try_append"]
