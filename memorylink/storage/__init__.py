"""Storage layer for MemoryLink.

Record files are written atomically (temp file, fsync, rename) under a
per-path advisory lock, with transient failures retried.
"""

from memorylink.storage.local import RecordStore
from memorylink.storage.retry import FILE_RETRY_POLICY, NETWORK_RETRY_POLICY, RetryPolicy

__all__ = ["RecordStore", "RetryPolicy", "FILE_RETRY_POLICY", "NETWORK_RETRY_POLICY"]
