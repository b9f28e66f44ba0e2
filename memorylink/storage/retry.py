"""Retry with exponential backoff for transient storage errors.

Only errors classified as transient (busy files, exhausted descriptors,
timeouts) are retried. Permission, not-found, disk-full and corruption
errors fail immediately. After the last attempt the final error is
re-raised unchanged.
"""

import errno
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Optional, TypeVar

from memorylink.protocols import (
    CorruptedRecordError,
    DiskFullError,
    NotFoundError,
    PermissionDeniedError,
    ResourceBusyError,
    StorageError,
)
from memorylink.storage.resilience import TRANSIENT_ERRNOS

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_FRACTION = 0.3

NETWORK_ERRNOS = frozenset(
    code
    for code in (
        errno.ECONNRESET,
        errno.ECONNABORTED,
        errno.ENETUNREACH,
        errno.EHOSTUNREACH,
        getattr(errno, "ESTALE", errno.ECONNRESET),
    )
)


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff configuration.

    Attributes:
        max_attempts: Total attempts, including the first one
        initial_delay_ms: Delay before the first retry
        multiplier: Growth factor per retry
        max_delay_ms: Upper bound on any single delay (before jitter)
        jitter: Add up to 30% random extra delay
        extra_errnos: Additional errno values treated as transient
        name: Label used in log messages
    """

    max_attempts: int = 3
    initial_delay_ms: int = 100
    multiplier: float = 2.0
    max_delay_ms: int = 5000
    jitter: bool = True
    extra_errnos: FrozenSet[int] = field(default_factory=frozenset)
    name: str = "file"

    def delay_ms(self, retry_number: int, rng: Optional[random.Random] = None) -> float:
        """Delay before retry ``retry_number`` (0-based), in milliseconds."""
        delay = min(self.initial_delay_ms * (self.multiplier**retry_number), self.max_delay_ms)
        if self.jitter:
            delay += delay * JITTER_FRACTION * (rng or random).random()
        return delay


FILE_RETRY_POLICY = RetryPolicy()

NETWORK_RETRY_POLICY = RetryPolicy(
    max_attempts=5,
    initial_delay_ms=200,
    max_delay_ms=10000,
    extra_errnos=NETWORK_ERRNOS,
    name="network",
)


def policy_for_profile(profile: str) -> RetryPolicy:
    """Retry policy for a storage_profile config value."""
    return NETWORK_RETRY_POLICY if profile == "network" else FILE_RETRY_POLICY


def is_transient(exc: BaseException, policy: RetryPolicy = FILE_RETRY_POLICY) -> bool:
    """Whether ``exc`` is worth retrying under ``policy``."""
    if isinstance(exc, (PermissionDeniedError, NotFoundError, DiskFullError, CorruptedRecordError)):
        return False
    if isinstance(exc, ResourceBusyError):
        return True
    if isinstance(exc, StorageError):
        return exc.retryable
    if isinstance(exc, (PermissionError, FileNotFoundError)):
        return False
    if isinstance(exc, (TimeoutError, BlockingIOError, InterruptedError)):
        return True
    if policy.extra_errnos and isinstance(exc, ConnectionError):
        return True
    if isinstance(exc, OSError):
        return exc.errno in TRANSIENT_ERRNOS or exc.errno in policy.extra_errnos
    return False


def with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy = FILE_RETRY_POLICY,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "storage operation",
) -> T:
    """Run ``operation``, retrying transient failures with exponential backoff.

    Args:
        operation: Zero-argument callable to run.
        policy: Backoff configuration.
        sleep: Sleep function taking seconds (injectable for tests).
        description: Label for log messages.

    Returns:
        Whatever ``operation`` returns.

    Raises:
        The last error raised by ``operation``, unchanged.
    """
    attempts = max(policy.max_attempts, 1)
    for attempt in range(attempts):
        try:
            return operation()
        except Exception as e:
            if not is_transient(e, policy) or attempt == attempts - 1:
                raise
            delay_ms = policy.delay_ms(attempt)
            logger.debug(
                f"{description} failed on attempt {attempt + 1}/{attempts} "
                f"({type(e).__name__}); retrying in {delay_ms:.0f}ms"
            )
            sleep(delay_ms / 1000.0)
    raise AssertionError("unreachable")
