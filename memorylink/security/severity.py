"""RED / YELLOW / GREEN severity tiers for scan results.

RED blocks the operation (exit code 1), YELLOW lets it proceed with a
warning, GREEN means nothing was found.
"""

from enum import Enum
from typing import Optional

from memorylink.protocols import EXIT_FAILURE, EXIT_SUCCESS
from memorylink.security.patterns import SEVERITY_WARN


class SeverityTier(str, Enum):
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"


def tier_for(severity: Optional[str]) -> SeverityTier:
    """Map a detector severity to a tier.

    ``None`` means no finding. Anything other than ``warn`` is treated as
    blocking.
    """
    if severity is None:
        return SeverityTier.GREEN
    if severity == SEVERITY_WARN:
        return SeverityTier.YELLOW
    return SeverityTier.RED


def should_block(tier: SeverityTier) -> bool:
    return tier == SeverityTier.RED


def tier_exit_code(tier: SeverityTier) -> int:
    return EXIT_FAILURE if should_block(tier) else EXIT_SUCCESS


def tier_description(tier: SeverityTier) -> str:
    if tier == SeverityTier.RED:
        return "CRITICAL: secret found, fix before continuing"
    if tier == SeverityTier.YELLOW:
        return "WARNING: possible leak found, review recommended"
    return "ALL CLEAR: no secrets found"
