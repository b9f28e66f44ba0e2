"""Record id generation.

Ids look like ``mem_<base36 millisecond timestamp>_<8 hex>``. The
timestamp keeps ids roughly sortable by creation time; the random suffix
keeps them unique across processes writing in the same millisecond.
"""

import re
import secrets
import time
from typing import Optional

RECORD_ID_PATTERN = re.compile(r"^mem_[a-z0-9]+_[a-f0-9]{8}\Z")

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_record_id(now_ms: Optional[int] = None) -> str:
    """Generate a new record id.

    Args:
        now_ms: Timestamp in milliseconds (defaults to the current time).
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"mem_{to_base36(now_ms)}_{secrets.token_hex(4)}"


def is_record_id(value: object) -> bool:
    return isinstance(value, str) and RECORD_ID_PATTERN.match(value) is not None
