"""
MemoryLink - File-backed project memory with evidence levels.

Records live as JSON files under .memorylink/, are scanned for secrets
before they are written, and resolve deterministically when they
disagree.
"""

from .core import MemoryLink

try:
    from importlib.metadata import version

    __version__ = version("memorylink")
except Exception:
    __version__ = "0.0.0"

__all__ = ["MemoryLink"]
