"""Deterministic conflict resolution between records sharing a conflict key."""

from memorylink.conflict.resolver import resolve

__all__ = ["resolve"]
