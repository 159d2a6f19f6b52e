"""Persisted node lifecycle state."""
from __future__ import annotations

from .registry import NodeRecord, NodeState, StateRegistry, StateRegistryError

__all__ = ["NodeRecord", "NodeState", "StateRegistry", "StateRegistryError"]
