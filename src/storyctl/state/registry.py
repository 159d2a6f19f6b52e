"""Helpers for interacting with the storyctl state registry.

The registry directory (``/var/lib/storyctl`` by default) stores YAML
artifacts. ``node.yml`` holds the node's lifecycle state, a bounded history of
transitions and metadata such as installed client versions, the last snapshot
applied and, when degraded, where the signing-state backup was left.
"""
from __future__ import annotations

import os
import tempfile
from collections.abc import Mapping
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

try:  # PyYAML is a runtime dependency declared in pyproject.toml
    import yaml
except Exception as exc:  # pragma: no cover - import failure handled in tests
    raise RuntimeError(
        "PyYAML is required to manage storyctl state. Install with `pip install storyctl`."
    ) from exc

NODE_FILE = "node.yml"
HISTORY_LIMIT = 50


class StateRegistryError(RuntimeError):
    """Raised when state registry operations fail."""


class NodeState(str, Enum):
    """Lifecycle state of the managed node."""

    UNINITIALIZED = "uninitialized"
    CONFIGURED = "configured"
    RUNNING = "running"
    RESYNCING = "resyncing"
    DEGRADED = "degraded"
    DECOMMISSIONED = "decommissioned"


@dataclass(slots=True)
class NodeRecord:
    """Contents of ``node.yml``."""

    state: NodeState = NodeState.UNINITIALIZED
    updated_at: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    history: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return a YAML-serialisable representation."""
        return {
            "state": self.state.value,
            "updated_at": self.updated_at,
            "metadata": deepcopy(self.metadata),
            "history": deepcopy(self.history),
        }


def _timestamp() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class StateRegistry:
    """High-level interface to the YAML registry."""

    root: Path

    def __post_init__(self) -> None:
        """Normalise the root path after initialisation."""
        object.__setattr__(self, "root", self.root.expanduser())

    def ensure_root(self) -> None:
        """Create the registry directory if it does not yet exist."""
        self.root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------
    def path_for(self, name: str) -> Path:
        """Return the filesystem path for a named registry file."""
        return self.root / name

    def read(self, name: str, *, default: object | None = None) -> object | None:
        """Read a registry file, returning *default* when missing."""
        path = self.path_for(name)
        if not path.exists():
            return deepcopy(default)
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
            raise StateRegistryError(f"Failed to parse registry file {path}: {exc}") from exc
        return data if data is not None else deepcopy(default)

    def write(self, name: str, payload: Mapping[str, object]) -> None:
        """Atomically write *payload* to the given registry file."""
        self.ensure_root()
        path = self.path_for(name)

        tmp_fd, tmp_name = tempfile.mkstemp(dir=str(self.root), prefix=f".{path.name}.")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
                yaml.safe_dump(payload, handle, sort_keys=False)
            os.replace(tmp_path, path)
            os.chmod(path, 0o640)
        finally:
            tmp_path.unlink(missing_ok=True)

    # Node helpers -----------------------------------------------------
    def read_node(self) -> NodeRecord:
        """Return the persisted node record (uninitialised when missing)."""
        raw = self.read(NODE_FILE, default={})
        if not isinstance(raw, Mapping):
            raise StateRegistryError(f"{self.path_for(NODE_FILE)} must contain a mapping.")
        state_raw = raw.get("state", NodeState.UNINITIALIZED.value)
        try:
            state = NodeState(str(state_raw))
        except ValueError as exc:
            raise StateRegistryError(f"Unknown node state {state_raw!r} in registry.") from exc
        metadata = raw.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise StateRegistryError("Node entry 'metadata' must be a mapping.")
        history = raw.get("history") or []
        if not isinstance(history, list):
            raise StateRegistryError("Node entry 'history' must be a list.")
        updated_at = raw.get("updated_at")
        return NodeRecord(
            state=state,
            updated_at=str(updated_at) if updated_at is not None else None,
            metadata=dict(metadata),
            history=[dict(entry) for entry in history if isinstance(entry, Mapping)],
        )

    def node_state(self) -> NodeState:
        """Return the current lifecycle state."""
        return self.read_node().state

    def transition(
        self,
        state: NodeState,
        *,
        reason: str | None = None,
        metadata: Mapping[str, object] | None = None,
    ) -> NodeRecord:
        """Record a move to *state*, merging *metadata* into the record."""
        record = self.read_node()
        now = _timestamp()
        entry: dict[str, Any] = {"from": record.state.value, "to": state.value, "at": now}
        if reason:
            entry["reason"] = reason
        record.history.append(entry)
        del record.history[:-HISTORY_LIMIT]
        record.state = state
        record.updated_at = now
        if metadata:
            record.metadata.update(dict(metadata))
        self.write(NODE_FILE, record.to_dict())
        return record

    def update_metadata(self, updates: Mapping[str, object]) -> NodeRecord:
        """Merge *updates* into the node metadata without changing state."""
        record = self.read_node()
        record.metadata.update(dict(updates))
        record.updated_at = _timestamp()
        self.write(NODE_FILE, record.to_dict())
        return record

    def clear_metadata(self, *keys: str) -> NodeRecord:
        """Drop *keys* from the node metadata."""
        record = self.read_node()
        for key in keys:
            record.metadata.pop(key, None)
        self.write(NODE_FILE, record.to_dict())
        return record


__all__ = [
    "HISTORY_LIMIT",
    "NODE_FILE",
    "NodeRecord",
    "NodeState",
    "StateRegistry",
    "StateRegistryError",
]
