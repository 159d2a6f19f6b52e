"""State registry helpers tests."""
from __future__ import annotations

from pathlib import Path

import pytest

from storyctl.state import NodeState, StateRegistry, StateRegistryError
from storyctl.state.registry import HISTORY_LIMIT


def test_read_missing_files_returns_default(tmp_path: Path) -> None:
    """Missing files return the provided default structure."""
    registry = StateRegistry(tmp_path)

    result = registry.read("node.yml", default={"state": "uninitialized"})

    assert result == {"state": "uninitialized"}


def test_write_and_read_roundtrip(tmp_path: Path) -> None:
    """Writing a registry file and reading it back succeeds."""
    registry = StateRegistry(tmp_path)
    payload = {"state": "running", "metadata": {"moniker": "alpha"}}

    registry.write("node.yml", payload)

    path = tmp_path / "node.yml"
    assert path.exists()
    assert (path.stat().st_mode & 0o777) == 0o640
    assert registry.read("node.yml") == payload


def test_missing_node_record_is_uninitialized(tmp_path: Path) -> None:
    """A fresh registry reports the node as uninitialised."""
    registry = StateRegistry(tmp_path / "state")

    record = registry.read_node()

    assert record.state is NodeState.UNINITIALIZED
    assert record.history == []
    assert record.metadata == {}


def test_transition_appends_history_and_merges_metadata(tmp_path: Path) -> None:
    """Transitions persist the new state, a history entry and metadata."""
    registry = StateRegistry(tmp_path)

    registry.transition(NodeState.CONFIGURED, reason="configure", metadata={"moniker": "a"})
    registry.transition(NodeState.RUNNING, reason="start")

    record = registry.read_node()
    assert record.state is NodeState.RUNNING
    assert record.metadata == {"moniker": "a"}
    assert [(entry["from"], entry["to"]) for entry in record.history] == [
        ("uninitialized", "configured"),
        ("configured", "running"),
    ]
    assert record.history[-1]["reason"] == "start"
    assert record.updated_at is not None


def test_history_is_bounded(tmp_path: Path) -> None:
    """Only the most recent transitions are retained."""
    registry = StateRegistry(tmp_path)

    for _ in range(HISTORY_LIMIT + 5):
        registry.transition(NodeState.RUNNING)

    assert len(registry.read_node().history) == HISTORY_LIMIT


def test_update_and_clear_metadata_keep_state(tmp_path: Path) -> None:
    """Metadata helpers never change the lifecycle state."""
    registry = StateRegistry(tmp_path)
    registry.transition(NodeState.DEGRADED, metadata={"signing_state_backup": "/x.backup"})

    registry.update_metadata({"story_version": "v0.11.0"})
    registry.clear_metadata("signing_state_backup", "not-present")

    record = registry.read_node()
    assert record.state is NodeState.DEGRADED
    assert record.metadata == {"story_version": "v0.11.0"}


def test_invalid_yaml_raises(tmp_path: Path) -> None:
    """Invalid YAML raises a StateRegistryError."""
    registry = StateRegistry(tmp_path)
    (tmp_path / "node.yml").write_text("::: not yaml :::\n")

    with pytest.raises(StateRegistryError):
        registry.read("node.yml")


@pytest.mark.parametrize(
    "content",
    [
        "state: exploded\n",
        "- a\n- b\n",
        "state: running\nmetadata: [1, 2]\n",
        "state: running\nhistory: nope\n",
    ],
)
def test_malformed_node_record_raises(tmp_path: Path, content: str) -> None:
    """Structurally invalid node records are rejected."""
    registry = StateRegistry(tmp_path)
    (tmp_path / "node.yml").write_text(content)

    with pytest.raises(StateRegistryError):
        registry.read_node()
