"""Tests for the validator signing-state guard."""
from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from storyctl.guard import SigningStateError, ValidatorStateGuard

STATE = b'{\n  "height": "1234",\n  "round": 0,\n  "step": 3\n}\n'


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Return a consensus data directory holding a signing state."""
    directory = tmp_path / "story" / "data"
    directory.mkdir(parents=True)
    (directory / "priv_validator_state.json").write_bytes(STATE)
    return directory


def _wipe_and_refill(data_dir: Path, state: bytes | None = None) -> None:
    shutil.rmtree(data_dir)
    data_dir.mkdir()
    (data_dir / "blockstore.db").write_bytes(b"blocks")
    if state is not None:
        (data_dir / "priv_validator_state.json").write_bytes(state)


def test_backup_lives_outside_data_dir(data_dir: Path) -> None:
    """The backup is a sibling of the data directory."""
    guard = ValidatorStateGuard(data_dir, "priv_validator_state.json")

    assert guard.backup_path == data_dir.parent / "priv_validator_state.json.backup"
    assert data_dir not in guard.backup_path.parents


def test_state_survives_wipe_byte_for_byte(data_dir: Path) -> None:
    """Whatever the wrapped operation does, the original bytes come back."""
    guard = ValidatorStateGuard(data_dir, "priv_validator_state.json")

    with guard.preserved() as record:
        _wipe_and_refill(data_dir, state=b'{"height": "999999"}')

    assert record.backed_up is True
    assert record.restored is True
    assert (data_dir / "priv_validator_state.json").read_bytes() == STATE
    assert not guard.has_backup()


def test_failure_keeps_backup_for_manual_recovery(data_dir: Path) -> None:
    """A failing operation leaves the backup in place and restores nothing."""
    guard = ValidatorStateGuard(data_dir, "priv_validator_state.json")

    def destructive() -> None:
        _wipe_and_refill(data_dir)
        raise RuntimeError("extract failed")

    with pytest.raises(RuntimeError):
        guard.with_preserved(destructive)

    assert guard.has_backup()
    assert guard.backup_path.read_bytes() == STATE
    assert not (data_dir / "priv_validator_state.json").exists()


def test_pending_backup_next_to_live_file_is_refused(data_dir: Path) -> None:
    """Neither copy replaces the other when a backup and a live file both exist."""
    guard = ValidatorStateGuard(data_dir, "priv_validator_state.json")
    guard.backup_path.write_bytes(b'{"height": "100"}')
    (data_dir / "priv_validator_state.json").write_bytes(b'{"height": "5000"}')
    ran: list[bool] = []

    with pytest.raises(SigningStateError) as excinfo:
        guard.with_preserved(lambda: ran.append(True))

    assert ran == []
    assert str(guard.backup_path) in str(excinfo.value)
    assert str(guard.state_path) in str(excinfo.value)
    assert (data_dir / "priv_validator_state.json").read_bytes() == b'{"height": "5000"}'
    assert guard.backup_path.read_bytes() == b'{"height": "100"}'


def test_backup_is_adopted_when_live_file_is_gone(data_dir: Path) -> None:
    """A retry after a failed wipe reuses the backup the first run left behind."""
    guard = ValidatorStateGuard(data_dir, "priv_validator_state.json")
    guard.backup_path.write_bytes(STATE)
    (data_dir / "priv_validator_state.json").unlink()

    with guard.preserved() as record:
        _wipe_and_refill(data_dir, state=b'{"height": "1"}')

    assert record.adopted_existing is True
    assert record.backed_up is False
    assert record.restored is True
    assert (data_dir / "priv_validator_state.json").read_bytes() == STATE


def test_no_state_is_a_no_op(tmp_path: Path) -> None:
    """Without a signing state the snapshot's own copy is left alone."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    guard = ValidatorStateGuard(data_dir, "priv_validator_state.json")

    with guard.preserved() as record:
        _wipe_and_refill(data_dir, state=b'{"height": "0"}')

    assert record.backed_up is False
    assert record.restored is False
    assert (data_dir / "priv_validator_state.json").read_bytes() == b'{"height": "0"}'


def test_restore_without_backup_returns_false(data_dir: Path) -> None:
    """Restoring twice only moves the backup once."""
    guard = ValidatorStateGuard(data_dir, "priv_validator_state.json")
    guard.backup()

    assert guard.restore() is True
    assert guard.restore() is False
