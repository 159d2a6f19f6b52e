"""Preservation of the validator signing-state file across destructive steps.

The signing state (``priv_validator_state.json``) records the last height,
round and step the validator signed. Losing it, or restoring a stale copy
over a newer one, risks double-signing, so the guard only ever copies the file
aside and moves it back. It never creates, edits or interprets it.
"""
from __future__ import annotations

import shutil
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

T = TypeVar("T")


class SigningStateError(RuntimeError):
    """Raised when the signing state cannot be backed up or restored."""


@dataclass(slots=True)
class PreservationRecord:
    """What the guard did around a destructive operation."""

    source: Path
    backup_path: Path
    backed_up: bool = False
    adopted_existing: bool = False
    restored: bool = False


class ValidatorStateGuard:
    """Back up the signing state outside *data_dir* and restore it afterwards."""

    def __init__(self, data_dir: Path, signing_state_rel_path: str | Path) -> None:
        """Guard ``data_dir / signing_state_rel_path``."""
        self.data_dir = data_dir
        self.rel_path = Path(signing_state_rel_path)

    @property
    def state_path(self) -> Path:
        """Live location the consensus client reads the signing state from."""
        return self.data_dir / self.rel_path

    @property
    def backup_path(self) -> Path:
        """Sibling backup location outside the data directory."""
        return self.data_dir.parent / f"{self.rel_path.name}.backup"

    def has_backup(self) -> bool:
        """Return True when a backup is waiting to be restored."""
        return self.backup_path.is_file()

    def check_pending_backup(self) -> None:
        """Refuse to continue when a backup and a live file both exist.

        Either copy may be the newer one, so neither is allowed to replace the
        other silently; the operator restores or removes the backup first.
        """
        if self.has_backup() and self.state_path.is_file():
            raise SigningStateError(
                f"Signing-state backup {self.backup_path} is still pending while "
                f"{self.state_path} exists; run `storyctl signing-state restore` or "
                "remove the backup before continuing."
            )

    def backup(self) -> PreservationRecord:
        """Copy the live signing state aside.

        A backup left behind by an interrupted run is adopted only when the live
        file is gone; if both exist :class:`SigningStateError` is raised.
        """
        self.check_pending_backup()
        record = PreservationRecord(source=self.state_path, backup_path=self.backup_path)
        if self.has_backup():
            record.adopted_existing = True
            return record
        if not self.state_path.is_file():
            return record
        try:
            self.backup_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(self.state_path, self.backup_path)
        except OSError as exc:
            raise SigningStateError(
                f"Failed to back up signing state {self.state_path} to {self.backup_path}: {exc}"
            ) from exc
        record.backed_up = True
        return record

    def restore(self) -> bool:
        """Move the backup into the data directory; no-op when there is none.

        The backup is consumed, so a second call without a new backup does
        nothing. A copy shipped inside a freshly unpacked snapshot is replaced.
        """
        if not self.has_backup():
            return False
        try:
            self.state_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(self.backup_path), str(self.state_path))
        except OSError as exc:
            raise SigningStateError(
                f"Failed to restore signing state from {self.backup_path} to "
                f"{self.state_path}: {exc}"
            ) from exc
        return True

    @contextmanager
    def preserved(self) -> Iterator[PreservationRecord]:
        """Back up before the block and restore only if the block succeeds.

        On failure the backup stays at :attr:`backup_path` for manual recovery;
        restoring into a half-populated data directory is not attempted.
        """
        record = self.backup()
        yield record
        record.restored = self.restore()

    def with_preserved(self, destructive_op: Callable[[], T]) -> T:
        """Run *destructive_op* with the signing state preserved around it."""
        with self.preserved():
            return destructive_op()


__all__ = ["PreservationRecord", "SigningStateError", "ValidatorStateGuard"]
