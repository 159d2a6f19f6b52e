"""Replace a node's chain data with a downloaded snapshot.

The swap runs in a fixed order:

1. refuse to start while an earlier signing-state backup sits next to a
   live signing-state file;
2. stop both services and confirm neither is still active;
3. delete the consensus and execution chain-data directories;
4. stream, decompress and unpack both archives;
5. restore the validator signing state (handled by the guard);
6. restart both services and report their state.

Steps 3-5 run inside :class:`~storyctl.guard.ValidatorStateGuard`. A failure in
step 4 leaves the directories partially populated and the signing-state backup
in place; nothing is retried automatically because a partial chain-data
directory must never be mistaken for a complete one.
"""
from __future__ import annotations

import shutil
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from .archive import (
    ArchiveFetcher,
    SnapshotExtractError,
    SnapshotFetchError,
    stream_extract,
)
from .config import SIGNING_STATE_FILE, SnapshotCatalogue
from .guard import PreservationRecord, ValidatorStateGuard
from .logging import OperationScope
from .providers.systemd import (
    BOTH_SERVICES,
    ServiceName,
    ServiceState,
    SupervisionError,
)


class Supervisor(Protocol):
    """Subset of :class:`~storyctl.providers.systemd.ServiceSupervisor` used here."""

    def unit_name(self, service: ServiceName) -> str: ...  # noqa: D102

    def stop(self, names: Iterable[ServiceName]) -> None: ...  # noqa: D102

    def restart(self, names: Iterable[ServiceName]) -> None: ...  # noqa: D102

    def status(self, service: ServiceName) -> ServiceState: ...  # noqa: D102


class Fetcher(Protocol):
    """Anything that can stream the bytes of a URL."""

    def stream(self, url: str) -> Iterator[bytes]: ...  # noqa: D102


Extractor = Callable[..., None]


class DataWipeError(RuntimeError):
    """Raised when an existing chain-data directory cannot be deleted."""


class PostInstallSupervisionError(RuntimeError):
    """Raised when services fail to restart after the data was installed."""

    def __init__(self, cause: SupervisionError, result: SnapshotResult) -> None:
        """Keep the underlying *cause* and the (complete) install *result*."""
        super().__init__(
            f"Snapshot data installed, but restarting services failed: {cause}"
        )
        self.cause = cause
        self.result = result


@dataclass(frozen=True, slots=True)
class SnapshotSpec:
    """Which archives to install; the pruning mode only selects the URL pair."""

    network: str
    pruning_mode: str
    story_archive_url: str
    geth_archive_url: str

    @classmethod
    def from_catalogue(cls, catalogue: SnapshotCatalogue, network: str, mode: str) -> SnapshotSpec:
        """Resolve the archive URLs for *network* and *mode*."""
        source = catalogue.resolve(network, mode)
        return cls(
            network=network,
            pruning_mode=mode,
            story_archive_url=source.story_url,
            geth_archive_url=source.geth_url,
        )


@dataclass(frozen=True, slots=True)
class DataDirs:
    """The two chain-data directories replaced by a snapshot."""

    story_data_dir: Path
    geth_chaindata_dir: Path


@dataclass(slots=True)
class SnapshotResult:
    """Outcome of a snapshot install."""

    spec: SnapshotSpec
    dirs: DataDirs
    signing_state: PreservationRecord | None = None
    statuses: dict[ServiceName, ServiceState] = field(default_factory=dict)


class SnapshotInstaller:
    """Stop, wipe, unpack, restore and restart around a snapshot swap."""

    def __init__(
        self,
        supervisor: Supervisor,
        *,
        fetcher: Fetcher | None = None,
        extract: Extractor = stream_extract,
        signing_state_rel_path: str | Path = SIGNING_STATE_FILE,
        pre_wipe: Callable[[], None] | None = None,
    ) -> None:
        """Wire the installer to its collaborators.

        *pre_wipe* is an optional hook run before the directories are deleted,
        for clients that need their consensus state reset first.
        """
        self.supervisor = supervisor
        self.fetcher = fetcher or ArchiveFetcher()
        self.extract = extract
        self.signing_state_rel_path = Path(signing_state_rel_path)
        self.pre_wipe = pre_wipe

    def install(
        self,
        spec: SnapshotSpec,
        dirs: DataDirs,
        *,
        op: OperationScope | None = None,
    ) -> SnapshotResult:
        """Install *spec* into *dirs*; see the module docstring for the sequence."""
        result = SnapshotResult(spec=spec, dirs=dirs)
        guard = ValidatorStateGuard(dirs.story_data_dir, self.signing_state_rel_path)
        guard.check_pending_backup()

        self.supervisor.stop(BOTH_SERVICES)
        self._require_stopped()
        _step(op, "services.stop", detail=self._units())

        with guard.preserved() as record:
            result.signing_state = record
            _step(op, "signing_state.backup", detail=_describe_backup(record))
            self._replace_chain_data(spec, dirs, op)
        _step(
            op,
            "signing_state.restore",
            status="success" if record.restored else "skipped",
            detail=str(guard.state_path) if record.restored else "no backup taken",
        )

        try:
            self.supervisor.restart(BOTH_SERVICES)
        except SupervisionError as exc:
            result.statuses = self._statuses()
            _step(op, "services.restart", status="error", detail=str(exc))
            raise PostInstallSupervisionError(exc, result) from exc
        result.statuses = self._statuses()
        _step(
            op,
            "services.restart",
            detail=", ".join(
                f"{self.supervisor.unit_name(name)}={state.value}"
                for name, state in result.statuses.items()
            ),
        )
        return result

    # ------------------------------------------------------------------
    def _require_stopped(self) -> None:
        for name in BOTH_SERVICES:
            if self.supervisor.status(name) is ServiceState.ACTIVE:
                unit = self.supervisor.unit_name(name)
                raise SupervisionError(
                    unit,
                    "stop",
                    "service still active; refusing to delete chain data",
                )

    def _replace_chain_data(
        self,
        spec: SnapshotSpec,
        dirs: DataDirs,
        op: OperationScope | None,
    ) -> None:
        if self.pre_wipe is not None:
            self.pre_wipe()
            _step(op, "consensus.reset")

        for directory in (dirs.story_data_dir, dirs.geth_chaindata_dir):
            _remove_tree(directory)
        _step(op, "chaindata.delete", detail=f"{dirs.story_data_dir}, {dirs.geth_chaindata_dir}")

        for url, target in (
            (spec.story_archive_url, dirs.story_data_dir.parent),
            (spec.geth_archive_url, dirs.geth_chaindata_dir.parent),
        ):
            try:
                self.extract(self.fetcher.stream(url), target, url=url)
            except (SnapshotFetchError, SnapshotExtractError) as exc:
                _step(op, "snapshot.extract", status="error", detail=str(exc))
                raise
            _step(op, "snapshot.extract", detail=f"{url} -> {target}")

    def _statuses(self) -> dict[ServiceName, ServiceState]:
        return {name: self.supervisor.status(name) for name in BOTH_SERVICES}

    def _units(self) -> str:
        return ", ".join(self.supervisor.unit_name(name) for name in BOTH_SERVICES)


def _remove_tree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        raise DataWipeError(f"Failed to delete chain data directory {path}: {exc}") from exc


def _describe_backup(record: PreservationRecord) -> str:
    if record.adopted_existing:
        return f"reusing backup {record.backup_path}; no live signing state at {record.source}"
    if record.backed_up:
        return f"{record.source} -> {record.backup_path}"
    return f"no signing state at {record.source}"


def _step(
    op: OperationScope | None,
    name: str,
    *,
    status: str = "success",
    detail: str | None = None,
) -> None:
    if op is not None:
        op.add_step(name, status=status, detail=detail)


__all__ = [
    "DataDirs",
    "DataWipeError",
    "PostInstallSupervisionError",
    "SnapshotExtractError",
    "SnapshotFetchError",
    "SnapshotInstaller",
    "SnapshotResult",
    "SnapshotSpec",
]
