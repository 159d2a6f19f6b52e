"""Lifecycle orchestration for a two-process Story validator node.

The orchestrator owns the node's lifecycle state and is the only component
that sequences the others:

* ``uninitialized -> configured``: resource gate, binaries present, client
  ``init``, config-file edits.
* ``configured -> running``: unit files written in full, reloaded, enabled and
  started for both services.
* ``running -> resyncing -> running``: snapshot swap with the signing state
  preserved; failures that leave the services stopped end in ``degraded``.
* ``* -> decommissioned``: services removed, node home and binaries deleted.

Every mutating operation runs under the node's exclusive lock and is recorded
as one structured log entry. Read-only queries take no lock.
"""
from __future__ import annotations

import shutil
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import NoReturn

from .archive import (
    ArchiveFetcher,
    SnapshotExtractError,
    SnapshotFetchError,
    download_to_path,
    stream_extract,
)
from .config import AppConfig
from .guard import SigningStateError, ValidatorStateGuard
from .locking import LockManager
from .logging import OperationScope, StructuredLogger
from .node_config import P2P_PORT, build_node_config, firewall_ports, unit_contexts
from .patcher import ConfigPatcher, PatchResult
from .providers.binaries import BinaryInstaller, BinaryInstallResult
from .providers.clients import GethClient, StoryClient, ValidatorKey, validate_evm_address
from .providers.firewall import UfwFirewall
from .providers.systemd import (
    BOTH_SERVICES,
    ServiceName,
    ServiceState,
    ServiceSupervisor,
    SupervisionError,
)
from .requirements import RequirementsChecker, RequirementsReport
from .rpc import NodeRpc, RpcError, SyncStatus, public_ip
from .snapshot import (
    DataDirs,
    DataWipeError,
    PostInstallSupervisionError,
    SnapshotInstaller,
    SnapshotResult,
    SnapshotSpec,
)
from .state import NodeRecord, NodeState, StateRegistry
from .templates import TemplateEngine

DEFAULT_CREATE_STAKE = 1_000_000_000_000_000_000
PRIVATE_KEY_LABEL = "PRIVATE_KEY"
SERVICE_ACTIONS = ("start", "stop", "restart", "enable", "disable")


class LifecycleError(RuntimeError):
    """Raised when an operation is not allowed in the node's current state."""


class PreconditionFailed(LifecycleError):
    """Raised when a precondition (resources, binaries, key files) is not met."""


class ConfirmationRequired(LifecycleError):
    """Raised when an irreversible operation was not explicitly confirmed."""


class NodeNotSynced(LifecycleError):
    """Raised when a validator operation is attempted while catching up."""

    def __init__(self, status: SyncStatus) -> None:
        """Keep the *status* that was observed."""
        super().__init__(
            "Node is still catching up "
            f"(latest block {status.latest_block_height}); "
            "wait until it is fully synced before running validator operations."
        )
        self.status = status


class PartialStartFailure(LifecycleError):
    """Raised when at least one service did not report active after start."""

    def __init__(
        self,
        failed: Sequence[str],
        statuses: Mapping[str, ServiceState],
        cause: Exception | None = None,
    ) -> None:
        """Record the *failed* units and every unit's observed state."""
        detail = ", ".join(f"{unit}={state.value}" for unit, state in statuses.items())
        message = f"Service(s) failed to start: {', '.join(failed)} ({detail})"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.failed = list(failed)
        self.statuses = dict(statuses)


class NodeDegraded(LifecycleError):
    """Raised when a transition left the node stopped with partial data."""

    def __init__(
        self,
        message: str,
        *,
        backup_path: Path | None = None,
        statuses: Mapping[str, ServiceState] | None = None,
    ) -> None:
        """Describe the failure, the observed unit *statuses* and any backup left behind.

        Without *statuses* both services are known to be stopped.
        """
        if statuses:
            detail = ", ".join(f"{unit}={state.value}" for unit, state in statuses.items())
            message = f"{message}. Service states: {detail}"
        else:
            message = f"{message}. Services are stopped"
        if backup_path is not None:
            message = (
                f"{message}; restore the signing-state backup located at {backup_path} "
                "before restarting."
            )
        else:
            message = f"{message}; manual intervention required."
        super().__init__(message)
        self.backup_path = backup_path
        self.statuses = dict(statuses or {})


@dataclass(slots=True)
class InstallReport:
    """Outcome of a full node install."""

    requirements: RequirementsReport | None = None
    binaries: list[BinaryInstallResult] = field(default_factory=list)
    patches: list[PatchResult] = field(default_factory=list)
    statuses: dict[ServiceName, ServiceState] = field(default_factory=dict)


def _timestamp() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


def read_private_key(path: Path) -> str:
    """Return the key from a ``PRIVATE_KEY=<hex>`` line in *path*."""
    if not path.is_file():
        raise PreconditionFailed(
            f"{path} not found. Export the EVM key first (storyctl validator export --evm-key)."
        )
    for line in path.read_text(encoding="utf-8").splitlines():
        label, sep, value = line.partition("=")
        if sep and label.strip() == PRIVATE_KEY_LABEL and value.strip():
            return value.strip()
    raise PreconditionFailed(f"Could not extract {PRIVATE_KEY_LABEL} from {path}.")


class NodeLifecycleOrchestrator:
    """Drive a node through install, configure, run, resync, upgrade and teardown."""

    lock_name = "node"

    def __init__(
        self,
        config: AppConfig,
        *,
        supervisor: ServiceSupervisor,
        registry: StateRegistry,
        locks: LockManager,
        logger: StructuredLogger,
        installer: BinaryInstaller,
        requirements: RequirementsChecker,
        story: StoryClient,
        geth: GethClient,
        patcher: ConfigPatcher | None = None,
        fetcher: ArchiveFetcher | None = None,
        extract: Callable[..., None] = stream_extract,
        rpc_factory: Callable[[], NodeRpc] | None = None,
        public_ip_lookup: Callable[[], str] | None = public_ip,
        firewall: UfwFirewall | None = None,
        pre_wipe: Callable[[], None] | None = None,
    ) -> None:
        """Wire the orchestrator to its collaborators."""
        self.config = config
        self.layout = config.layout
        self.supervisor = supervisor
        self.registry = registry
        self.locks = locks
        self.logger = logger
        self.installer = installer
        self.requirements = requirements
        self.story = story
        self.geth = geth
        self.patcher = patcher or ConfigPatcher()
        self.fetcher = fetcher or ArchiveFetcher()
        self.extract = extract
        self.rpc_factory = rpc_factory or (lambda: NodeRpc.from_config(self.layout.config_toml))
        self.public_ip_lookup = public_ip_lookup
        self.firewall = firewall or UfwFirewall()
        self.pre_wipe = pre_wipe

    @classmethod
    def from_config(cls, config: AppConfig) -> NodeLifecycleOrchestrator:
        """Build an orchestrator with the real providers for *config*."""
        layout = config.layout
        templates = TemplateEngine.with_overrides(config.templates_dir)
        supervisor = ServiceSupervisor(
            templates=templates,
            unit_names={
                ServiceName.CONSENSUS: config.systemd.consensus_unit,
                ServiceName.EXECUTION: config.systemd.execution_unit,
            },
            systemd_dir=config.systemd.unit_dir,
            systemctl_bin=config.systemd.systemctl_bin,
            journalctl_bin=config.systemd.journalctl_bin,
        )
        return cls(
            config,
            supervisor=supervisor,
            registry=StateRegistry(config.state_dir),
            locks=LockManager(config.runtime_dir, config.lock_timeout),
            logger=StructuredLogger(config.logs_dir),
            installer=BinaryInstaller(bin_dir=config.bin_dir),
            requirements=RequirementsChecker(config.requirements),
            story=StoryClient(layout.story_bin, home=layout.story_home),
            geth=GethClient(layout.geth_bin, ipc_path=layout.geth_ipc),
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    def state(self) -> NodeState:
        """Return the persisted lifecycle state."""
        return self.registry.node_state()

    def record(self) -> NodeRecord:
        """Return the persisted node record including history."""
        return self.registry.read_node()

    @contextmanager
    def _mutation(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
    ) -> Iterator[OperationScope]:
        with self.logger.operation(
            command,
            args=args,
            target={"kind": "node", "moniker": self.config.node.moniker, "home": self.config.home},
        ) as op:
            with self.locks.node_lock(self.lock_name) as handle:
                op.set_lock_wait_ms(handle.wait_ms)
                yield op

    def _require_state(self, allowed: Iterable[NodeState], action: str) -> NodeState:
        allowed_states = tuple(allowed)
        current = self.registry.node_state()
        if current not in allowed_states:
            expected = ", ".join(state.value for state in allowed_states)
            raise LifecycleError(
                f"Cannot {action} while the node is {current.value} (expected: {expected})."
            )
        return current

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------
    def check_requirements(self) -> RequirementsReport:
        """Measure the host against the configured minimum resources."""
        return self.requirements.check(self.config.home)

    def _gate(self, op: OperationScope, *, force: bool) -> RequirementsReport:
        report = self.check_requirements()
        if report.passed:
            op.add_step("requirements.check", detail="all checks passed")
            return report
        detail = "; ".join(check.message for check in report.failures)
        if force:
            op.add_step("requirements.check", status="warning", detail=f"overridden: {detail}")
            return report
        op.add_step("requirements.check", status="error", detail=detail)
        raise PreconditionFailed(f"Resource gate failed: {detail} (use --force to override).")

    def _pinned_versions(
        self,
        story_version: str | None = None,
        geth_version: str | None = None,
    ) -> dict[str, tuple[str, str]]:
        binaries = self.config.binaries
        return {
            "geth": (geth_version or binaries.geth_version, binaries.geth_url),
            "story": (story_version or binaries.story_version, binaries.story_url),
        }

    def _require_binaries(self, op: OperationScope) -> None:
        missing = [
            f"{name} {version} ({self.installer.path_for(name)})"
            for name, (version, _) in self._pinned_versions().items()
            if not self.installer.is_present(name, version)
        ]
        if missing:
            op.add_step("binaries.check", status="error", detail=", ".join(missing))
            raise PreconditionFailed(
                f"Required binaries missing or at the wrong version: {', '.join(missing)}. "
                "Run `storyctl node install` or `storyctl node upgrade`."
            )
        op.add_step("binaries.check")

    def _ensure_binaries(
        self,
        op: OperationScope,
        *,
        story_version: str | None = None,
        geth_version: str | None = None,
        allow_downgrade: bool = False,
    ) -> list[BinaryInstallResult]:
        plan = self._pinned_versions(story_version, geth_version)
        # Validate both versions before downloading either.
        for name, (version, url) in plan.items():
            self.installer.ensure(
                name, version, url, allow_downgrade=allow_downgrade, dry_run=True
            )
        results: list[BinaryInstallResult] = []
        for name, (version, url) in plan.items():
            result = self.installer.ensure(name, version, url, allow_downgrade=allow_downgrade)
            op.add_step(
                f"binaries.{name}",
                status="success" if result.installed else "skipped",
                detail=f"{version} -> {result.path}",
            )
            results.append(result)
        return results

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------
    def install(self, *, force: bool = False, allow_downgrade: bool = False) -> InstallReport:
        """Gate, ensure binaries, configure and start a fresh node."""
        with self._mutation(
            "node install", args={"force": force, "allow_downgrade": allow_downgrade}
        ) as op:
            self._require_state(
                (NodeState.UNINITIALIZED, NodeState.CONFIGURED), "install the node"
            )
            report = InstallReport(requirements=self._gate(op, force=force))
            report.binaries = self._ensure_binaries(op, allow_downgrade=allow_downgrade)
            self.registry.update_metadata(self._version_metadata())
            report.patches = self._configure(op, force=force, gated=True)
            report.statuses = self._start(op)
            op.success("Node installed and running.", changed=len(report.binaries) + 2)
            return report

    def configure(self, *, force: bool = False) -> list[PatchResult]:
        """Initialise the node home and apply the configuration edits."""
        with self._mutation("node configure", args={"force": force}) as op:
            self._require_state(
                (NodeState.UNINITIALIZED, NodeState.CONFIGURED), "configure the node"
            )
            results = self._configure(op, force=force, gated=False)
            op.success(
                "Node configured.",
                changed=sum(1 for result in results if result.changed),
            )
            return results

    def _configure(self, op: OperationScope, *, force: bool, gated: bool) -> list[PatchResult]:
        if not gated:
            self._gate(op, force=force)
        self._require_binaries(op)

        node = self.config.node
        if self.layout.config_toml.exists():
            op.add_step("story.init", status="skipped", detail=f"{self.layout.config_toml} exists")
        else:
            self.story.init(moniker=node.moniker, network=node.network)
            op.add_step("story.init", detail=f"moniker={node.moniker} network={node.network}")
        self.layout.geth_home.mkdir(parents=True, exist_ok=True)

        for label, url, destination in (
            ("genesis", node.genesis_url, self.layout.story_config_dir / "genesis.json"),
            ("addrbook", node.addrbook_url, self.layout.story_config_dir / "addrbook.json"),
        ):
            if not url:
                continue
            download_to_path(self.fetcher, url, destination)
            op.add_step(f"download.{label}", detail=f"{url} -> {destination}")

        results = self.patcher.apply_all(
            build_node_config(self.layout, node, external_address=self._external_host(op))
        )
        for result in results:
            op.add_step(
                "config.patch",
                status="success" if result.changed else "skipped",
                detail=f"{result.path}: {len(result.applied)} applied",
            )
            if result.missing:
                op.add_step(
                    "config.patch.missing",
                    status="warning",
                    detail=f"{result.path}: {', '.join(result.missing)}",
                )

        self.registry.transition(
            NodeState.CONFIGURED,
            reason="configure",
            metadata={"moniker": node.moniker, "network": node.network},
        )
        return results

    def _external_host(self, op: OperationScope) -> str | None:
        if self.config.node.external_address:
            return self.config.node.external_address
        if self.public_ip_lookup is None:
            return None
        try:
            return self.public_ip_lookup()
        except RpcError as exc:
            op.add_step("external_address.lookup", status="warning", detail=str(exc))
            return None

    def start_node(self) -> dict[ServiceName, ServiceState]:
        """Write, enable and start both services."""
        with self._mutation("node start") as op:
            statuses = self._start(op)
            op.success("Both services active.", changed=2)
            return statuses

    def _start(self, op: OperationScope) -> dict[ServiceName, ServiceState]:
        self._require_state(
            (NodeState.CONFIGURED, NodeState.RUNNING, NodeState.DEGRADED), "start the node"
        )
        self._require_no_pending_backup(op, "starting")
        self._write_units(op)
        self.supervisor.enable(BOTH_SERVICES)
        op.add_step("systemd.enable", detail=self._units())

        cause: SupervisionError | None = None
        try:
            self.supervisor.start(BOTH_SERVICES)
        except SupervisionError as exc:
            cause = exc
        statuses = self.supervisor.statuses(BOTH_SERVICES)
        failed = [name for name, state in statuses.items() if state is not ServiceState.ACTIVE]
        if failed:
            failed_units = [self.supervisor.unit_name(name) for name in failed]
            op.add_step("systemd.start", status="error", detail=", ".join(failed_units))
            self.registry.transition(
                NodeState.DEGRADED,
                reason="partial start",
                metadata={"failed_services": failed_units},
            )
            raise PartialStartFailure(
                failed_units,
                {self.supervisor.unit_name(name): state for name, state in statuses.items()},
                cause,
            )
        op.add_step("systemd.start", detail=self._units())
        self.registry.clear_metadata("failed_services")
        self.registry.transition(NodeState.RUNNING, reason="start")
        return statuses

    def _write_units(self, op: OperationScope) -> None:
        contexts = unit_contexts(self.config)
        for name in BOTH_SERVICES:
            changed = self.supervisor.write_unit(name, contexts[name])
            op.add_step(
                "systemd.write_unit",
                status="success" if changed else "skipped",
                detail=str(self.supervisor.unit_path(name)),
            )

    def resync(self, mode: str) -> SnapshotResult:
        """Replace chain data with the *mode* snapshot, preserving signing state."""
        with self._mutation("snapshot install", args={"mode": mode}) as op:
            previous = self._require_state(
                (NodeState.RUNNING, NodeState.DEGRADED), "install a snapshot"
            )
            guard = self._signing_guard()
            try:
                guard.check_pending_backup()
            except SigningStateError as exc:
                op.add_step("signing_state.check", status="error", detail=str(exc))
                raise PreconditionFailed(str(exc)) from exc
            spec = SnapshotSpec.from_catalogue(
                self.config.snapshots, self.config.node.network, mode
            )
            dirs = DataDirs(
                story_data_dir=self.layout.story_data_dir,
                geth_chaindata_dir=self.layout.geth_chaindata_dir,
            )
            self.registry.transition(NodeState.RESYNCING, reason=f"snapshot {mode}")
            installer = SnapshotInstaller(
                self.supervisor,
                fetcher=self.fetcher,
                extract=self.extract,
                pre_wipe=self.pre_wipe,
            )
            try:
                result = installer.install(spec, dirs, op=op)
            except SupervisionError as exc:
                self._recover_before_wipe(op, previous, exc)
                raise
            except PostInstallSupervisionError as exc:
                self._degrade(
                    op,
                    f"Snapshot installed but services failed to restart: {exc.cause}",
                    statuses={
                        self.supervisor.unit_name(name): state
                        for name, state in exc.result.statuses.items()
                    },
                )
            except (
                SnapshotFetchError,
                SnapshotExtractError,
                DataWipeError,
                SigningStateError,
            ) as exc:
                self._degrade(op, f"Snapshot install failed: {exc}")

            self.registry.clear_metadata("signing_state_backup", "failed_services")
            self.registry.transition(
                NodeState.RUNNING,
                reason=f"snapshot {mode} installed",
                metadata={
                    "last_snapshot": {
                        "network": spec.network,
                        "mode": spec.pruning_mode,
                        "story_url": spec.story_archive_url,
                        "geth_url": spec.geth_archive_url,
                        "installed_at": _timestamp(),
                    }
                },
            )
            op.success(f"{mode.capitalize()} snapshot installed.", changed=2)
            return result

    def _recover_before_wipe(
        self,
        op: OperationScope,
        previous: NodeState,
        cause: SupervisionError,
    ) -> None:
        """Nothing was deleted; bring the services back if the node was running."""
        if previous is not NodeState.RUNNING:
            self.registry.transition(previous, reason=f"snapshot aborted: {cause}")
            return
        try:
            self.supervisor.start(BOTH_SERVICES)
        except SupervisionError as exc:
            self._degrade(op, f"Snapshot aborted before deleting data and restart failed: {exc}")
        op.add_step("services.start", detail="snapshot aborted; services restarted")
        self.registry.transition(previous, reason=f"snapshot aborted: {cause}")

    def _degrade(
        self,
        op: OperationScope,
        message: str,
        *,
        statuses: Mapping[str, ServiceState] | None = None,
    ) -> NoReturn:
        guard = self._signing_guard()
        backup = guard.backup_path if guard.has_backup() else None
        self.registry.transition(
            NodeState.DEGRADED,
            reason=message,
            metadata={"signing_state_backup": str(backup) if backup else None},
        )
        op.add_step("node.degraded", status="error", detail=message)
        raise NodeDegraded(message, backup_path=backup, statuses=statuses)

    def _signing_guard(self) -> ValidatorStateGuard:
        return ValidatorStateGuard(self.layout.story_data_dir, self.layout.signing_state_file.name)

    def _require_no_pending_backup(self, op: OperationScope, action: str) -> None:
        guard = self._signing_guard()
        if not guard.has_backup():
            return
        op.add_step("signing_state.check", status="error", detail=str(guard.backup_path))
        raise PreconditionFailed(
            f"Signing-state backup pending at {guard.backup_path}; run "
            f"`storyctl signing-state restore` before {action} the consensus service."
        )

    def upgrade(
        self,
        *,
        story_version: str | None = None,
        geth_version: str | None = None,
        allow_downgrade: bool = False,
    ) -> list[BinaryInstallResult]:
        """Install new client versions, regenerate units and restart both together."""
        args = {
            "story_version": story_version,
            "geth_version": geth_version,
            "allow_downgrade": allow_downgrade,
        }
        with self._mutation("node upgrade", args=args) as op:
            current = self._require_state(
                (NodeState.CONFIGURED, NodeState.RUNNING), "upgrade the node"
            )
            results = self._ensure_binaries(
                op,
                story_version=story_version,
                geth_version=geth_version,
                allow_downgrade=allow_downgrade,
            )
            self.registry.update_metadata(
                {f"{result.name}_version": result.version for result in results}
            )
            if current is NodeState.RUNNING:
                self._write_units(op)
                try:
                    self.supervisor.restart(BOTH_SERVICES)
                except SupervisionError as exc:
                    statuses = self.supervisor.statuses(BOTH_SERVICES)
                    failed = [
                        self.supervisor.unit_name(name)
                        for name, state in statuses.items()
                        if state is not ServiceState.ACTIVE
                    ]
                    self.registry.transition(
                        NodeState.DEGRADED,
                        reason="restart after upgrade failed",
                        metadata={"failed_services": failed},
                    )
                    raise PartialStartFailure(
                        failed,
                        {self.supervisor.unit_name(n): s for n, s in statuses.items()},
                        exc,
                    ) from exc
                op.add_step("systemd.restart", detail=self._units())
            op.success(
                "Node upgraded.",
                changed=sum(1 for result in results if result.installed),
            )
            return results

    def decommission(self, confirm: str) -> None:
        """Stop and remove both services, then delete node data and binaries."""
        if confirm != "yes":
            raise ConfirmationRequired(
                "Decommissioning deletes all chain data and validator keys; "
                "pass --confirm yes to proceed."
            )
        with self._mutation("node decommission") as op:
            for action in ("stop", "disable"):
                try:
                    getattr(self.supervisor, action)(BOTH_SERVICES)
                    op.add_step(f"systemd.{action}", detail=self._units())
                except SupervisionError as exc:
                    op.add_step(f"systemd.{action}", status="warning", detail=str(exc))
            for name in BOTH_SERVICES:
                removed = self.supervisor.remove_unit(name)
                op.add_step(
                    "systemd.remove_unit",
                    status="success" if removed else "skipped",
                    detail=str(self.supervisor.unit_path(name)),
                )
            self.supervisor.reload()
            op.add_step("systemd.reload")

            try:
                shutil.rmtree(self.config.home)
                op.add_step("node.delete_home", detail=str(self.config.home))
            except FileNotFoundError:
                op.add_step("node.delete_home", status="skipped", detail=str(self.config.home))
            for name in ("geth", "story"):
                removed = self.installer.remove(name)
                op.add_step(
                    "binaries.remove",
                    status="success" if removed else "skipped",
                    detail=str(self.installer.path_for(name)),
                )
            self.registry.transition(NodeState.DECOMMISSIONED, reason="decommission")
            op.success("Node decommissioned.", changed=3)

    def restore_signing_state(self) -> Path:
        """Move a leftover signing-state backup back into the data directory."""
        with self._mutation("signing-state restore") as op:
            if self.supervisor.status(ServiceName.CONSENSUS) is ServiceState.ACTIVE:
                raise PreconditionFailed(
                    f"Stop {self.supervisor.unit_name(ServiceName.CONSENSUS)} before restoring "
                    "the signing state."
                )
            guard = self._signing_guard()
            if not guard.restore():
                raise PreconditionFailed(f"No signing-state backup found at {guard.backup_path}.")
            op.add_step(
                "signing_state.restore",
                detail=f"{guard.backup_path} -> {guard.state_path}",
            )
            self.registry.clear_metadata("signing_state_backup")
            op.success("Signing state restored.", changed=1)
            return guard.state_path

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------
    def service_action(
        self,
        action: str,
        names: Iterable[ServiceName] = BOTH_SERVICES,
        *,
        dry_run: bool = False,
    ) -> None:
        """Run a routine ``systemctl`` *action* on *names*."""
        if action not in SERVICE_ACTIONS:
            raise ValueError(f"Unsupported service action '{action}'.")
        selected = tuple(names)
        with self._mutation(
            f"service {action}",
            args={"services": [name.value for name in selected], "dry_run": dry_run},
        ) as op:
            if action in ("start", "restart") and ServiceName.CONSENSUS in selected:
                self._require_no_pending_backup(op, f"{action}ing")
            getattr(self.supervisor, action)(selected, dry_run=dry_run)
            op.add_step(
                f"systemd.{action}",
                status="skipped" if dry_run else "success",
                detail=", ".join(self.supervisor.unit_name(name) for name in selected),
            )

    def reload_services(self) -> None:
        """Ask systemd to re-read the unit files."""
        with self._mutation("service reload") as op:
            self.supervisor.reload()
            op.add_step("systemd.reload")

    def service_statuses(self) -> dict[ServiceName, ServiceState]:
        """Return the state of both services."""
        return self.supervisor.statuses(BOTH_SERVICES)

    # ------------------------------------------------------------------
    # Validator operations
    # ------------------------------------------------------------------
    def _require_synced(self) -> SyncStatus:
        current = self.registry.node_state()
        if current is not NodeState.RUNNING:
            raise PreconditionFailed(
                f"Validator operations require a running node (current state: {current.value})."
            )
        status = self.rpc_factory().sync_status()
        if status.catching_up:
            raise NodeNotSynced(status)
        return status

    @contextmanager
    def _validator_operation(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
    ) -> Iterator[OperationScope]:
        with self.logger.operation(
            command,
            args=args,
            target={"kind": "validator", "moniker": self.config.node.moniker},
        ) as op:
            status = self._require_synced()
            op.add_step("sync.check", detail=f"height={status.latest_block_height}")
            yield op

    def validator_export(self, *, evm_key: bool = False) -> ValidatorKey:
        """Export the validator public key and optionally the EVM private key file."""
        with self._validator_operation("validator export", args={"evm_key": evm_key}) as op:
            key = self.story.export_validator_key()
            op.add_step("story.validator_export")
            if evm_key:
                self.story.export_evm_key()
                op.add_step("story.export_evm_key", detail=str(self.layout.private_key_file))
            return key

    def create_validator(self, *, stake: int = DEFAULT_CREATE_STAKE) -> str:
        """Register this node as a validator with an initial self-stake (wei)."""
        with self._validator_operation("validator create", args={"stake": stake}) as op:
            private_key = read_private_key(self.layout.private_key_file)
            output = self.story.create_validator(stake=stake, private_key=private_key)
            op.add_step("story.validator_create")
            return output

    def stake(self, amount: int) -> str:
        """Delegate *amount* (wei) to this validator."""
        with self._validator_operation("validator stake", args={"amount": amount}) as op:
            private_key = read_private_key(self.layout.private_key_file)
            pubkey = self._validator_pubkey()
            output = self.story.stake(
                validator_pubkey=pubkey, amount=amount, private_key=private_key
            )
            op.add_step("story.validator_stake", detail=pubkey)
            return output

    def unstake(self, amount: int) -> str:
        """Withdraw *amount* (wei) of stake from this validator."""
        with self._validator_operation("validator unstake", args={"amount": amount}) as op:
            private_key = read_private_key(self.layout.private_key_file)
            pubkey = self._validator_pubkey()
            output = self.story.unstake(
                validator_pubkey=pubkey, amount=amount, private_key=private_key
            )
            op.add_step("story.validator_unstake", detail=pubkey)
            return output

    def add_operator(self, operator: str) -> str:
        """Authorise *operator* (EVM address) to act for this validator."""
        address = validate_evm_address(operator)
        with self._validator_operation("validator add-operator", args={"operator": address}) as op:
            private_key = read_private_key(self.layout.private_key_file)
            output = self.story.add_operator(operator=address, private_key=private_key)
            op.add_step("story.validator_add_operator", detail=address)
            return output

    def set_withdrawal_address(self, address: str) -> str:
        """Send withdrawn stake and rewards to *address*."""
        checked = validate_evm_address(address)
        with self._validator_operation(
            "validator set-withdrawal-address", args={"address": checked}
        ) as op:
            private_key = read_private_key(self.layout.private_key_file)
            output = self.story.set_withdrawal_address(address=checked, private_key=private_key)
            op.add_step("story.validator_set_withdrawal_address", detail=checked)
            return output

    def _validator_pubkey(self) -> str:
        key = self.story.export_validator_key()
        pubkey = key.compressed_pubkey_base64
        if not pubkey:
            raise PreconditionFailed(
                "`story validator export` did not report a compressed base64 public key."
            )
        return pubkey

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------
    def sync_status(self) -> SyncStatus:
        """Return the consensus client's sync status."""
        return self.rpc_factory().sync_status()

    def node_info(self) -> Mapping[str, object]:
        """Return the raw ``/status`` payload."""
        return self.rpc_factory().status()

    def peer_string(self) -> str:
        """Return ``<node_id>@<public_ip>:<p2p port>`` for sharing with other operators."""
        status = self.sync_status()
        if self.public_ip_lookup is None:
            raise RpcError("No public IP lookup configured.")
        laddr = self.patcher.read_value(self.layout.config_toml, "laddr", section="p2p")
        port = self.config.node.port(P2P_PORT)
        if laddr:
            tail = laddr.strip("\"'").rsplit(":", 1)[-1]
            if tail.isdigit():
                port = int(tail)
        return f"{status.node_id}@{self.public_ip_lookup()}:{port}"

    # ------------------------------------------------------------------
    # Firewall
    # ------------------------------------------------------------------
    def open_firewall(self, *, dry_run: bool = False) -> dict[str, int]:
        """Allow the geth and story P2P ports through ``ufw``."""
        ports = firewall_ports(self.config.node)
        with self.logger.operation(
            "system firewall",
            args={"dry_run": dry_run},
            target={"kind": "firewall", "ports": ports},
        ) as op:
            for comment, port in ports.items():
                self.firewall.allow(port, comment=comment, dry_run=dry_run)
                op.add_step(
                    "ufw.allow",
                    status="skipped" if dry_run else "success",
                    detail=f"{port}/tcp ({comment})",
                )
        return ports

    # ------------------------------------------------------------------
    def _version_metadata(self) -> dict[str, object]:
        return {
            "story_version": self.config.binaries.story_version,
            "geth_version": self.config.binaries.geth_version,
        }

    def _units(self) -> str:
        return ", ".join(self.supervisor.unit_name(name) for name in BOTH_SERVICES)


__all__ = [
    "ConfirmationRequired",
    "DEFAULT_CREATE_STAKE",
    "InstallReport",
    "LifecycleError",
    "NodeDegraded",
    "NodeLifecycleOrchestrator",
    "NodeNotSynced",
    "PartialStartFailure",
    "PreconditionFailed",
    "read_private_key",
]
