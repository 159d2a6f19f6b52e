"""Typer-powered command line for ``storyctl``.

Each command resolves the runtime (configuration plus the node orchestrator)
once per invocation, calls into :class:`~storyctl.orchestrator.NodeLifecycleOrchestrator`
and maps failures onto the well-known exit codes in :mod:`storyctl.exit_codes`.
"""
from __future__ import annotations

import json
import textwrap
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .archive import SnapshotExtractError, SnapshotFetchError
from .config import PRUNING_MODES, AppConfig, ConfigError, load_config
from .exit_codes import ExitCode
from .guard import SigningStateError
from .locking import LockTimeoutError
from .orchestrator import (
    DEFAULT_CREATE_STAKE,
    ConfirmationRequired,
    LifecycleError,
    NodeDegraded,
    NodeLifecycleOrchestrator,
    NodeNotSynced,
    PartialStartFailure,
    PreconditionFailed,
)
from .patcher import ConfigApplyError, ConfigNotFound
from .providers import (
    BinaryInstallError,
    ClientCommandError,
    FirewallError,
    ServiceName,
    ServiceState,
    SupervisionError,
)
from .providers.systemd import BOTH_SERVICES
from .rpc import RpcError
from .snapshot import DataWipeError
from .state import StateRegistryError

console = Console()

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to storyctl's YAML config file.",
)

DRY_RUN_OPTION = typer.Option(
    False,
    "--dry-run",
    help="Report the actions that would be taken without applying changes.",
)

SERVICE_OPTION = typer.Option(
    "all",
    "--service",
    "-s",
    help="Which service to act on: consensus, execution or all.",
)

JSON_OPTION = typer.Option(
    False,
    "--json",
    help="Emit machine-readable JSON instead of tables.",
)

# Ordered most specific first; the first matching class decides the exit code.
_EXIT_CODES: tuple[tuple[type[Exception], ExitCode], ...] = (
    (ConfirmationRequired, ExitCode.VALIDATION),
    (NodeNotSynced, ExitCode.NOT_SYNCED),
    (NodeDegraded, ExitCode.DEGRADED),
    (PartialStartFailure, ExitCode.PROVIDER),
    (PreconditionFailed, ExitCode.ENVIRONMENT),
    (LifecycleError, ExitCode.VALIDATION),
    (ConfigError, ExitCode.ENVIRONMENT),
    (ConfigNotFound, ExitCode.ENVIRONMENT),
    (LockTimeoutError, ExitCode.ENVIRONMENT),
    (StateRegistryError, ExitCode.ENVIRONMENT),
    (ConfigApplyError, ExitCode.PROVIDER),
    (SupervisionError, ExitCode.PROVIDER),
    (ClientCommandError, ExitCode.PROVIDER),
    (BinaryInstallError, ExitCode.PROVIDER),
    (RpcError, ExitCode.PROVIDER),
    (FirewallError, ExitCode.PROVIDER),
    (SnapshotFetchError, ExitCode.PROVIDER),
    (SnapshotExtractError, ExitCode.PROVIDER),
    (DataWipeError, ExitCode.PROVIDER),
    (SigningStateError, ExitCode.PROVIDER),
    (ValueError, ExitCode.VALIDATION),
)
_HANDLED = tuple(exc_type for exc_type, _ in _EXIT_CODES)


app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        Story validator node lifecycle manager.

        Installs, configures, runs, resyncs, upgrades and decommissions a
        consensus (story) plus execution (story-geth) node pair under systemd.
        """
    ).strip(),
)


@dataclass
class RuntimeContext:
    """Aggregated runtime objects shared by commands."""

    config: AppConfig
    orchestrator: NodeLifecycleOrchestrator


def _ensure_runtime(
    ctx: typer.Context,
    config_file: Path | None,
    lock_timeout_override: float | None = None,
) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime

    overrides: dict[str, object] = {}
    if lock_timeout_override is not None:
        overrides["lock_timeout"] = lock_timeout_override

    try:
        config = load_config(config_file=config_file, overrides=overrides)
    except ConfigError as exc:
        _fail(exc)
    runtime = RuntimeContext(
        config=config,
        orchestrator=NodeLifecycleOrchestrator.from_config(config),
    )
    ctx.obj = runtime
    return runtime


def _get_runtime(ctx: typer.Context) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    return _ensure_runtime(ctx, None, None)


def _exit_code_for(exc: Exception) -> ExitCode:
    for exc_type, code in _EXIT_CODES:
        if isinstance(exc, exc_type):
            return code
    return ExitCode.PROVIDER


def _fail(exc: Exception) -> NoReturn:
    """Print *exc* and terminate with its mapped exit code."""
    console.print(f"[red]{exc}[/red]")
    raise typer.Exit(code=int(_exit_code_for(exc))) from exc


@contextmanager
def _command_errors() -> Iterator[None]:
    """Translate domain errors raised inside the block into exit codes."""
    try:
        yield
    except _HANDLED as exc:
        _fail(exc)


def _select_services(raw: str) -> tuple[ServiceName, ...]:
    value = raw.strip().lower()
    if value == "all":
        return BOTH_SERVICES
    try:
        return (ServiceName(value),)
    except ValueError:
        console.print(f"[red]Unknown service '{raw}'. Use consensus, execution or all.[/red]")
        raise typer.Exit(code=int(ExitCode.VALIDATION)) from None


def _render_statuses(
    runtime: RuntimeContext,
    statuses: Mapping[ServiceName, ServiceState],
) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Service", style="bold")
    table.add_column("Unit")
    table.add_column("State")
    for name, state in statuses.items():
        colour = {"active": "green", "failed": "red"}.get(state.value, "yellow")
        table.add_row(
            name.value,
            runtime.orchestrator.supervisor.unit_name(name),
            f"[{colour}]{state.value}[/{colour}]",
        )
    console.print(table)


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the storyctl version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
    lock_timeout: float | None = typer.Option(
        None,
        "--lock-timeout",
        help="Override lock acquisition timeout in seconds.",
    ),
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if version:
        console.print(f"storyctl {__version__}")
        raise typer.Exit(code=0)

    _ensure_runtime(ctx, config_file, lock_timeout)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=0)


node_app = typer.Typer(help="Install, run, upgrade and remove the node.")
snapshot_app = typer.Typer(help="Resync chain data from a snapshot.")
validator_app = typer.Typer(help="Validator key and staking operations (requires a synced node).")
service_app = typer.Typer(help="Routine systemd operations for both services.")
geth_app = typer.Typer(help="Query the execution client.")
system_app = typer.Typer(help="Host checks and firewall rules.")
config_app = typer.Typer(help="Inspect the effective configuration.")
signing_state_app = typer.Typer(help="Manage the validator signing-state backup.")

app.add_typer(node_app, name="node")
app.add_typer(snapshot_app, name="snapshot")
app.add_typer(validator_app, name="validator")
app.add_typer(service_app, name="service")
app.add_typer(geth_app, name="geth")
app.add_typer(system_app, name="system")
app.add_typer(config_app, name="config")
app.add_typer(signing_state_app, name="signing-state")


# ---------------------------------------------------------------------------
# node
# ---------------------------------------------------------------------------


@node_app.command("install")
def node_install(
    ctx: typer.Context,
    force: bool = typer.Option(
        False,
        "--force",
        help="Continue even when the host is below the minimum resources.",
    ),
    allow_downgrade: bool = typer.Option(
        False,
        "--allow-downgrade",
        help="Permit replacing installed binaries with older versions.",
    ),
) -> None:
    """Full setup: resource gate, binaries, configuration and services."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        report = runtime.orchestrator.install(force=force, allow_downgrade=allow_downgrade)
    for result in report.binaries:
        action = "installed" if result.installed else "already present"
        console.print(f"{result.name} {result.version}: {action} ({result.path})")
    _render_statuses(runtime, report.statuses)
    console.print("[green]Node installed and running.[/green]")


@node_app.command("configure")
def node_configure(
    ctx: typer.Context,
    force: bool = typer.Option(
        False,
        "--force",
        help="Continue even when the host is below the minimum resources.",
    ),
) -> None:
    """Initialise the node home and apply seeds, peers, ports and telemetry settings."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        results = runtime.orchestrator.configure(force=force)
    for result in results:
        status = "updated" if result.changed else "unchanged"
        console.print(f"{result.path}: {status}")
        if result.missing:
            console.print(
                f"[yellow]Keys not present in {result.path.name}:[/yellow] "
                f"{', '.join(result.missing)}"
            )
    console.print("[green]Node configured.[/green]")


@node_app.command("start")
def node_start(ctx: typer.Context) -> None:
    """Write the unit files, then enable and start both services."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        statuses = runtime.orchestrator.start_node()
    _render_statuses(runtime, statuses)


@node_app.command("upgrade")
def node_upgrade(
    ctx: typer.Context,
    story_version: str | None = typer.Option(
        None,
        "--story-version",
        help="Consensus client version (defaults to binaries.story_version).",
    ),
    geth_version: str | None = typer.Option(
        None,
        "--geth-version",
        help="Execution client version (defaults to binaries.geth_version).",
    ),
    allow_downgrade: bool = typer.Option(
        False,
        "--allow-downgrade",
        help="Permit replacing installed binaries with older versions.",
    ),
) -> None:
    """Install new client versions and restart both services together."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        results = runtime.orchestrator.upgrade(
            story_version=story_version,
            geth_version=geth_version,
            allow_downgrade=allow_downgrade,
        )
    for result in results:
        action = "installed" if result.installed else "already present"
        console.print(f"{result.name} {result.version}: {action}")
    console.print("[green]Upgrade complete.[/green]")


@node_app.command("decommission")
def node_decommission(
    ctx: typer.Context,
    confirm: str = typer.Option(
        "",
        "--confirm",
        help="Type 'yes' to confirm. Deletes chain data, keys and binaries.",
    ),
) -> None:
    """Stop and remove both services and delete all node data."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        runtime.orchestrator.decommission(confirm)
    console.print("[green]Node decommissioned.[/green]")


@node_app.command("status")
def node_status(ctx: typer.Context, json_output: bool = JSON_OPTION) -> None:
    """Show the lifecycle state and the state of both services."""
    runtime = _get_runtime(ctx)
    with runtime.orchestrator.logger.operation(
        "node status",
        args={"json": json_output},
        target={"kind": "node"},
    ) as op:
        with _command_errors():
            record = runtime.orchestrator.record()
            statuses = runtime.orchestrator.service_statuses()
        if json_output:
            payload = record.to_dict()
            payload["services"] = {name.value: state.value for name, state in statuses.items()}
            console.print_json(data=payload)
            op.success("Rendered node status as JSON.", changed=0)
            return
        console.print(f"Lifecycle state: [bold]{record.state.value}[/bold]")
        backup = record.metadata.get("signing_state_backup")
        if backup:
            console.print(f"[yellow]Signing-state backup awaiting restore:[/yellow] {backup}")
        _render_statuses(runtime, statuses)
        op.success("Rendered node status.", changed=0)


@node_app.command("info")
def node_info(ctx: typer.Context) -> None:
    """Print the consensus client's ``/status`` response."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        payload = runtime.orchestrator.node_info()
    console.print_json(data=payload)


@node_app.command("peer")
def node_peer(ctx: typer.Context) -> None:
    """Print this node's peer string (node_id@public_ip:p2p_port)."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        peer = runtime.orchestrator.peer_string()
    console.print(peer)


@node_app.command("sync")
def node_sync(ctx: typer.Context) -> None:
    """Show consensus and execution sync status."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        status = runtime.orchestrator.sync_status()
        geth_syncing = runtime.orchestrator.geth.syncing()
    console.print("Story sync status:")
    console.print_json(data=status.to_dict())
    console.print(f"Geth syncing: {geth_syncing}")


# ---------------------------------------------------------------------------
# snapshot
# ---------------------------------------------------------------------------


@snapshot_app.command("install")
def snapshot_install(
    ctx: typer.Context,
    mode: str = typer.Option(
        "pruned",
        "--mode",
        help=f"Snapshot type: {' or '.join(PRUNING_MODES)}.",
    ),
) -> None:
    """Stop both services, replace chain data and restart, keeping signing state."""
    if mode not in PRUNING_MODES:
        console.print(f"[red]Unsupported mode '{mode}'. Use {', '.join(PRUNING_MODES)}.[/red]")
        raise typer.Exit(code=int(ExitCode.VALIDATION))
    runtime = _get_runtime(ctx)
    with _command_errors():
        result = runtime.orchestrator.resync(mode)
    record = result.signing_state
    if record is not None and record.restored:
        console.print(f"Signing state restored to {record.source}.")
    _render_statuses(runtime, result.statuses)
    console.print(f"[green]{mode.capitalize()} snapshot installed.[/green]")


@snapshot_app.command("list")
def snapshot_list(ctx: typer.Context) -> None:
    """List the configured snapshot archives."""
    runtime = _get_runtime(ctx)
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Network", style="bold")
    table.add_column("Mode")
    table.add_column("Story archive")
    table.add_column("Geth archive")
    for network, modes in runtime.config.snapshots.sources.items():
        for mode, source in modes.items():
            table.add_row(network, mode, source.story_url, source.geth_url)
    console.print(table)


# ---------------------------------------------------------------------------
# validator
# ---------------------------------------------------------------------------


@validator_app.command("export")
def validator_export(
    ctx: typer.Context,
    evm_key: bool = typer.Option(
        False,
        "--evm-key",
        help="Also write the EVM private key to private_key.txt.",
    ),
) -> None:
    """Show the validator public keys."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        key = runtime.orchestrator.validator_export(evm_key=evm_key)
    for label, value in key.fields.items():
        console.print(f"{label}: {value}")
    if evm_key:
        console.print(
            f"EVM private key written to {runtime.config.layout.private_key_file}; back it up."
        )


@validator_app.command("create")
def validator_create(
    ctx: typer.Context,
    stake: int = typer.Option(
        DEFAULT_CREATE_STAKE,
        "--stake",
        min=1,
        help="Initial self-stake in wei.",
    ),
) -> None:
    """Register this node as a validator."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        output = runtime.orchestrator.create_validator(stake=stake)
    console.print(output.strip())
    console.print(
        "Remember to back up the validator key at "
        f"{runtime.config.layout.validator_key_file}."
    )


@validator_app.command("stake")
def validator_stake(
    ctx: typer.Context,
    amount: int = typer.Argument(..., min=1, help="Amount to delegate in wei."),
) -> None:
    """Delegate stake to this validator."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        output = runtime.orchestrator.stake(amount)
    console.print(output.strip())


@validator_app.command("unstake")
def validator_unstake(
    ctx: typer.Context,
    amount: int = typer.Argument(..., min=1, help="Amount to withdraw in wei."),
) -> None:
    """Withdraw stake from this validator."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        output = runtime.orchestrator.unstake(amount)
    console.print(output.strip())


@validator_app.command("add-operator")
def validator_add_operator(
    ctx: typer.Context,
    operator: str = typer.Argument(..., help="Operator EVM address (0x...)."),
) -> None:
    """Authorise an operator address."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        output = runtime.orchestrator.add_operator(operator)
    console.print(output.strip())


@validator_app.command("set-withdrawal-address")
def validator_set_withdrawal_address(
    ctx: typer.Context,
    address: str = typer.Argument(..., help="Withdrawal EVM address (0x...)."),
) -> None:
    """Change the withdrawal address."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        output = runtime.orchestrator.set_withdrawal_address(address)
    console.print(output.strip())


# ---------------------------------------------------------------------------
# service
# ---------------------------------------------------------------------------


def _service_action(ctx: typer.Context, action: str, service: str, dry_run: bool) -> None:
    runtime = _get_runtime(ctx)
    names = _select_services(service)
    with _command_errors():
        runtime.orchestrator.service_action(action, names, dry_run=dry_run)
    units = ", ".join(runtime.orchestrator.supervisor.unit_name(name) for name in names)
    if dry_run:
        console.print(f"[yellow]Dry run[/yellow]: would {action} {units}.")
        return
    console.print(f"[green]{action.capitalize()} issued for {units}.[/green]")


@service_app.command("start")
def service_start(
    ctx: typer.Context,
    service: str = SERVICE_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
) -> None:
    """Start the services."""
    _service_action(ctx, "start", service, dry_run)


@service_app.command("stop")
def service_stop(
    ctx: typer.Context,
    service: str = SERVICE_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
) -> None:
    """Stop the services."""
    _service_action(ctx, "stop", service, dry_run)


@service_app.command("restart")
def service_restart(
    ctx: typer.Context,
    service: str = SERVICE_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
) -> None:
    """Restart the services."""
    _service_action(ctx, "restart", service, dry_run)


@service_app.command("enable")
def service_enable(
    ctx: typer.Context,
    service: str = SERVICE_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
) -> None:
    """Enable the services at boot."""
    _service_action(ctx, "enable", service, dry_run)


@service_app.command("disable")
def service_disable(
    ctx: typer.Context,
    service: str = SERVICE_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
) -> None:
    """Disable the services at boot."""
    _service_action(ctx, "disable", service, dry_run)


@service_app.command("reload")
def service_reload(ctx: typer.Context) -> None:
    """Run ``systemctl daemon-reload``."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        runtime.orchestrator.reload_services()
    console.print("[green]Unit definitions reloaded.[/green]")


@service_app.command("status")
def service_status(ctx: typer.Context, service: str = SERVICE_OPTION) -> None:
    """Print ``systemctl status`` for the services."""
    runtime = _get_runtime(ctx)
    names = _select_services(service)
    with _command_errors():
        result = runtime.orchestrator.supervisor.describe(names)
    console.print(result.stdout or result.stderr or "", markup=False, highlight=False)


@service_app.command("logs")
def service_logs(
    ctx: typer.Context,
    service: str = SERVICE_OPTION,
    lines: int | None = typer.Option(None, "--lines", "-n", min=1, help="Show the last N lines."),
    since: str | None = typer.Option(None, "--since", help="journalctl --since expression."),
    follow: bool = typer.Option(False, "--follow", "-f", help="Stream new entries."),
) -> None:
    """Show journal output for the services."""
    runtime = _get_runtime(ctx)
    names = _select_services(service)
    with _command_errors():
        result = runtime.orchestrator.supervisor.logs(
            names, lines=lines, since=since, follow=follow
        )
    if not follow:
        console.print(result.stdout or "", markup=False, highlight=False)


# ---------------------------------------------------------------------------
# geth
# ---------------------------------------------------------------------------


@geth_app.command("block")
def geth_block(ctx: typer.Context) -> None:
    """Print the latest block number."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        console.print(runtime.orchestrator.geth.block_number())


@geth_app.command("peers")
def geth_peers(ctx: typer.Context) -> None:
    """Print the connected peers."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        console.print(runtime.orchestrator.geth.peers(), markup=False)


@geth_app.command("syncing")
def geth_syncing(ctx: typer.Context) -> None:
    """Print ``eth.syncing``."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        console.print(runtime.orchestrator.geth.syncing(), markup=False)


@geth_app.command("gas-price")
def geth_gas_price(ctx: typer.Context) -> None:
    """Print the current gas price in wei."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        console.print(runtime.orchestrator.geth.gas_price())


@geth_app.command("balance")
def geth_balance(
    ctx: typer.Context,
    address: str = typer.Argument(..., help="EVM address (0x...)."),
) -> None:
    """Print the balance of an address in wei."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        console.print(runtime.orchestrator.geth.balance(address))


@geth_app.command("enode")
def geth_enode(ctx: typer.Context) -> None:
    """Print this node's enode URL."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        console.print(runtime.orchestrator.geth.enode(), markup=False)


# ---------------------------------------------------------------------------
# system
# ---------------------------------------------------------------------------


@system_app.command("requirements")
def system_requirements(ctx: typer.Context, json_output: bool = JSON_OPTION) -> None:
    """Check CPU, RAM and free disk against the configured minimums."""
    runtime = _get_runtime(ctx)
    report = runtime.orchestrator.check_requirements()
    if json_output:
        console.print_json(data=report.to_dict())
    else:
        for check in report.checks:
            colour = "green" if check.passed else "yellow"
            console.print(f"[{colour}]{check.message}[/{colour}]")
    if not report.passed:
        raise typer.Exit(code=int(ExitCode.ENVIRONMENT))


@system_app.command("firewall")
def system_firewall(ctx: typer.Context, dry_run: bool = DRY_RUN_OPTION) -> None:
    """Allow the geth and story P2P ports through ufw."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        ports = runtime.orchestrator.open_firewall(dry_run=dry_run)
    prefix = "[yellow]Dry run[/yellow]: would allow" if dry_run else "Allowed"
    for comment, port in ports.items():
        console.print(f"{prefix} {port}/tcp ({comment})")


# ---------------------------------------------------------------------------
# config / signing-state
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context, json_output: bool = JSON_OPTION) -> None:
    """Display the effective configuration after merges."""
    runtime = _get_runtime(ctx)
    data = runtime.config.to_dict()

    with runtime.orchestrator.logger.operation(
        "config show",
        args={"json": json_output},
        target={"kind": "config"},
    ) as op:
        if json_output:
            console.print_json(data=data)
            op.success("Rendered configuration as JSON.", changed=0)
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Key", style="bold")
        table.add_column("Value")

        for key, value in data.items():
            if isinstance(value, dict):
                rendered = json.dumps(value, indent=2, sort_keys=True)
            else:
                rendered = str(value)
            table.add_row(key, rendered)

        console.print(table)
        op.success("Rendered configuration table.", changed=0)


@signing_state_app.command("restore")
def signing_state_restore(ctx: typer.Context) -> None:
    """Move priv_validator_state.json.backup back into the data directory."""
    runtime = _get_runtime(ctx)
    with _command_errors():
        path = runtime.orchestrator.restore_signing_state()
    console.print(f"[green]Signing state restored to {path}.[/green]")


def main() -> None:
    """Console script entry point."""
    app()


__all__ = ["app", "main"]
