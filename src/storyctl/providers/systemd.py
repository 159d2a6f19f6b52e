"""Systemd supervision of the consensus and execution client services."""
from __future__ import annotations

import subprocess
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..templates import TemplateEngine


class ServiceName(str, Enum):
    """The two supervised client processes."""

    CONSENSUS = "consensus"
    EXECUTION = "execution"


BOTH_SERVICES: tuple[ServiceName, ...] = (ServiceName.EXECUTION, ServiceName.CONSENSUS)


class ServiceState(str, Enum):
    """Normalised ``systemctl is-active`` result."""

    ACTIVE = "active"
    FAILED = "failed"
    INACTIVE = "inactive"


class SupervisionError(RuntimeError):
    """Raised when a systemd operation fails for a service."""

    def __init__(self, service: str, operation: str, message: str) -> None:
        """Record which *service* and *operation* failed."""
        super().__init__(f"{operation} failed for {service}: {message}")
        self.service = service
        self.operation = operation


@dataclass(slots=True)
class ServiceSupervisor:
    """Render, reload and drive the systemd units of the node services."""

    templates: TemplateEngine
    unit_names: Mapping[ServiceName, str]
    systemd_dir: Path = Path("/etc/systemd/system")
    systemctl_bin: str = "systemctl"
    journalctl_bin: str = "journalctl"

    def unit_name(self, service: ServiceName) -> str:
        """Return the systemd unit name for *service*."""
        return f"{self.unit_names[service]}.service"

    def unit_path(self, service: ServiceName) -> Path:
        """Return the full path for the service unit file."""
        return self.systemd_dir / self.unit_name(service)

    def write_unit(self, service: ServiceName, context: Mapping[str, object]) -> bool:
        """Regenerate the unit file for *service* in full; reload when it changed."""
        changed = self.templates.render_to_path(
            "systemd/service.j2",
            self.unit_path(service),
            context,
            mode=0o644,
        )
        if changed:
            self.reload()
        return changed

    def reload(self) -> None:
        """Ask systemd to re-read unit definitions."""
        self._systemctl("daemon-reload", service="systemd")

    def start(self, names: Iterable[ServiceName], *, dry_run: bool = False) -> None:
        """Start every service in *names*."""
        self._each("start", names, dry_run=dry_run)

    def stop(self, names: Iterable[ServiceName], *, dry_run: bool = False) -> None:
        """Stop every service in *names*."""
        self._each("stop", names, dry_run=dry_run)

    def restart(self, names: Iterable[ServiceName], *, dry_run: bool = False) -> None:
        """Restart every service in *names*."""
        self._each("restart", names, dry_run=dry_run)

    def enable(self, names: Iterable[ServiceName], *, dry_run: bool = False) -> None:
        """Enable every service in *names* at boot."""
        self._each("enable", names, dry_run=dry_run)

    def disable(self, names: Iterable[ServiceName], *, dry_run: bool = False) -> None:
        """Disable every service in *names* at boot."""
        self._each("disable", names, dry_run=dry_run)

    def status(self, service: ServiceName) -> ServiceState:
        """Return the active state of *service*."""
        result = self._systemctl(
            "is-active",
            self.unit_name(service),
            service=self.unit_name(service),
            check=False,
        )
        state = (result.stdout or "").strip().splitlines()
        value = state[0].strip() if state else ""
        if value in {"active", "reloading", "activating", "deactivating"}:
            return ServiceState.ACTIVE
        if value == "failed":
            return ServiceState.FAILED
        return ServiceState.INACTIVE

    def statuses(
        self, names: Iterable[ServiceName] = BOTH_SERVICES
    ) -> dict[ServiceName, ServiceState]:
        """Return the state of every service in *names*."""
        return {name: self.status(name) for name in names}

    def describe(
        self, names: Iterable[ServiceName] = BOTH_SERVICES
    ) -> subprocess.CompletedProcess[str]:
        """Return ``systemctl status`` output for *names*."""
        units = [self.unit_name(name) for name in names]
        return self._run_command(
            [self.systemctl_bin, "status", "--no-pager", *units],
            service=",".join(units),
            operation="status",
            check=False,
            capture_output=True,
        )

    def logs(
        self,
        names: Iterable[ServiceName],
        *,
        lines: int | None = None,
        since: str | None = None,
        follow: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        """Return journalctl output for the units of *names*."""
        args: list[str] = []
        units: list[str] = []
        for name in names:
            units.append(self.unit_name(name))
            args.extend(["--unit", self.unit_name(name)])
        args.extend(["--no-pager", "--output", "cat"])
        if lines is not None:
            args.extend(["--lines", str(lines)])
        if since is not None:
            args.extend(["--since", since])
        if follow:
            args.append("--follow")
        return self._run_command(
            [self.journalctl_bin, *args],
            service=",".join(units),
            operation="logs",
            check=True,
            capture_output=not follow,
        )

    def remove_unit(self, service: ServiceName) -> bool:
        """Delete the unit file for *service*; return False when already absent."""
        try:
            self.unit_path(service).unlink()
        except FileNotFoundError:
            return False
        return True

    # ------------------------------------------------------------------
    def _each(self, command: str, names: Iterable[ServiceName], *, dry_run: bool) -> None:
        # Every member gets the command even when an earlier one fails.
        failures: list[SupervisionError] = []
        for name in names:
            unit = self.unit_name(name)
            try:
                self._systemctl(command, unit, service=unit, dry_run=dry_run)
            except SupervisionError as exc:
                failures.append(exc)
        if len(failures) == 1:
            raise failures[0]
        if failures:
            raise SupervisionError(
                ",".join(failure.service for failure in failures),
                command,
                "; ".join(str(failure) for failure in failures),
            )

    def _systemctl(
        self,
        command: str,
        unit: str | None = None,
        *,
        service: str,
        check: bool = True,
        dry_run: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        args: list[str] = [self.systemctl_bin, command]
        if unit is not None:
            args.append(unit)
        return self._run_command(
            args,
            service=service,
            operation=command,
            check=check,
            capture_output=True,
            dry_run=dry_run,
        )

    def _run_command(
        self,
        args: Sequence[str],
        *,
        service: str,
        operation: str,
        check: bool,
        capture_output: bool,
        dry_run: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        if dry_run:
            return subprocess.CompletedProcess(list(args), returncode=0, stdout="", stderr="")
        try:
            result = subprocess.run(  # noqa: S603, S607
                list(args),
                capture_output=capture_output,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise SupervisionError(service, operation, f"{args[0]} not found: {exc}") from exc
        if check and result.returncode != 0:
            stdout = getattr(result, "stdout", "") or ""
            stderr = getattr(result, "stderr", "") or ""
            message = stderr.strip() or stdout.strip() or "no output"
            raise SupervisionError(
                service,
                operation,
                f"{' '.join(args)} exited {result.returncode}: {message}",
            )
        return result


__all__ = [
    "BOTH_SERVICES",
    "ServiceName",
    "ServiceState",
    "ServiceSupervisor",
    "SupervisionError",
]
