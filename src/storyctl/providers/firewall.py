"""Open the node's P2P ports through ``ufw``."""
from __future__ import annotations

import subprocess
from collections.abc import Sequence
from dataclasses import dataclass


class FirewallError(RuntimeError):
    """Raised when a firewall rule cannot be added."""


@dataclass(slots=True)
class UfwFirewall:
    """Thin wrapper around ``ufw allow``."""

    ufw_bin: str = "ufw"

    def allow(
        self,
        port: int,
        *,
        protocol: str = "tcp",
        comment: str | None = None,
        dry_run: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        """Allow inbound traffic on *port*/*protocol*."""
        args = [self.ufw_bin, "allow", f"{port}/{protocol}"]
        if comment:
            args.extend(["comment", comment])
        return self._run_command(args, dry_run=dry_run)

    def _run_command(
        self,
        args: Sequence[str],
        *,
        dry_run: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        if dry_run:
            return subprocess.CompletedProcess(list(args), returncode=0, stdout="", stderr="")
        try:
            result = subprocess.run(  # noqa: S603 - controlled command execution
                list(args),
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise FirewallError(f"{args[0]} not found: {exc}") from exc
        if result.returncode != 0:
            message = (result.stderr or result.stdout or "no output").strip()
            raise FirewallError(f"{' '.join(args)} exited {result.returncode}: {message}")
        return result


__all__ = ["FirewallError", "UfwFirewall"]
