"""Host resource gate checked before a node is installed."""
from __future__ import annotations

import os
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from .config import RequirementsConfig

MEMINFO_PATH = Path("/proc/meminfo")


@dataclass(frozen=True, slots=True)
class ResourceCheck:
    """One measured resource compared against its minimum."""

    name: str
    measured: int
    required: int
    unit: str

    @property
    def passed(self) -> bool:
        """Return ``True`` when the measured value meets the minimum."""
        return self.measured >= self.required

    @property
    def message(self) -> str:
        """Human readable description of the check."""
        verdict = "ok" if self.passed else "below minimum"
        return (
            f"{self.name}: {self.measured}{self.unit} "
            f"(required {self.required}{self.unit}) {verdict}"
        )

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "name": self.name,
            "measured": self.measured,
            "required": self.required,
            "unit": self.unit,
            "passed": self.passed,
        }


@dataclass(frozen=True, slots=True)
class RequirementsReport:
    """Outcome of the resource gate."""

    checks: tuple[ResourceCheck, ...] = field(default_factory=tuple)

    @property
    def passed(self) -> bool:
        """Return ``True`` when every check passed."""
        return all(check.passed for check in self.checks)

    @property
    def failures(self) -> tuple[ResourceCheck, ...]:
        """Checks whose measured value is below the minimum."""
        return tuple(check for check in self.checks if not check.passed)

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"passed": self.passed, "checks": [check.to_dict() for check in self.checks]}


def cpu_cores() -> int:
    """Return the number of CPU cores on the host."""
    return os.cpu_count() or 0


def total_ram_mb(meminfo: Path = MEMINFO_PATH) -> int:
    """Return total RAM in megabytes as reported by ``/proc/meminfo``."""
    try:
        lines = meminfo.read_text(encoding="utf-8").splitlines()
    except OSError:
        return 0
    for line in lines:
        if line.startswith("MemTotal:"):
            parts = line.split()
            try:
                return int(parts[1]) // 1024
            except (IndexError, ValueError):
                return 0
    return 0


def free_disk_gb(path: Path) -> int:
    """Return free space in gigabytes on the filesystem holding *path*."""
    probe = path
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent
    usage = shutil.disk_usage(probe)
    return usage.free // (1024 * 1024 * 1024)


class RequirementsChecker:
    """Measure the host and compare it against :class:`RequirementsConfig`."""

    def __init__(
        self,
        config: RequirementsConfig,
        *,
        cpu_probe: Callable[[], int] = cpu_cores,
        ram_probe: Callable[[], int] = total_ram_mb,
        disk_probe: Callable[[Path], int] = free_disk_gb,
    ) -> None:
        """Use the given probes (replaceable in tests)."""
        self.config = config
        self.cpu_probe = cpu_probe
        self.ram_probe = ram_probe
        self.disk_probe = disk_probe

    def check(self, data_path: Path) -> RequirementsReport:
        """Return a report for the host where *data_path* will live."""
        return RequirementsReport(
            checks=(
                ResourceCheck("cpu", self.cpu_probe(), self.config.min_cpu_cores, " cores"),
                ResourceCheck("ram", self.ram_probe(), self.config.min_ram_mb, "MB"),
                ResourceCheck("disk", self.disk_probe(data_path), self.config.min_disk_gb, "GB"),
            )
        )


__all__ = [
    "RequirementsChecker",
    "RequirementsReport",
    "ResourceCheck",
    "cpu_cores",
    "free_disk_gb",
    "total_ram_mb",
]
