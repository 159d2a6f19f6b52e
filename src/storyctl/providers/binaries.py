"""Ensure the ``story`` and ``geth`` binaries are installed at pinned versions."""
from __future__ import annotations

import os
import re
import subprocess
import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import requests
from packaging.version import InvalidVersion, Version

_VERSION_RE = re.compile(r"v?(\d+\.\d+\.\d+(?:[-.]?[0-9A-Za-z.]+)?)")


class BinaryInstallError(RuntimeError):
    """Raised when installing a client binary fails."""


@dataclass(frozen=True, slots=True)
class BinaryInstallResult:
    """Metadata describing an ensured binary."""

    name: str
    version: str
    path: Path
    installed: bool
    installed_at: str | None = None


def parse_version(text: str) -> Version | None:
    """Extract the first semantic version found in *text*."""
    for match in _VERSION_RE.finditer(text):
        candidate = match.group(1)
        for value in (candidate, candidate.split("-", 1)[0]):
            try:
                return Version(value)
            except InvalidVersion:
                continue
    return None


class BinaryInstaller:
    """Download release binaries into *bin_dir*."""

    def __init__(
        self,
        *,
        bin_dir: Path,
        session: requests.Session | None = None,
        timeout: float = 120.0,
    ) -> None:
        """Initialise the installer with the target directory."""
        self.bin_dir = bin_dir.expanduser()
        self.session = session or requests.Session()
        self.timeout = timeout

    def path_for(self, name: str) -> Path:
        """Return the installed location of binary *name*."""
        return self.bin_dir / name

    def installed_version(self, name: str) -> Version | None:
        """Return the version reported by the installed binary, if any."""
        path = self.path_for(name)
        if not path.is_file():
            return None
        result = self._run_version_command(path)
        if result.returncode != 0:
            return None
        return parse_version(f"{result.stdout}\n{result.stderr}")

    def is_present(self, name: str, version: str) -> bool:
        """Return True when binary *name* reports *version*."""
        wanted = parse_version(version)
        current = self.installed_version(name)
        return wanted is not None and current is not None and current == wanted

    def ensure(
        self,
        name: str,
        version: str,
        url_template: str,
        *,
        allow_downgrade: bool = False,
        dry_run: bool = False,
    ) -> BinaryInstallResult:
        """Install *name* at *version* unless it is already present."""
        normalized = version.strip()
        wanted = parse_version(normalized)
        if wanted is None:
            raise BinaryInstallError(f"Invalid version for {name}: {version!r}")

        current = self.installed_version(name)
        path = self.path_for(name)
        if current == wanted:
            return BinaryInstallResult(name=name, version=normalized, path=path, installed=False)
        if current is not None and wanted < current and not allow_downgrade:
            raise BinaryInstallError(
                f"Refusing to downgrade {name} from {current} to {wanted} "
                "(pass --allow-downgrade to override)."
            )

        url = url_template.format(version=normalized)
        if dry_run:
            return BinaryInstallResult(name=name, version=normalized, path=path, installed=False)

        self._download(url, path)
        installed_at = datetime.now(tz=UTC).isoformat(timespec="seconds").replace("+00:00", "Z")
        return BinaryInstallResult(
            name=name,
            version=normalized,
            path=path,
            installed=True,
            installed_at=installed_at,
        )

    def remove(self, name: str) -> bool:
        """Delete binary *name*; return False when it was not installed."""
        try:
            self.path_for(name).unlink()
        except FileNotFoundError:
            return False
        return True

    # ------------------------------------------------------------------
    def _download(self, url: str, destination: Path) -> None:
        """Stream *url* to a staging file and move it over *destination*."""
        self.bin_dir.mkdir(parents=True, exist_ok=True)
        tmp_fd, tmp_name = tempfile.mkstemp(dir=str(self.bin_dir), prefix=f".{destination.name}.")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(tmp_fd, "wb") as handle:
                try:
                    response = self.session.get(url, stream=True, timeout=self.timeout)
                    if response.status_code >= 400:
                        raise BinaryInstallError(
                            f"Download of {url} failed with HTTP {response.status_code}"
                        )
                    with response:
                        for chunk in response.iter_content(chunk_size=1024 * 1024):
                            if chunk:
                                handle.write(chunk)
                except requests.RequestException as exc:
                    raise BinaryInstallError(f"Download of {url} failed: {exc}") from exc
            os.chmod(tmp_path, 0o755)
            os.replace(tmp_path, destination)
        finally:
            tmp_path.unlink(missing_ok=True)

    def _run_version_command(self, path: Path) -> subprocess.CompletedProcess[str]:
        """Execute ``<binary> version`` (isolated for testing)."""
        return subprocess.run(  # noqa: S603
            [str(path), "version"],
            check=False,
            capture_output=True,
            text=True,
        )


__all__ = [
    "BinaryInstallError",
    "BinaryInstallResult",
    "BinaryInstaller",
    "parse_version",
]
