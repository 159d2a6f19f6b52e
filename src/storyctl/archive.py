"""Streaming download and extraction of chain-data snapshot archives.

Snapshots are tens to hundreds of gigabytes, so they are never buffered to
disk: the HTTP body is streamed straight into ``tar``'s stdin, which handles
decompression (lz4, zstd, gzip, xz) and unpacks into the target directory.
"""
from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from collections.abc import Iterable, Iterator
from pathlib import Path

import requests

DEFAULT_CHUNK_SIZE = 4 * 1024 * 1024


class SnapshotFetchError(RuntimeError):
    """Raised when a snapshot archive cannot be downloaded."""

    def __init__(self, url: str, message: str) -> None:
        """Record the *url* that failed."""
        super().__init__(f"Failed to fetch snapshot {url}: {message}")
        self.url = url


class SnapshotExtractError(RuntimeError):
    """Raised when a snapshot archive cannot be unpacked."""

    def __init__(self, url: str, target: Path, message: str) -> None:
        """Record the archive *url* and extraction *target*."""
        super().__init__(f"Failed to extract snapshot {url} into {target}: {message}")
        self.url = url
        self.target = target


def compression_for_url(url: str) -> str:
    """Return the compression algorithm implied by the archive URL suffix."""
    path = url.split("?", 1)[0].lower()
    if path.endswith(".lz4"):
        return "lz4"
    if path.endswith((".zst", ".zstd")):
        return "zstd"
    if path.endswith((".gz", ".tgz")):
        return "gzip"
    if path.endswith((".xz", ".txz")):
        return "xz"
    return "none"


def tar_extract_command(algorithm: str, target: Path) -> list[str]:
    """Return the ``tar`` invocation that unpacks stdin into *target*."""
    tar_bin = shutil.which("tar")
    if tar_bin is None:
        raise FileNotFoundError("The 'tar' command is required to extract snapshots.")
    cmd: list[str] = [tar_bin]
    if algorithm == "lz4":
        if shutil.which("lz4") is None:
            raise FileNotFoundError("The 'lz4' command is required for .lz4 snapshots.")
        cmd.extend(["-I", "lz4"])
    elif algorithm == "zstd":
        cmd.append("--zstd")
    elif algorithm == "gzip":
        cmd.append("-z")
    elif algorithm == "xz":
        cmd.append("-J")
    cmd.extend(["-xf", "-", "-C", str(target)])
    return cmd


class ArchiveFetcher:
    """Stream remote archives over HTTP(S)."""

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        timeout: float = 60.0,
    ) -> None:
        """Initialise the fetcher with an optional shared *session*."""
        self.session = session or requests.Session()
        self.chunk_size = chunk_size
        self.timeout = timeout

    def stream(self, url: str) -> Iterator[bytes]:
        """Yield the response body of *url* chunk by chunk."""
        try:
            response = self.session.get(url, stream=True, timeout=self.timeout)
        except requests.RequestException as exc:
            raise SnapshotFetchError(url, str(exc)) from exc
        try:
            if response.status_code >= 400:
                raise SnapshotFetchError(url, f"HTTP {response.status_code}")
            try:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if chunk:
                        yield chunk
            except requests.RequestException as exc:
                raise SnapshotFetchError(url, f"stream interrupted: {exc}") from exc
        finally:
            response.close()


def download_to_path(fetcher: ArchiveFetcher, url: str, destination: Path) -> None:
    """Write the body of *url* to *destination*, replacing it atomically."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    tmp_fd, tmp_name = tempfile.mkstemp(
        dir=str(destination.parent),
        prefix=f".{destination.name}.",
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(tmp_fd, "wb") as handle:
            for chunk in fetcher.stream(url):
                handle.write(chunk)
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, destination)
    finally:
        tmp_path.unlink(missing_ok=True)


def stream_extract(chunks: Iterable[bytes], target: Path, *, url: str) -> None:
    """Pipe *chunks* of the archive at *url* through ``tar`` into *target*.

    A :class:`SnapshotFetchError` raised by *chunks* propagates unchanged after
    ``tar`` is terminated; the target may then be partially populated.
    """
    algorithm = compression_for_url(url)
    try:
        target.mkdir(parents=True, exist_ok=True)
        cmd = tar_extract_command(algorithm, target)
    except OSError as exc:
        raise SnapshotExtractError(url, target, str(exc)) from exc

    with tempfile.TemporaryFile() as stderr_sink:
        process = subprocess.Popen(  # noqa: S603 - controlled command
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=stderr_sink,
        )
        if process.stdin is None:
            process.kill()
            process.wait()
            raise SnapshotExtractError(url, target, "tar was started without a stdin pipe")
        broken_pipe = False
        try:
            for chunk in chunks:
                try:
                    process.stdin.write(chunk)
                except BrokenPipeError:
                    broken_pipe = True
                    break
        except BaseException:
            process.kill()
            process.wait()
            raise
        finally:
            try:
                process.stdin.close()
            except BrokenPipeError:
                broken_pipe = True
        returncode = process.wait()
        if returncode != 0 or broken_pipe:
            stderr_sink.seek(0)
            message = stderr_sink.read().decode("utf-8", errors="replace").strip()
            raise SnapshotExtractError(
                url,
                target,
                message or f"tar exited {returncode}",
            )


__all__ = [
    "ArchiveFetcher",
    "SnapshotExtractError",
    "SnapshotFetchError",
    "compression_for_url",
    "download_to_path",
    "stream_extract",
    "tar_extract_command",
]
