"""Tests for the client binary installer."""
from __future__ import annotations

import subprocess
from collections.abc import Iterator
from pathlib import Path

import pytest
import requests
from packaging.version import Version

from storyctl.providers.binaries import (
    BinaryInstaller,
    BinaryInstallError,
    parse_version,
)

STORY_URL = "https://github.com/piplabs/story/releases/download/{version}/story-linux-amd64"


class FakeResponse:
    """Streaming response serving a fixed body."""

    def __init__(self, status_code: int = 200, body: bytes = b"#!/bin/sh\n") -> None:
        """Serve *body* with *status_code*."""
        self.status_code = status_code
        self.body = body

    def iter_content(self, chunk_size: int) -> Iterator[bytes]:
        """Yield the body once."""
        yield self.body

    def __enter__(self) -> FakeResponse:
        """Support ``with response``."""
        return self

    def __exit__(self, *exc: object) -> None:
        """Nothing to release."""


class FakeSession:
    """Record requested URLs."""

    def __init__(self, response: FakeResponse | Exception | None = None) -> None:
        """Serve *response* for every request."""
        self.response = response or FakeResponse()
        self.urls: list[str] = []

    def get(self, url: str, **kwargs: object) -> FakeResponse:
        """Return (or raise) the canned response."""
        self.urls.append(url)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _installer(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    *,
    reported: dict[str, str] | None = None,
    session: FakeSession | None = None,
) -> BinaryInstaller:
    installer = BinaryInstaller(
        bin_dir=tmp_path / "bin",
        session=session or FakeSession(),  # type: ignore[arg-type]
    )
    versions = reported or {}
    (tmp_path / "bin").mkdir(exist_ok=True)
    for name in versions:
        (tmp_path / "bin" / name).write_text("binary", encoding="utf-8")

    def fake_version(self: BinaryInstaller, path: Path) -> subprocess.CompletedProcess[str]:
        return subprocess.CompletedProcess(
            [str(path), "version"], 0, stdout=versions.get(path.name, ""), stderr=""
        )

    monkeypatch.setattr(BinaryInstaller, "_run_version_command", fake_version)
    return installer


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("v0.11.0", Version("0.11.0")),
        ("Version: 0.9.4-stable\nGit Commit: abc", Version("0.9.4")),
        ("story v1.2.3-rc1", Version("1.2.3rc1")),
        ("no version here", None),
    ],
)
def test_parse_version(text: str, expected: Version | None) -> None:
    """Semantic versions are extracted from free-form output."""
    assert parse_version(text) == expected


def test_ensure_downloads_missing_binary(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A missing binary is downloaded, made executable and reported installed."""
    session = FakeSession()
    installer = _installer(tmp_path, monkeypatch, session=session)

    result = installer.ensure("story", "v0.11.0", STORY_URL)

    assert result.installed is True
    assert result.installed_at is not None
    assert session.urls == [STORY_URL.format(version="v0.11.0")]
    path = tmp_path / "bin" / "story"
    assert path.read_bytes() == b"#!/bin/sh\n"
    assert path.stat().st_mode & 0o777 == 0o755


def test_ensure_skips_matching_version(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """An installed binary at the pinned version is left alone."""
    session = FakeSession()
    installer = _installer(
        tmp_path, monkeypatch, reported={"story": "Version v0.11.0"}, session=session
    )

    result = installer.ensure("story", "v0.11.0", STORY_URL)

    assert result.installed is False
    assert session.urls == []
    assert installer.is_present("story", "0.11.0") is True


def test_ensure_refuses_downgrade(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Older versions are refused unless explicitly allowed."""
    session = FakeSession()
    installer = _installer(
        tmp_path, monkeypatch, reported={"story": "v0.12.0"}, session=session
    )

    with pytest.raises(BinaryInstallError, match="downgrade"):
        installer.ensure("story", "v0.11.0", STORY_URL)
    assert session.urls == []

    result = installer.ensure("story", "v0.11.0", STORY_URL, allow_downgrade=True)
    assert result.installed is True


def test_dry_run_does_not_download(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Dry runs validate without fetching anything."""
    session = FakeSession()
    installer = _installer(tmp_path, monkeypatch, session=session)

    result = installer.ensure("geth", "v0.9.4", STORY_URL, dry_run=True)

    assert result.installed is False
    assert session.urls == []
    assert not (tmp_path / "bin" / "geth").exists()


def test_invalid_version_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Unparseable versions raise before any download."""
    installer = _installer(tmp_path, monkeypatch)

    with pytest.raises(BinaryInstallError, match="Invalid version"):
        installer.ensure("story", "latest", STORY_URL)


@pytest.mark.parametrize(
    "response",
    [FakeResponse(status_code=404), requests.ConnectionError("refused")],
)
def test_download_failure_leaves_no_partial_file(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    response: FakeResponse | Exception,
) -> None:
    """HTTP and network errors raise BinaryInstallError and clean up."""
    installer = _installer(tmp_path, monkeypatch, session=FakeSession(response))

    with pytest.raises(BinaryInstallError):
        installer.ensure("story", "v0.11.0", STORY_URL)

    assert list((tmp_path / "bin").iterdir()) == []


def test_remove(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Removing reports whether a binary was deleted."""
    installer = _installer(tmp_path, monkeypatch, reported={"geth": "v0.9.4"})

    assert installer.remove("geth") is True
    assert installer.remove("geth") is False
