"""Idempotent in-place edits of TOML-style client configuration files.

The patcher substitutes the value of existing ``key = value`` lines; it never
inserts keys and never reformats anything else on the line. An edit may be
scoped to a ``[section]`` so that identically named keys in other sections
(``laddr`` appears under both ``[rpc]`` and ``[p2p]``) are left alone.

Re-applying an edit set is a no-op: files are only rewritten when the rendered
content differs from what is on disk.
"""
from __future__ import annotations

import os
import re
import tempfile
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

EditValue = str | bool | int | float | Callable[[str], str]

_SECTION_RE = re.compile(r"^\s*\[\[?\s*(?P<name>[^\[\]]+?)\s*\]\]?\s*(#.*)?$")
_PORT_RE = re.compile(r":(\d+)(?=[\"'/]|$)")


class ConfigNotFound(RuntimeError):
    """Raised when a configuration file to patch does not exist."""

    def __init__(self, path: Path) -> None:
        """Record the missing *path*."""
        super().__init__(f"Configuration file not found: {path}")
        self.path = path


class ConfigApplyError(RuntimeError):
    """Raised when a configuration file cannot be read or rewritten."""


@dataclass(frozen=True, slots=True)
class ConfigEdit:
    """Replace the value of *key*, optionally only within ``[section]``."""

    key: str
    value: EditValue
    section: str | None = None

    @property
    def label(self) -> str:
        """Return ``section.key`` (or just ``key``) for reporting."""
        return f"{self.section}.{self.key}" if self.section else self.key


@dataclass(slots=True)
class PatchResult:
    """Outcome of applying an edit set to a single file."""

    path: Path
    changed: bool = False
    applied: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)


def format_value(value: str | bool | int | float) -> str:
    """Render a Python scalar as a TOML literal."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def replace_port(port: int) -> Callable[[str], str]:
    """Return a value transform that swaps the trailing ``:port`` of an address."""

    def _transform(raw: str) -> str:
        matches = list(_PORT_RE.finditer(raw))
        if not matches:
            return raw
        last = matches[-1]
        return f"{raw[: last.start()]}:{port}{raw[last.end() :]}"

    return _transform


class ConfigPatcher:
    """Apply ordered :class:`ConfigEdit` sequences to configuration files."""

    def apply(self, path: Path, edits: Sequence[ConfigEdit]) -> PatchResult:
        """Apply *edits* to *path* in order and return what changed."""
        if not path.is_file():
            raise ConfigNotFound(path)
        try:
            original = path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigApplyError(f"Failed to read {path}: {exc}") from exc

        lines = original.splitlines(keepends=True)
        result = PatchResult(path=path)
        for edit in edits:
            index = _find_key_line(lines, edit.key, edit.section)
            if index is None:
                result.missing.append(edit.label)
                continue
            lines[index] = _substitute(lines[index], edit)
            result.applied.append(edit.label)

        updated = "".join(lines)
        if updated != original:
            _write_atomic(path, updated)
            result.changed = True
        return result

    def apply_all(self, node_config: Mapping[Path, Sequence[ConfigEdit]]) -> list[PatchResult]:
        """Apply every file's edit set in *node_config*."""
        return [self.apply(path, edits) for path, edits in node_config.items()]

    def read_value(self, path: Path, key: str, *, section: str | None = None) -> str | None:
        """Return the raw literal currently assigned to *key* (``None`` when absent)."""
        if not path.is_file():
            raise ConfigNotFound(path)
        lines = path.read_text(encoding="utf-8").splitlines(keepends=True)
        index = _find_key_line(lines, key, section)
        if index is None:
            return None
        match = _key_pattern(key).match(lines[index].rstrip("\r\n"))
        if match is None:  # pragma: no cover - _find_key_line already matched
            return None
        value, _ = _split_value(match.group("rest"))
        return value


def _key_pattern(key: str) -> re.Pattern[str]:
    return re.compile(rf"^(?P<lead>\s*{re.escape(key)}\s*=\s*)(?P<rest>.*)$")


def _section_bounds(lines: Sequence[str], section: str | None) -> Iterable[int]:
    """Yield the line indexes that belong to *section* (all lines when ``None``)."""
    if section is None:
        yield from range(len(lines))
        return
    inside = False
    for index, line in enumerate(lines):
        header = _SECTION_RE.match(line.rstrip("\r\n"))
        if header is not None:
            if inside:
                return
            inside = header.group("name") == section
            continue
        if inside:
            yield index


def _find_key_line(lines: Sequence[str], key: str, section: str | None) -> int | None:
    pattern = _key_pattern(key)
    for index in _section_bounds(lines, section):
        if pattern.match(lines[index].rstrip("\r\n")):
            return index
    return None


def _split_value(rest: str) -> tuple[str, str]:
    """Split the text after ``=`` into (value literal, trailing whitespace/comment)."""
    stripped = rest.rstrip()
    if stripped[:1] in {'"', "'"}:
        quote = stripped[0]
        position = 1
        while position < len(stripped):
            char = stripped[position]
            if char == "\\" and quote == '"':
                position += 2
                continue
            if char == quote:
                break
            position += 1
        end = min(position + 1, len(rest))
        return rest[:end], rest[end:]
    hash_index = rest.find("#")
    if hash_index == -1:
        value = rest.rstrip()
        return value, rest[len(value) :]
    value = rest[:hash_index].rstrip()
    return value, rest[len(value) :]


def _substitute(line: str, edit: ConfigEdit) -> str:
    body = line.rstrip("\r\n")
    ending = line[len(body) :]
    match = _key_pattern(edit.key).match(body)
    if match is None:  # pragma: no cover - guarded by _find_key_line
        return line
    current, trailing = _split_value(match.group("rest"))
    if callable(edit.value):
        new_value = edit.value(current)
    else:
        new_value = format_value(edit.value)
    return f"{match.group('lead')}{new_value}{trailing}{ending}"


def _write_atomic(path: Path, content: str) -> None:
    try:
        mode = path.stat().st_mode & 0o777
        tmp_fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
    except OSError as exc:
        raise ConfigApplyError(f"Failed to prepare rewrite of {path}: {exc}") from exc
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(tmp_fd, "wb") as handle:
            handle.write(content.encode("utf-8"))
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except OSError as exc:
        raise ConfigApplyError(f"Failed to write {path}: {exc}") from exc
    finally:
        tmp_path.unlink(missing_ok=True)


__all__ = [
    "ConfigApplyError",
    "ConfigEdit",
    "ConfigNotFound",
    "ConfigPatcher",
    "PatchResult",
    "format_value",
    "replace_port",
]
