"""Tests for the template rendering engine."""
from __future__ import annotations

from pathlib import Path

import pytest
from jinja2 import UndefinedError

from storyctl.templates import TemplateEngine


def _context(**overrides: object) -> dict[str, object]:
    context: dict[str, object] = {
        "description": "Story Service",
        "after": "network.target",
        "service_user": "root",
        "working_directory": "/root/.story/story",
        "exec_start": "/root/go/bin/story run --home /root/.story/story",
        "restart_sec": 5,
        "limit_nofile": 65535,
    }
    context.update(overrides)
    return context


def test_render_to_string_uses_builtin_templates() -> None:
    """Built-in templates render with strict variables."""
    engine = TemplateEngine.with_overrides(None)

    output = engine.render_to_string("systemd/service.j2", _context())

    assert "Description=Story Service" in output
    assert "WorkingDirectory=/root/.story/story" in output
    assert "ExecStart=/root/go/bin/story run --home /root/.story/story" in output
    assert "RestartSec=5" in output
    assert "LimitNOFILE=65535" in output
    assert "WantedBy=multi-user.target" in output


def test_working_directory_is_optional() -> None:
    """No WorkingDirectory line is emitted when none is given."""
    engine = TemplateEngine.with_overrides(None)

    output = engine.render_to_string("systemd/service.j2", _context(working_directory=None))

    assert "WorkingDirectory" not in output


def test_missing_variable_is_an_error() -> None:
    """Strict undefined catches missing context keys."""
    engine = TemplateEngine.with_overrides(None)
    context = _context()
    del context["exec_start"]

    with pytest.raises(UndefinedError):
        engine.render_to_string("systemd/service.j2", context)


def test_render_to_path_writes_with_mode(tmp_path: Path) -> None:
    """Rendering to a file writes content and respects the requested mode."""
    engine = TemplateEngine.with_overrides(None)
    destination = tmp_path / "story.service"

    changed = engine.render_to_path("systemd/service.j2", destination, _context(), mode=0o600)

    assert changed is True
    assert destination.exists()
    assert oct(destination.stat().st_mode & 0o777) == "0o600"

    # Second render with same content should be a no-op.
    changed_again = engine.render_to_path(
        "systemd/service.j2", destination, _context(), mode=0o600
    )
    assert changed_again is False


def test_override_directory_shadows_builtin(tmp_path: Path) -> None:
    """Templates in the override directory take precedence."""
    override = tmp_path / "templates" / "systemd"
    override.mkdir(parents=True)
    (override / "service.j2").write_text("custom {{ description }}\n", encoding="utf-8")

    engine = TemplateEngine.with_overrides(tmp_path / "templates")

    assert engine.render_to_string("systemd/service.j2", _context()) == "custom Story Service\n"
