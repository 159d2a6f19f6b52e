"""Provider interfaces for storyctl."""
from __future__ import annotations

from .binaries import BinaryInstaller, BinaryInstallError, BinaryInstallResult
from .clients import ClientCommandError, GethClient, StoryClient, ValidatorKey
from .firewall import FirewallError, UfwFirewall
from .systemd import (
    BOTH_SERVICES,
    ServiceName,
    ServiceState,
    ServiceSupervisor,
    SupervisionError,
)

__all__ = [
    "BOTH_SERVICES",
    "BinaryInstallError",
    "BinaryInstallResult",
    "BinaryInstaller",
    "ClientCommandError",
    "FirewallError",
    "GethClient",
    "ServiceName",
    "ServiceState",
    "ServiceSupervisor",
    "StoryClient",
    "SupervisionError",
    "UfwFirewall",
    "ValidatorKey",
]
