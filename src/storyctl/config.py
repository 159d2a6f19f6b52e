"""Configuration loader for storyctl.

This module centralises the logic for reading configuration values from
multiple sources:

1. Built-in defaults.
2. ``/etc/storyctl/config.yml`` (or an override path).
3. Environment variables prefixed with ``STORYCTL_``.
4. Explicit overrides supplied programmatically (reserved for CLI flags).

Environment keys use double underscores to express nesting, e.g.::

    export STORYCTL_NODE__MONIKER=posthuman
    export STORYCTL_NODE__PORT_PREFIX=27

Values are coerced via PyYAML's ``safe_load`` so that booleans and numbers are
parsed naturally. The resulting configuration is exposed as immutable
``dataclasses`` so it can be threaded explicitly through the orchestrator
(and replaced by fixtures in tests) instead of living in ambient globals.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import cast

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except Exception as exc:  # pragma: no cover - import failure covered in tests
    raise RuntimeError(
        "PyYAML is required to load storyctl configuration. Install with "
        "`pip install storyctl` or ensure PyYAML>=6.0 is available."
    ) from exc


ENV_PREFIX = "STORYCTL_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}

PRUNING_MODES = ("pruned", "archive")
SIGNING_STATE_FILE = "priv_validator_state.json"


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class NodeSettings:
    """Identity, network and peering values applied to the client configs."""

    moniker: str = "test"
    network: str = "iliad"
    chain_id: str = "iliad-0"
    port_prefix: int = 26
    seeds: tuple[str, ...] = ()
    persistent_peers: tuple[str, ...] = ()
    external_address: str | None = None
    prometheus: bool = True
    indexer: str = "null"
    genesis_url: str | None = None
    addrbook_url: str | None = None

    def port(self, suffix: str) -> int:
        """Return the port built from the configured prefix and a 3-digit *suffix*."""
        return int(f"{self.port_prefix}{suffix}")

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "moniker": self.moniker,
            "network": self.network,
            "chain_id": self.chain_id,
            "port_prefix": self.port_prefix,
            "seeds": list(self.seeds),
            "persistent_peers": list(self.persistent_peers),
            "external_address": self.external_address,
            "prometheus": self.prometheus,
            "indexer": self.indexer,
            "genesis_url": self.genesis_url,
            "addrbook_url": self.addrbook_url,
        }


@dataclass(frozen=True)
class BinariesConfig:
    """Pinned client versions and their release download URLs."""

    story_version: str = "v0.11.0"
    geth_version: str = "v0.9.4"
    story_url: str = (
        "https://github.com/piplabs/story/releases/download/{version}/story-linux-amd64"
    )
    geth_url: str = (
        "https://github.com/piplabs/story-geth/releases/download/{version}/geth-linux-amd64"
    )

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "story_version": self.story_version,
            "geth_version": self.geth_version,
            "story_url": self.story_url,
            "geth_url": self.geth_url,
        }


@dataclass(frozen=True)
class SystemdConfig:
    """Systemd integration configuration values."""

    unit_dir: Path = Path("/etc/systemd/system")
    systemctl_bin: str = "systemctl"
    journalctl_bin: str = "journalctl"
    consensus_unit: str = "story"
    execution_unit: str = "story-geth"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "unit_dir": str(self.unit_dir),
            "systemctl_bin": self.systemctl_bin,
            "journalctl_bin": self.journalctl_bin,
            "consensus_unit": self.consensus_unit,
            "execution_unit": self.execution_unit,
        }


@dataclass(frozen=True)
class RequirementsConfig:
    """Minimum host resources checked before installing a node."""

    min_cpu_cores: int = 4
    min_ram_mb: int = 8000
    min_disk_gb: int = 200

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "min_cpu_cores": self.min_cpu_cores,
            "min_ram_mb": self.min_ram_mb,
            "min_disk_gb": self.min_disk_gb,
        }


@dataclass(frozen=True)
class SnapshotSource:
    """Archive URLs for one (network, pruning mode) pair."""

    story_url: str
    geth_url: str

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"story": self.story_url, "geth": self.geth_url}


@dataclass(frozen=True)
class SnapshotCatalogue:
    """Snapshot archive URLs keyed by network then pruning mode."""

    sources: Mapping[str, Mapping[str, SnapshotSource]] = field(default_factory=dict)

    def resolve(self, network: str, mode: str) -> SnapshotSource:
        """Return the archive URLs for *network* in *mode*."""
        if mode not in PRUNING_MODES:
            allowed = ", ".join(PRUNING_MODES)
            raise ConfigError(f"Unsupported pruning mode '{mode}'. Allowed: {allowed}.")
        modes = self.sources.get(network)
        if not modes or mode not in modes:
            raise ConfigError(
                f"No {mode} snapshot configured for network '{network}' "
                f"(set snapshots.{network}.{mode}.story and .geth)."
            )
        return modes[mode]

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            network: {mode: source.to_dict() for mode, source in modes.items()}
            for network, modes in self.sources.items()
        }


@dataclass(frozen=True)
class NodeLayout:
    """Filesystem layout of a node derived from the home directory."""

    home: Path
    bin_dir: Path
    network: str

    @property
    def story_home(self) -> Path:
        """Consensus client home (``story init --home``)."""
        return self.home / "story"

    @property
    def story_config_dir(self) -> Path:
        """Directory holding the consensus client configuration files."""
        return self.story_home / "config"

    @property
    def config_toml(self) -> Path:
        """CometBFT configuration file (peers, ports, telemetry)."""
        return self.story_config_dir / "config.toml"

    @property
    def story_toml(self) -> Path:
        """Story application configuration file (API and engine endpoints)."""
        return self.story_config_dir / "story.toml"

    @property
    def private_key_file(self) -> Path:
        """EVM private key exported by ``story validator export --export-evm-key``."""
        return self.story_config_dir / "private_key.txt"

    @property
    def validator_key_file(self) -> Path:
        """Consensus signing key material."""
        return self.story_config_dir / "priv_validator_key.json"

    @property
    def story_data_dir(self) -> Path:
        """Consensus chain data directory."""
        return self.story_home / "data"

    @property
    def signing_state_file(self) -> Path:
        """Validator signing state inside the consensus data directory."""
        return self.story_data_dir / SIGNING_STATE_FILE

    @property
    def geth_home(self) -> Path:
        """Execution client root directory."""
        return self.home / "geth"

    @property
    def geth_chaindata_dir(self) -> Path:
        """Execution chain data directory."""
        return self.geth_home / self.network / "geth" / "chaindata"

    @property
    def geth_ipc(self) -> Path:
        """IPC endpoint used for ``geth attach``."""
        return self.geth_home / self.network / "geth.ipc"

    @property
    def story_bin(self) -> Path:
        """Installed consensus client binary."""
        return self.bin_dir / "story"

    @property
    def geth_bin(self) -> Path:
        """Installed execution client binary."""
        return self.bin_dir / "geth"


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for storyctl."""

    config_file: Path
    home: Path
    bin_dir: Path
    state_dir: Path
    logs_dir: Path
    runtime_dir: Path
    templates_dir: Path
    lock_timeout: float
    service_user: str
    node: NodeSettings
    binaries: BinariesConfig
    systemd: SystemdConfig
    requirements: RequirementsConfig
    snapshots: SnapshotCatalogue

    @property
    def layout(self) -> NodeLayout:
        """Return the filesystem layout for the configured node."""
        return NodeLayout(home=self.home, bin_dir=self.bin_dir, network=self.node.network)

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "home": str(self.home),
            "bin_dir": str(self.bin_dir),
            "state_dir": str(self.state_dir),
            "logs_dir": str(self.logs_dir),
            "runtime_dir": str(self.runtime_dir),
            "templates_dir": str(self.templates_dir),
            "lock_timeout": self.lock_timeout,
            "service_user": self.service_user,
            "node": self.node.to_dict(),
            "binaries": self.binaries.to_dict(),
            "systemd": self.systemd.to_dict(),
            "requirements": self.requirements.to_dict(),
            "snapshots": self.snapshots.to_dict(),
        }


DEFAULTS: dict[str, object] = {
    "config_file": "/etc/storyctl/config.yml",
    "home": "~/.story",
    "bin_dir": "~/go/bin",
    "state_dir": "/var/lib/storyctl",
    "logs_dir": "/var/log/storyctl",
    "runtime_dir": "/run/storyctl",
    "templates_dir": "/etc/storyctl/templates",
    "lock_timeout": 30.0,
    "service_user": "root",
    "node": {
        "moniker": "test",
        "network": "iliad",
        "chain_id": "iliad-0",
        "port_prefix": 26,
        "seeds": [
            "51ff395354c13fab493a03268249a74860b5f9cc@story-testnet-seed.itrocket.net:26656",
            "b7e9b91c9e8c7e66e46dd15720cbe4f74f005592@galactica.seed-t.stavr.tech:35106",
            "ade4d8bc8cbe014af6ebdf3cb7b1e9ad36f412c0@testnet-seeds.polkachu.com:29256",
        ],
        "persistent_peers": [
            "0c9b936f1dc0af34679782d2ce8c80f0f8a106b3@136.243.13.36:29256",
            "72a9d2790b6d3ff21fae0e493b62cca6b4c9f91c@65.109.28.187:26656",
            "8a69935f34827dd81c721c63c69bfc54c849d028@46.4.52.158:26656",
            "2f372238bf86835e8ad68c0db12351833c40e8ad@story-testnet-peer.itrocket.net:26656",
        ],
        "external_address": None,
        "prometheus": True,
        "indexer": "null",
        "genesis_url": "https://snapshots.story.posthuman.digital/genesis.json",
        "addrbook_url": "https://snapshots.story.posthuman.digital/addrbook.json",
    },
    "binaries": {
        "story_version": "v0.11.0",
        "geth_version": "v0.9.4",
        "story_url": BinariesConfig.story_url,
        "geth_url": BinariesConfig.geth_url,
    },
    "systemd": {
        "unit_dir": "/etc/systemd/system",
        "systemctl_bin": "systemctl",
        "journalctl_bin": "journalctl",
        "consensus_unit": "story",
        "execution_unit": "story-geth",
    },
    "requirements": {
        "min_cpu_cores": 4,
        "min_ram_mb": 8000,
        "min_disk_gb": 200,
    },
    "snapshots": {
        "iliad": {
            "pruned": {
                "story": "https://snapshots-pruned.story.posthuman.digital/story_pruned.tar.lz4",
                "geth": (
                    "https://snapshots-pruned.story.posthuman.digital/geth_story_pruned.tar.lz4"
                ),
            },
            "archive": {
                "story": "https://snapshots.story.posthuman.digital/story_archive.tar.lz4",
                "geth": "https://snapshots.story.posthuman.digital/geth_story_archive.tar.lz4",
            },
        },
    },
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
ALLOWED_SECTION_KEYS: dict[str, set[str]] = {
    "node": set(cast(Mapping[str, object], DEFAULTS["node"]).keys()),
    "binaries": set(cast(Mapping[str, object], DEFAULTS["binaries"]).keys()),
    "systemd": set(cast(Mapping[str, object], DEFAULTS["systemd"]).keys()),
    "requirements": set(cast(Mapping[str, object], DEFAULTS["requirements"]).keys()),
}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, dict(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override)
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR])
    return Path(default_path)


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    lock_timeout = raw.get("lock_timeout")
    if lock_timeout is not None:
        _expect_positive_float(lock_timeout, "lock_timeout", default=30.0)

    for section, allowed in ALLOWED_SECTION_KEYS.items():
        section_map = _as_dict(raw.get(section), section)
        unknown = set(section_map.keys()) - allowed
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown {section} configuration keys: {joined}.")

    snapshots = _as_dict(raw.get("snapshots"), "snapshots")
    for network, modes_raw in snapshots.items():
        modes = _as_dict(modes_raw, f"snapshots.{network}")
        unknown_modes = set(modes.keys()) - set(PRUNING_MODES)
        if unknown_modes:
            joined = ", ".join(sorted(unknown_modes))
            raise ConfigError(f"Unknown pruning modes for snapshots.{network}: {joined}.")
        for mode, source_raw in modes.items():
            source = _as_dict(source_raw, f"snapshots.{network}.{mode}")
            unknown_source = set(source.keys()) - {"story", "geth"}
            if unknown_source:
                joined = ", ".join(sorted(unknown_source))
                raise ConfigError(
                    f"Unknown keys for snapshots.{network}.{mode}: {joined}."
                )


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    lock_timeout = _expect_positive_float(raw.get("lock_timeout"), "lock_timeout", default=30.0)

    node_mapping = _as_dict(raw.get("node"), "node")
    port_prefix = _expect_int(node_mapping.get("port_prefix"), "node.port_prefix", default=26)
    if port_prefix < 1 or port_prefix > 65:
        raise ConfigError("node.port_prefix must be between 1 and 65 inclusive.")
    moniker = str(node_mapping.get("moniker", "test")).strip()
    if not moniker:
        raise ConfigError("node.moniker must be a non-empty string.")
    external_address = node_mapping.get("external_address")
    node = NodeSettings(
        moniker=moniker,
        network=str(node_mapping.get("network", "iliad")),
        chain_id=str(node_mapping.get("chain_id", "iliad-0")),
        port_prefix=port_prefix,
        seeds=_as_str_tuple(node_mapping.get("seeds"), "node.seeds"),
        persistent_peers=_as_str_tuple(
            node_mapping.get("persistent_peers"), "node.persistent_peers"
        ),
        external_address=str(external_address) if external_address else None,
        prometheus=bool(node_mapping.get("prometheus", True)),
        indexer=str(node_mapping.get("indexer", "null")),
        genesis_url=_optional_str(node_mapping.get("genesis_url")),
        addrbook_url=_optional_str(node_mapping.get("addrbook_url")),
    )

    binaries_mapping = _as_dict(raw.get("binaries"), "binaries")
    binaries = BinariesConfig(
        story_version=str(binaries_mapping.get("story_version", BinariesConfig.story_version)),
        geth_version=str(binaries_mapping.get("geth_version", BinariesConfig.geth_version)),
        story_url=str(binaries_mapping.get("story_url", BinariesConfig.story_url)),
        geth_url=str(binaries_mapping.get("geth_url", BinariesConfig.geth_url)),
    )

    systemd_mapping = _as_dict(raw.get("systemd"), "systemd")
    systemd = SystemdConfig(
        unit_dir=_to_path(systemd_mapping.get("unit_dir", "/etc/systemd/system")),
        systemctl_bin=str(systemd_mapping.get("systemctl_bin", "systemctl")),
        journalctl_bin=str(systemd_mapping.get("journalctl_bin", "journalctl")),
        consensus_unit=str(systemd_mapping.get("consensus_unit", "story")),
        execution_unit=str(systemd_mapping.get("execution_unit", "story-geth")),
    )
    if systemd.consensus_unit == systemd.execution_unit:
        raise ConfigError("systemd.consensus_unit and systemd.execution_unit must differ.")

    requirements_mapping = _as_dict(raw.get("requirements"), "requirements")
    requirements = RequirementsConfig(
        min_cpu_cores=_expect_int(
            requirements_mapping.get("min_cpu_cores"), "requirements.min_cpu_cores", default=4
        ),
        min_ram_mb=_expect_int(
            requirements_mapping.get("min_ram_mb"), "requirements.min_ram_mb", default=8000
        ),
        min_disk_gb=_expect_int(
            requirements_mapping.get("min_disk_gb"), "requirements.min_disk_gb", default=200
        ),
    )

    sources: dict[str, dict[str, SnapshotSource]] = {}
    for network, modes_raw in _as_dict(raw.get("snapshots"), "snapshots").items():
        modes: dict[str, SnapshotSource] = {}
        for mode, source_raw in _as_dict(modes_raw, f"snapshots.{network}").items():
            source = _as_dict(source_raw, f"snapshots.{network}.{mode}")
            story_url = _optional_str(source.get("story"))
            geth_url = _optional_str(source.get("geth"))
            if not story_url or not geth_url:
                raise ConfigError(
                    f"snapshots.{network}.{mode} requires both 'story' and 'geth' URLs."
                )
            modes[mode] = SnapshotSource(story_url=story_url, geth_url=geth_url)
        sources[network] = modes

    return AppConfig(
        config_file=_to_path(raw.get("config_file")),
        home=_to_path(raw.get("home")),
        bin_dir=_to_path(raw.get("bin_dir")),
        state_dir=_to_path(raw.get("state_dir")),
        logs_dir=_to_path(raw.get("logs_dir")),
        runtime_dir=_to_path(raw.get("runtime_dir")),
        templates_dir=_to_path(raw.get("templates_dir")),
        lock_timeout=lock_timeout,
        service_user=str(raw.get("service_user", "root")),
        node=node,
        binaries=binaries,
        systemd=systemd,
        requirements=requirements,
        snapshots=SnapshotCatalogue(sources=sources),
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        elif isinstance(value, list):
            result[key] = list(value)
        else:
            result[key] = value
    return result


def _as_str_tuple(value: object | None, label: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(item.strip() for item in value.split(",") if item.strip())
    if not isinstance(value, Sequence):
        raise ConfigError(f"Expected {label} to be a list or comma-separated string.")
    return tuple(str(item).strip() for item in value if str(item).strip())


def _optional_str(value: object | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return parsed


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_int(value: object | None, label: str, *, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be an integer. Got boolean {value!r}.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 0)
        except ValueError as exc:
            raise ConfigError(f"Invalid integer for {label}: {value!r}.") from exc
    raise ConfigError(f"Expected {label} to be an integer. Got {type(value).__name__}.")


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _expect_positive_float(
    value: object | None,
    label: str,
    *,
    default: float,
) -> float:
    if value is None:
        return float(default)
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be a number. Got boolean {value!r}.")
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        try:
            numeric = float(value)
        except ValueError as exc:
            raise ConfigError(f"Invalid number for {label}: {value!r}.") from exc
    else:
        raise ConfigError(
            f"Expected {label} to be numeric. Got {type(value).__name__}."
        )
    if numeric <= 0:
        raise ConfigError(f"{label} must be greater than zero. Got {numeric}.")
    return numeric


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "BinariesConfig",
    "ConfigError",
    "NodeLayout",
    "NodeSettings",
    "PRUNING_MODES",
    "RequirementsConfig",
    "SIGNING_STATE_FILE",
    "SnapshotCatalogue",
    "SnapshotSource",
    "SystemdConfig",
    "load_config",
]
