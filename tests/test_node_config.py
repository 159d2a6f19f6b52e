"""Tests for deriving config edits and unit contexts from node settings."""
from __future__ import annotations

from pathlib import Path

from storyctl.config import NodeLayout, NodeSettings, load_config
from storyctl.node_config import build_node_config, firewall_ports, unit_contexts
from storyctl.patcher import ConfigPatcher
from storyctl.providers.systemd import ServiceName

CONFIG_TOML = """\
proxy_app = "tcp://127.0.0.1:26658"

[rpc]
laddr = "tcp://127.0.0.1:26657"

[p2p]
laddr = "tcp://0.0.0.0:26656"
external_address = ""
seeds = ""
persistent_peers = ""

[tx_index]
indexer = "kv"

[instrumentation]
prometheus = false
prometheus_listen_addr = ":26660"
"""

STORY_TOML = """\
api-address = "127.0.0.1:1317"
engine-endpoint = "http://localhost:8551"
"""


def _layout(tmp_path: Path) -> NodeLayout:
    layout = NodeLayout(home=tmp_path / "home", bin_dir=tmp_path / "bin", network="iliad")
    layout.story_config_dir.mkdir(parents=True)
    layout.config_toml.write_text(CONFIG_TOML, encoding="utf-8")
    layout.story_toml.write_text(STORY_TOML, encoding="utf-8")
    return layout


def test_node_config_applies_prefix_ports_and_peers(tmp_path: Path) -> None:
    """Every listener moves to the configured prefix and peers are joined."""
    layout = _layout(tmp_path)
    node = NodeSettings(
        port_prefix=27,
        seeds=("a@1.1.1.1:26656", "b@2.2.2.2:26656"),
        persistent_peers=("c@3.3.3.3:26656",),
        prometheus=True,
        indexer="null",
    )

    results = ConfigPatcher().apply_all(
        build_node_config(layout, node, external_address="203.0.113.7")
    )

    assert all(not result.missing for result in results)
    config = layout.config_toml.read_text(encoding="utf-8")
    assert 'proxy_app = "tcp://127.0.0.1:27658"' in config
    assert 'laddr = "tcp://127.0.0.1:27657"' in config
    assert 'laddr = "tcp://0.0.0.0:27656"' in config
    assert 'external_address = "203.0.113.7:27656"' in config
    assert 'seeds = "a@1.1.1.1:26656,b@2.2.2.2:26656"' in config
    assert 'persistent_peers = "c@3.3.3.3:26656"' in config
    assert "prometheus = true" in config
    assert 'prometheus_listen_addr = ":27660"' in config
    assert 'indexer = "null"' in config
    story = layout.story_toml.read_text(encoding="utf-8")
    assert 'api-address = "127.0.0.1:27317"' in story
    assert 'engine-endpoint = "http://localhost:27551"' in story


def test_node_config_is_idempotent(tmp_path: Path) -> None:
    """Applying the derived edits twice changes nothing the second time."""
    layout = _layout(tmp_path)
    node = NodeSettings(port_prefix=31)
    patcher = ConfigPatcher()

    patcher.apply_all(build_node_config(layout, node))
    second = patcher.apply_all(build_node_config(layout, node))

    assert [result.changed for result in second] == [False, False]


def test_external_address_untouched_without_host(tmp_path: Path) -> None:
    """No host means the external address edit is omitted."""
    layout = _layout(tmp_path)

    edits = build_node_config(layout, NodeSettings())

    assert "p2p.external_address" not in [edit.label for edit in edits[layout.config_toml]]
    assert "p2p.seeds" not in [edit.label for edit in edits[layout.config_toml]]


def test_external_address_port_is_replaced(tmp_path: Path) -> None:
    """A configured host:port keeps the host and uses the P2P port."""
    layout = _layout(tmp_path)

    edits = build_node_config(layout, NodeSettings(external_address="node.example:1234"))

    [edit] = [e for e in edits[layout.config_toml] if e.key == "external_address"]
    assert edit.value == "node.example:26656"


def test_unit_contexts(tmp_path: Path) -> None:
    """Unit contexts carry the binaries, home and prefixed geth ports."""
    config = load_config(
        config_file=tmp_path / "missing.yml",
        env={
            "STORYCTL_HOME": str(tmp_path / "home"),
            "STORYCTL_BIN_DIR": str(tmp_path / "bin"),
            "STORYCTL_NODE__PORT_PREFIX": "27",
        },
    )

    contexts = unit_contexts(config)

    execution = contexts[ServiceName.EXECUTION]
    consensus = contexts[ServiceName.CONSENSUS]
    assert str(execution["exec_start"]).startswith(f"{tmp_path / 'bin' / 'geth'} --iliad")
    assert "--http.port 27545" in str(execution["exec_start"])
    assert "--authrpc.port 27551" in str(execution["exec_start"])
    assert "--ws.port 27546" in str(execution["exec_start"])
    assert execution["restart_sec"] == 3
    assert consensus["exec_start"] == (
        f"{tmp_path / 'bin' / 'story'} run --home {tmp_path / 'home' / 'story'}"
    )
    assert consensus["working_directory"] == str(tmp_path / "home" / "story")


def test_firewall_ports() -> None:
    """Both P2P ports are opened."""
    assert firewall_ports(NodeSettings(port_prefix=27)) == {
        "geth_p2p_port": 30303,
        "story_p2p_port": 27656,
    }
