"""Derive config-file edits and unit contexts from the node settings.

Ports are ``<prefix><suffix>`` (prefix 26 gives the stock CometBFT ports). The
edits only rewrite the port part of listen addresses, so hosts chosen by the
client's ``init`` (``tcp://127.0.0.1``, ``tcp://0.0.0.0``) survive.
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path

from .config import AppConfig, NodeLayout, NodeSettings
from .patcher import ConfigEdit, replace_port
from .providers.systemd import ServiceName

P2P_PORT = "656"
RPC_PORT = "657"
PROXY_APP_PORT = "658"
PROMETHEUS_PORT = "660"
API_PORT = "317"
ENGINE_PORT = "551"
GETH_HTTP_PORT = "545"
GETH_WS_PORT = "546"
GETH_P2P_PORT = 30303

NodeConfig = Mapping[Path, Sequence[ConfigEdit]]


def build_node_config(
    layout: NodeLayout,
    node: NodeSettings,
    *,
    external_address: str | None = None,
) -> dict[Path, list[ConfigEdit]]:
    """Return the ordered edits for ``config.toml`` and ``story.toml``.

    *external_address* is a bare host; the P2P port is appended. It falls back
    to ``node.external_address`` and is left untouched when neither is set.
    """
    config_edits: list[ConfigEdit] = []
    if node.seeds:
        config_edits.append(ConfigEdit("seeds", ",".join(node.seeds), section="p2p"))
    if node.persistent_peers:
        config_edits.append(
            ConfigEdit("persistent_peers", ",".join(node.persistent_peers), section="p2p")
        )
    config_edits.extend(
        [
            ConfigEdit("proxy_app", replace_port(node.port(PROXY_APP_PORT))),
            ConfigEdit("laddr", replace_port(node.port(RPC_PORT)), section="rpc"),
            ConfigEdit("laddr", replace_port(node.port(P2P_PORT)), section="p2p"),
        ]
    )
    host = external_address or node.external_address
    if host:
        config_edits.append(
            ConfigEdit(
                "external_address",
                f"{_strip_port(host)}:{node.port(P2P_PORT)}",
                section="p2p",
            )
        )
    config_edits.extend(
        [
            ConfigEdit("prometheus", node.prometheus, section="instrumentation"),
            ConfigEdit(
                "prometheus_listen_addr",
                replace_port(node.port(PROMETHEUS_PORT)),
                section="instrumentation",
            ),
            ConfigEdit("indexer", node.indexer, section="tx_index"),
        ]
    )

    story_edits = [
        ConfigEdit("api-address", replace_port(node.port(API_PORT))),
        ConfigEdit("engine-endpoint", replace_port(node.port(ENGINE_PORT))),
    ]
    return {layout.config_toml: config_edits, layout.story_toml: story_edits}


def _strip_port(host: str) -> str:
    head, sep, tail = host.rpartition(":")
    if sep and tail.isdigit() and head:
        return head
    return host


def unit_contexts(config: AppConfig) -> dict[ServiceName, dict[str, object]]:
    """Return the template context for each service unit."""
    layout = config.layout
    node = config.node
    geth_args = [
        str(layout.geth_bin),
        f"--{node.network}",
        "--datadir",
        str(layout.geth_home / node.network),
        "--syncmode full",
        "--http",
        "--http.api eth,net,web3,engine",
        "--http.vhosts '*'",
        "--http.addr 0.0.0.0",
        f"--http.port {node.port(GETH_HTTP_PORT)}",
        f"--authrpc.port {node.port(ENGINE_PORT)}",
        "--ws",
        "--ws.api eth,web3,net,txpool",
        "--ws.addr 0.0.0.0",
        f"--ws.port {node.port(GETH_WS_PORT)}",
    ]
    return {
        ServiceName.EXECUTION: {
            "description": "Story Geth daemon",
            "after": "network-online.target",
            "service_user": config.service_user,
            "working_directory": None,
            "exec_start": " ".join(geth_args),
            "restart_sec": 3,
            "limit_nofile": 65535,
        },
        ServiceName.CONSENSUS: {
            "description": "Story Service",
            "after": "network.target",
            "service_user": config.service_user,
            "working_directory": str(layout.story_home),
            "exec_start": f"{layout.story_bin} run --home {layout.story_home}",
            "restart_sec": 5,
            "limit_nofile": 65535,
        },
    }


def firewall_ports(node: NodeSettings) -> dict[str, int]:
    """Return the P2P ports that must be reachable from other nodes."""
    return {"geth_p2p_port": GETH_P2P_PORT, "story_p2p_port": node.port(P2P_PORT)}


__all__ = [
    "NodeConfig",
    "build_node_config",
    "firewall_ports",
    "unit_contexts",
]
