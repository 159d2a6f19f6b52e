"""Client for the consensus node's local CometBFT RPC endpoint."""
from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests

PUBLIC_IP_URL = "https://eth0.me"


class RpcError(RuntimeError):
    """Raised when the local RPC endpoint cannot be queried."""


@dataclass(frozen=True, slots=True)
class SyncStatus:
    """Subset of ``/status`` used to gate validator operations."""

    catching_up: bool
    latest_block_height: int
    latest_block_time: str | None
    node_id: str
    moniker: str | None
    network: str | None

    @classmethod
    def from_status(cls, payload: Mapping[str, Any]) -> SyncStatus:
        """Build from the JSON body returned by ``/status``."""
        result = payload.get("result", payload)
        if not isinstance(result, Mapping):
            raise RpcError("Unexpected /status payload: missing 'result'.")
        sync_info = result.get("sync_info") or {}
        node_info = result.get("node_info") or {}
        if not isinstance(sync_info, Mapping) or "catching_up" not in sync_info:
            raise RpcError("Unexpected /status payload: missing 'sync_info.catching_up'.")
        height_raw = sync_info.get("latest_block_height", 0)
        try:
            height = int(height_raw)
        except (TypeError, ValueError) as exc:
            raise RpcError(f"Invalid latest_block_height {height_raw!r}.") from exc
        return cls(
            catching_up=bool(sync_info["catching_up"]),
            latest_block_height=height,
            latest_block_time=sync_info.get("latest_block_time"),
            node_id=str(node_info.get("id", "")),
            moniker=node_info.get("moniker"),
            network=node_info.get("network"),
        )

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "catching_up": self.catching_up,
            "latest_block_height": self.latest_block_height,
            "latest_block_time": self.latest_block_time,
            "node_id": self.node_id,
            "moniker": self.moniker,
            "network": self.network,
        }


def rpc_port_from_config(config_toml: Path) -> int:
    """Return the port from ``[rpc] laddr`` in *config_toml*."""
    try:
        data = tomllib.loads(config_toml.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise RpcError(f"Consensus config not found: {config_toml}") from exc
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise RpcError(f"Failed to read {config_toml}: {exc}") from exc
    rpc = data.get("rpc")
    laddr = rpc.get("laddr") if isinstance(rpc, Mapping) else None
    if not isinstance(laddr, str) or ":" not in laddr:
        raise RpcError(f"No [rpc] laddr with a port in {config_toml}.")
    port_text = laddr.rsplit(":", 1)[1].strip("/")
    try:
        return int(port_text)
    except ValueError as exc:
        raise RpcError(f"Invalid RPC port in laddr {laddr!r}.") from exc


class NodeRpc:
    """Query ``http://127.0.0.1:<port>`` for node and sync status."""

    def __init__(
        self,
        port: int,
        *,
        host: str = "127.0.0.1",
        session: requests.Session | None = None,
        timeout: float = 5.0,
    ) -> None:
        """Target the RPC listener on *host*:*port*."""
        self.base_url = f"http://{host}:{port}"
        self.session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_config(cls, config_toml: Path, **kwargs: Any) -> NodeRpc:
        """Build a client using the port configured in *config_toml*."""
        return cls(rpc_port_from_config(config_toml), **kwargs)

    def status(self) -> Mapping[str, Any]:
        """Return the raw ``/status`` response body."""
        return self._get_json("/status")

    def sync_status(self) -> SyncStatus:
        """Return the parsed sync status."""
        return SyncStatus.from_status(self.status())

    def net_info(self) -> Mapping[str, Any]:
        """Return the raw ``/net_info`` response body."""
        return self._get_json("/net_info")

    def _get_json(self, path: str) -> Mapping[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise RpcError(f"RPC request to {url} failed: {exc}") from exc
        if response.status_code >= 400:
            raise RpcError(f"RPC request to {url} returned HTTP {response.status_code}.")
        try:
            payload = response.json()
        except ValueError as exc:
            raise RpcError(f"RPC response from {url} is not JSON.") from exc
        if not isinstance(payload, Mapping):
            raise RpcError(f"RPC response from {url} is not a JSON object.")
        return payload


def public_ip(session: requests.Session | None = None, *, timeout: float = 5.0) -> str:
    """Return this host's public IPv4 address as seen by an external echo service."""
    client = session or requests.Session()
    try:
        response = client.get(PUBLIC_IP_URL, timeout=timeout)
    except requests.RequestException as exc:
        raise RpcError(f"Failed to determine public IP via {PUBLIC_IP_URL}: {exc}") from exc
    if response.status_code >= 400:
        raise RpcError(f"{PUBLIC_IP_URL} returned HTTP {response.status_code}.")
    address = response.text.strip()
    if not address:
        raise RpcError(f"{PUBLIC_IP_URL} returned an empty response.")
    return address


__all__ = [
    "NodeRpc",
    "PUBLIC_IP_URL",
    "RpcError",
    "SyncStatus",
    "public_ip",
    "rpc_port_from_config",
]
