"""Tests for the local RPC client."""
from __future__ import annotations

from pathlib import Path

import pytest
import requests

from storyctl.rpc import NodeRpc, RpcError, SyncStatus, public_ip, rpc_port_from_config

STATUS = {
    "jsonrpc": "2.0",
    "id": -1,
    "result": {
        "node_info": {"id": "abc123", "moniker": "posthuman", "network": "iliad"},
        "sync_info": {
            "latest_block_height": "1000",
            "latest_block_time": "2024-09-01T00:00:00Z",
            "catching_up": False,
        },
    },
}


class FakeResponse:
    """Canned HTTP response."""

    def __init__(self, status_code: int = 200, payload: object = None, text: str = "") -> None:
        """Serve *payload* as JSON and *text* as the body."""
        self.status_code = status_code
        self.payload = payload
        self.text = text

    def json(self) -> object:
        """Return the JSON payload or raise like requests does."""
        if self.payload is None:
            raise ValueError("not json")
        return self.payload


class FakeSession:
    """Serve one response and record URLs."""

    def __init__(self, response: FakeResponse | Exception) -> None:
        """Serve *response* (or raise it)."""
        self.response = response
        self.urls: list[str] = []

    def get(self, url: str, **kwargs: object) -> FakeResponse:
        """Return the canned response."""
        self.urls.append(url)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_sync_status_parses_status_payload() -> None:
    """The sync status is read from result.sync_info and result.node_info."""
    status = SyncStatus.from_status(STATUS)

    assert status.catching_up is False
    assert status.latest_block_height == 1000
    assert status.node_id == "abc123"
    assert status.moniker == "posthuman"
    assert status.to_dict()["network"] == "iliad"


def test_sync_status_requires_catching_up() -> None:
    """Payloads without sync_info.catching_up are rejected."""
    with pytest.raises(RpcError):
        SyncStatus.from_status({"result": {"sync_info": {}}})


def test_node_rpc_queries_local_endpoint() -> None:
    """Requests go to the configured host and port."""
    session = FakeSession(FakeResponse(payload=STATUS))
    rpc = NodeRpc(27657, session=session)  # type: ignore[arg-type]

    assert rpc.sync_status().latest_block_height == 1000
    assert session.urls == ["http://127.0.0.1:27657/status"]


@pytest.mark.parametrize(
    "response",
    [
        requests.ConnectionError("refused"),
        FakeResponse(status_code=500),
        FakeResponse(payload=None),
        FakeResponse(payload=[1, 2, 3]),
    ],
)
def test_node_rpc_errors(response: FakeResponse | Exception) -> None:
    """Transport, HTTP and decoding failures raise RpcError."""
    rpc = NodeRpc(26657, session=FakeSession(response))  # type: ignore[arg-type]

    with pytest.raises(RpcError):
        rpc.status()


def test_rpc_port_from_config(tmp_path: Path) -> None:
    """The RPC port is taken from [rpc] laddr, not [p2p] laddr."""
    config = tmp_path / "config.toml"
    config.write_text(
        '[rpc]\nladdr = "tcp://127.0.0.1:27657"\n\n[p2p]\nladdr = "tcp://0.0.0.0:27656"\n',
        encoding="utf-8",
    )

    assert rpc_port_from_config(config) == 27657


def test_rpc_port_from_missing_config(tmp_path: Path) -> None:
    """A missing config file raises RpcError."""
    with pytest.raises(RpcError, match="not found"):
        rpc_port_from_config(tmp_path / "config.toml")


def test_public_ip() -> None:
    """The echo service body is returned stripped."""
    session = FakeSession(FakeResponse(text="203.0.113.7\n"))

    assert public_ip(session) == "203.0.113.7"  # type: ignore[arg-type]


def test_public_ip_empty_response() -> None:
    """An empty body is an error."""
    with pytest.raises(RpcError):
        public_ip(FakeSession(FakeResponse(text="  ")))  # type: ignore[arg-type]
