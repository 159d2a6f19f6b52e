"""Subprocess wrappers around the ``story`` and ``geth`` client binaries.

Both binaries are opaque to storyctl: commands are invoked with explicit
arguments and their line-oriented output is reduced to the few fields the
orchestrator needs (a public key, a block number, an enode URL).
"""
from __future__ import annotations

import re
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

_EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_SECRET_FLAGS = {"--private-key"}


class ClientCommandError(RuntimeError):
    """Raised when a client binary exits unsuccessfully."""

    def __init__(self, command: Sequence[str], returncode: int, message: str) -> None:
        """Record the (redacted) *command* and its exit status."""
        self.command = _redact(command)
        self.returncode = returncode
        super().__init__(f"{' '.join(self.command)} exited {returncode}: {message}")


def _redact(args: Sequence[str]) -> list[str]:
    redacted: list[str] = []
    hide_next = False
    for arg in args:
        if hide_next:
            redacted.append("***")
            hide_next = False
            continue
        redacted.append(str(arg))
        hide_next = str(arg) in _SECRET_FLAGS
    return redacted


def parse_labelled_output(text: str) -> dict[str, str]:
    """Parse ``Label: value`` lines into a mapping."""
    fields: dict[str, str] = {}
    for line in text.splitlines():
        label, sep, value = line.partition(":")
        if not sep:
            continue
        label = label.strip()
        value = value.strip()
        if label and value:
            fields[label] = value
    return fields


def validate_evm_address(address: str) -> str:
    """Return *address* when it is a 20-byte hex EVM address."""
    candidate = address.strip()
    if not _EVM_ADDRESS_RE.match(candidate):
        raise ValueError(f"Invalid EVM address: {address!r}")
    return candidate


@dataclass(frozen=True, slots=True)
class ValidatorKey:
    """Fields reported by ``story validator export``."""

    fields: Mapping[str, str]

    @property
    def compressed_pubkey_base64(self) -> str | None:
        """Return the compressed base64 public key used for staking."""
        for label, value in self.fields.items():
            if "compressed public key (base64)" in label.lower():
                return value
        return None

    @property
    def evm_address(self) -> str | None:
        """Return the validator's EVM address when reported."""
        for label, value in self.fields.items():
            if "evm address" in label.lower():
                return value
        return None


class _ClientBinary:
    def __init__(self, binary: Path) -> None:
        self.binary = binary

    def _run(self, args: Sequence[str]) -> str:
        command = [str(self.binary), *args]
        try:
            result = subprocess.run(  # noqa: S603 - controlled command execution
                command,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ClientCommandError(command, 127, f"binary not found: {exc}") from exc
        if result.returncode != 0:
            message = (result.stderr or result.stdout or "no output").strip()
            raise ClientCommandError(command, result.returncode, message)
        return result.stdout or ""


class StoryClient(_ClientBinary):
    """Consensus client CLI."""

    def __init__(self, binary: Path, *, home: Path | None = None) -> None:
        """Use *binary*; pass ``--home`` when *home* is given."""
        super().__init__(binary)
        self.home = home

    def _home_args(self) -> list[str]:
        return ["--home", str(self.home)] if self.home is not None else []

    def version(self) -> str:
        """Return the raw ``story version`` output."""
        return self._run(["version"]).strip()

    def init(self, *, moniker: str, network: str) -> str:
        """Initialise the node home for *network*."""
        return self._run(["init", "--moniker", moniker, "--network", network, *self._home_args()])

    def export_validator_key(self) -> ValidatorKey:
        """Return the validator public key details."""
        output = self._run(["validator", "export", *self._home_args()])
        return ValidatorKey(fields=parse_labelled_output(output))

    def export_evm_key(self) -> str:
        """Write ``private_key.txt`` into the config directory."""
        return self._run(["validator", "export", "--export-evm-key", *self._home_args()])

    def create_validator(self, *, stake: int, private_key: str) -> str:
        """Register the validator with an initial *stake* (wei)."""
        return self._run(
            ["validator", "create", "--stake", str(stake), "--private-key", private_key]
        )

    def stake(self, *, validator_pubkey: str, amount: int, private_key: str) -> str:
        """Delegate *amount* (wei) to the validator."""
        return self._run(
            [
                "validator",
                "stake",
                "--validator-pubkey",
                validator_pubkey,
                "--stake",
                str(amount),
                "--private-key",
                private_key,
            ]
        )

    def unstake(self, *, validator_pubkey: str, amount: int, private_key: str) -> str:
        """Withdraw *amount* (wei) of stake from the validator."""
        return self._run(
            [
                "validator",
                "unstake",
                "--validator-pubkey",
                validator_pubkey,
                "--unstake",
                str(amount),
                "--private-key",
                private_key,
            ]
        )

    def add_operator(self, *, operator: str, private_key: str) -> str:
        """Authorise *operator* to act for the validator."""
        return self._run(
            [
                "validator",
                "add-operator",
                "--operator",
                validate_evm_address(operator),
                "--private-key",
                private_key,
            ]
        )

    def set_withdrawal_address(self, *, address: str, private_key: str) -> str:
        """Change where withdrawn stake and rewards are sent."""
        return self._run(
            [
                "validator",
                "set-withdrawal-address",
                "--withdrawal-address",
                validate_evm_address(address),
                "--private-key",
                private_key,
            ]
        )


class GethClient(_ClientBinary):
    """Execution client queried through ``geth attach``."""

    def __init__(self, binary: Path, *, ipc_path: Path) -> None:
        """Attach to *ipc_path* for every query."""
        super().__init__(binary)
        self.ipc_path = ipc_path

    def version(self) -> str:
        """Return the raw ``geth version`` output."""
        return self._run(["version"]).strip()

    def attach_exec(self, expression: str) -> str:
        """Evaluate a console *expression* against the running node."""
        return self._run(["--exec", expression, "attach", str(self.ipc_path)]).strip()

    def block_number(self) -> int:
        """Return the latest block number."""
        output = self.attach_exec("eth.blockNumber")
        try:
            return int(output.splitlines()[-1].strip())
        except (IndexError, ValueError) as exc:
            raise ClientCommandError(
                ["geth", "attach", "eth.blockNumber"], 0, f"unexpected output {output!r}"
            ) from exc

    def peers(self) -> str:
        """Return the connected peer list."""
        return self.attach_exec("admin.peers")

    def syncing(self) -> str:
        """Return ``eth.syncing`` (``false`` once in sync)."""
        return self.attach_exec("eth.syncing")

    def gas_price(self) -> str:
        """Return the current gas price in wei."""
        return self.attach_exec("eth.gasPrice")

    def balance(self, address: str) -> str:
        """Return the balance of *address* in wei."""
        return self.attach_exec(f"eth.getBalance('{validate_evm_address(address)}')")

    def enode(self) -> str:
        """Return this node's enode URL."""
        return self.attach_exec("admin.nodeInfo.enode").strip('"')


__all__ = [
    "ClientCommandError",
    "GethClient",
    "StoryClient",
    "ValidatorKey",
    "parse_labelled_output",
    "validate_evm_address",
]
