"""
Data types passed between the chain client, event decoder and state recorder.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .utils import to_hex_str

UNKNOWN_AGENT_ID = "UNKNOWN"
"""Stored as ``agentId`` when the Registered event could not be resolved."""

AgentId = Union[int, str]


@dataclass(frozen=True)
class LogEntry:
    """One emitted event log, with hex-string fields."""

    address: str
    topics: Tuple[str, ...]
    data: str = "0x"
    log_index: Optional[int] = None

    @classmethod
    def from_mapping(cls, log: Mapping[str, Any]) -> "LogEntry":
        """Build from a web3 / JSON-RPC log (bytes or hex fields)."""
        data = log.get("data") or "0x"
        log_index = log.get("logIndex")
        if isinstance(log_index, str):
            log_index = int(log_index, 16)
        return cls(
            address=str(log.get("address") or ""),
            topics=tuple(to_hex_str(t) for t in (log.get("topics") or [])),
            data=to_hex_str(data),
            log_index=log_index,
        )


@dataclass(frozen=True)
class SubmissionReceipt:
    """Inclusion proof for a submitted transaction."""

    transaction_hash: str
    status: int
    block_number: Optional[int] = None
    logs: Tuple[LogEntry, ...] = field(default_factory=tuple)

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @classmethod
    def from_mapping(cls, receipt: Mapping[str, Any]) -> "SubmissionReceipt":
        """Build from a web3 receipt (AttributeDict) or raw JSON-RPC receipt."""
        status = receipt.get("status", 1)
        if isinstance(status, str):
            status = int(status, 16)
        block = receipt.get("blockNumber")
        if isinstance(block, str):
            block = int(block, 16)
        return cls(
            transaction_hash=to_hex_str(receipt.get("transactionHash") or ""),
            status=int(status),
            block_number=block,
            logs=tuple(LogEntry.from_mapping(log) for log in receipt.get("logs") or []),
        )


@dataclass(frozen=True)
class RegistrationEvent:
    """Decoded ``Registered(agentId, agentURI, owner)`` event."""

    agent_id: int
    agent_uri: str
    owner: str
    log_index: Optional[int] = None


@dataclass(frozen=True)
class RegistryReference:
    """
    Pointer from the local metadata record to its on-chain registration.

    Attributes:
        agent_id: Assigned identifier, or UNKNOWN_AGENT_ID
        agent_registry: ``eip155:<chainId>:<contractAddress>``
    """

    agent_id: AgentId
    agent_registry: str

    @property
    def is_resolved(self) -> bool:
        return isinstance(self.agent_id, int) and not isinstance(self.agent_id, bool)

    @classmethod
    def unresolved(cls, agent_registry: str) -> "RegistryReference":
        return cls(agent_id=UNKNOWN_AGENT_ID, agent_registry=agent_registry)

    def to_dict(self) -> Dict[str, Any]:
        return {"agentId": self.agent_id, "agentRegistry": self.agent_registry}
