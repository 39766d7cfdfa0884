"""
Registered event decoding.

Finds the identity registry's ``Registered`` log in a receipt and decodes it
into a typed result. A missing or undecodable event is an expected outcome
(``Unresolved``), not an exception: the transaction is already mined and the
agentId can be looked up manually.

Example:
    >>> result = decode_registered_event(receipt.logs, registry_address)
    >>> if result.resolved:
    ...     print(result.agent_id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from eth_abi import decode, encode
from eth_utils import to_checksum_address

from .chain_utils import normalize_hash
from .contracts import REGISTERED_TOPIC
from .exceptions import EventDecodeFailure
from .models import LogEntry, RegistrationEvent

logger = logging.getLogger("erc8004.events")


@dataclass(frozen=True)
class Resolved:
    """The Registered event was found and decoded."""

    event: RegistrationEvent
    resolved = True

    @property
    def agent_id(self) -> int:
        return self.event.agent_id


@dataclass(frozen=True)
class Unresolved:
    """No usable Registered event; ``reason`` says why."""

    reason: str
    resolved = False

    @property
    def agent_id(self) -> None:
        return None


DecodeResult = Union[Resolved, Unresolved]


def _word(topic: str, what: str) -> bytes:
    try:
        raw = bytes.fromhex(normalize_hash(topic))
    except ValueError as exc:
        raise EventDecodeFailure(f"{what} topic is not hex") from exc
    if len(raw) != 32:
        raise EventDecodeFailure(f"{what} topic is {len(raw)} bytes, expected 32")
    return raw


def _matches(log: LogEntry, contract_address: str, topic: str) -> bool:
    if log.address.lower() != contract_address.lower():
        return False
    return bool(log.topics) and log.topics[0].lower() == topic.lower()


def decode_log(log: LogEntry) -> RegistrationEvent:
    """
    Decode one Registered log.

    Layout: topics[1] = agentId (uint256), topics[2] = owner (address),
    data = ABI-encoded agentURI (string).

    Raises:
        EventDecodeFailure: Missing topics or malformed data
    """
    if len(log.topics) < 3:
        raise EventDecodeFailure(
            f"expected 3 topics, got {len(log.topics)}", log_index=log.log_index
        )

    agent_id = int.from_bytes(_word(log.topics[1], "agentId"), "big")
    owner_word = _word(log.topics[2], "owner")
    if any(owner_word[:12]):
        raise EventDecodeFailure("owner topic is not a padded address", log_index=log.log_index)
    owner = to_checksum_address(owner_word[12:])

    try:
        (agent_uri,) = decode(["string"], bytes.fromhex(normalize_hash(log.data)))
    except Exception as exc:
        raise EventDecodeFailure(f"agentURI data: {exc}", log_index=log.log_index) from exc

    return RegistrationEvent(
        agent_id=agent_id, agent_uri=agent_uri, owner=owner, log_index=log.log_index
    )


def decode_registered_event(
    logs: Iterable[LogEntry],
    contract_address: str,
    topic: str = REGISTERED_TOPIC,
) -> DecodeResult:
    """
    Extract the Registered event emitted by ``contract_address``.

    Logs from other contracts or with other topics are skipped. Only the first
    matching log is considered.

    Args:
        logs: Receipt logs in emission order
        contract_address: Identity registry address
        topic: Event topic0

    Returns:
        Resolved(event) or Unresolved(reason). Never raises for bad log data.
    """
    scanned = 0
    for log in logs:
        scanned += 1
        if not isinstance(log, LogEntry):
            try:
                log = LogEntry.from_mapping(log)
            except (AttributeError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed log entry: %s", exc)
                continue
        if not _matches(log, contract_address, topic):
            continue
        try:
            event = decode_log(log)
        except EventDecodeFailure as exc:
            logger.warning("Registered log found but not decodable: %s", exc)
            return Unresolved(reason=str(exc))
        logger.debug("Decoded Registered event: agentId=%d", event.agent_id)
        return Resolved(event=event)

    return Unresolved(
        reason=f"no Registered event from {contract_address} in {scanned} log(s)"
    )


def encode_registered_log(
    contract_address: str,
    agent_id: int,
    agent_uri: str,
    owner: str,
    log_index: Optional[int] = None,
) -> LogEntry:
    """
    Build the log the registry emits for ``register``.

    Used by the offline client and by tests.
    """
    owner_word = bytes.fromhex(normalize_hash(owner)).rjust(32, b"\x00")
    return LogEntry(
        address=contract_address,
        topics=(
            REGISTERED_TOPIC,
            "0x" + agent_id.to_bytes(32, "big").hex(),
            "0x" + owner_word.hex(),
        ),
        data="0x" + encode(["string"], [agent_uri]).hex(),
        log_index=log_index,
    )
