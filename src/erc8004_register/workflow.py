"""
Registration workflow.

Runs one registration end to end and reports where it stopped:

    UNREGISTERED -> SUBMITTED -> CONFIRMED -> RESOLVED | UNRESOLVED -> PERSISTED

with ABORTED reachable from every non-terminal state. UNRESOLVED still
persists (with ``agentId: "UNKNOWN"``) and counts as success.

The metadata file is read once before submission and written once at the end,
so aborting at any point (including Ctrl-C) leaves it as it was. A transaction
already broadcast is never rolled back or resent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .chain_client import ChainClient
from .config import DEFAULT_RECEIPT_TIMEOUT, NetworkConfig, parse_timeout
from .contracts import REGISTER_FUNCTION_SIGNATURE
from .encoding import encode_data_uri
from .events import DecodeResult, Resolved, decode_registered_event
from .exceptions import AlreadyRegisteredError, InputError, RegistrationError
from .models import RegistryReference
from .state import StateRecorder, dump_record, find_registration, load_metadata, merge_registration

logger = logging.getLogger("erc8004.workflow")

ProgressCallback = Callable[[str, str], None]


class RegistrationState(str, Enum):
    UNREGISTERED = "unregistered"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"
    PERSISTED = "persisted"
    ABORTED = "aborted"


class Phase:
    PREFLIGHT = "preflight"
    SUBMIT = "submit"
    CONFIRM = "confirm"
    DECODE = "decode"
    PERSIST = "persist"


@dataclass
class RegistrationOutcome:
    """
    Result of one workflow run.

    Attributes:
        network: Network the run targeted
        state: Final state
        history: Every state entered, in order
        phase: Phase that failed (None on success)
        error: The RegistrationError that aborted the run
        tx_hash: Hash of the submitted transaction, if any
        agent_uri: Data URI sent on-chain
        decode_result: Resolved/Unresolved from the receipt
        reference: Registry reference that was persisted
        record: Updated metadata record as written
    """

    network: NetworkConfig
    state: RegistrationState = RegistrationState.UNREGISTERED
    history: List[RegistrationState] = field(
        default_factory=lambda: [RegistrationState.UNREGISTERED]
    )
    phase: Optional[str] = None
    error: Optional[RegistrationError] = None
    tx_hash: Optional[str] = None
    agent_uri: Optional[str] = None
    decode_result: Optional[DecodeResult] = None
    reference: Optional[RegistryReference] = None
    record: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.state is RegistrationState.PERSISTED

    @property
    def exit_code(self) -> int:
        if self.succeeded:
            return 0
        if self.error is not None:
            return self.error.exit_code
        return 1

    @property
    def tx_url(self) -> Optional[str]:
        return self.network.tx_url(self.tx_hash) if self.tx_hash else None


class RegistrationWorkflow:
    """
    Orchestrates encode -> submit -> confirm -> decode -> persist.

    Args:
        client: Chain client used for the two network operations
        network: Network parameters (registry address and locator)
        metadata_path: Registration JSON file
        receipt_timeout: Bounded wait for inclusion (seconds)
        force: Skip the already-registered guard
        output_path: Where to write the updated record (defaults to metadata_path)
        check_network: Call client.verify_network() before submitting
        progress: Optional ``(phase, message)`` callback for user-facing output

    Example:
        >>> workflow = RegistrationWorkflow(client, BASE_SEPOLIA, "registration.json")
        >>> outcome = workflow.run()
        >>> outcome.state
        <RegistrationState.PERSISTED: 'persisted'>
    """

    def __init__(
        self,
        client: ChainClient,
        network: NetworkConfig,
        metadata_path: Any,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
        force: bool = False,
        output_path: Any = None,
        check_network: bool = True,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.client = client
        self.network = network
        self.metadata_path = Path(metadata_path)
        self.receipt_timeout = receipt_timeout
        self.force = force
        self.output_path = Path(output_path) if output_path is not None else self.metadata_path
        self.check_network = check_network
        self._progress = progress

    def run(self) -> RegistrationOutcome:
        """
        Execute the workflow.

        Returns:
            RegistrationOutcome. RegistrationError is never raised; it is
            captured in ``outcome.error`` with the failing ``outcome.phase``.
        """
        outcome = RegistrationOutcome(network=self.network)
        try:
            self._run(outcome)
        except RegistrationError as exc:
            self._abort(outcome, exc)
        return outcome

    def _run(self, outcome: RegistrationOutcome) -> None:
        outcome.phase = Phase.PREFLIGHT
        timeout = parse_timeout(self.receipt_timeout)
        record, raw = load_metadata(self.metadata_path)
        self._guard(record)
        self._check_writable(record)
        if self.check_network:
            self.client.verify_network()

        self._emit(Phase.PREFLIGHT, "Encoding metadata as base64 data URI")
        outcome.agent_uri = encode_data_uri(raw)

        outcome.phase = Phase.SUBMIT
        self._emit(
            Phase.SUBMIT,
            f"Registering agent on {self.network.name} from {self.client.signer_address}",
        )
        outcome.tx_hash = self.client.submit_transaction(
            self.network.identity_registry,
            REGISTER_FUNCTION_SIGNATURE,
            [outcome.agent_uri],
        )
        self._transition(outcome, RegistrationState.SUBMITTED)

        outcome.phase = Phase.CONFIRM
        self._emit(Phase.CONFIRM, f"Waiting for confirmation of {outcome.tx_hash}")
        receipt = self.client.wait_for_receipt(outcome.tx_hash, timeout)
        self._transition(outcome, RegistrationState.CONFIRMED)

        outcome.phase = Phase.DECODE
        result = decode_registered_event(receipt.logs, self.network.identity_registry)
        outcome.decode_result = result
        if isinstance(result, Resolved):
            self._check_event(result, outcome)
            outcome.reference = RegistryReference(
                agent_id=result.agent_id, agent_registry=self.network.registry_locator
            )
            self._transition(outcome, RegistrationState.RESOLVED)
        else:
            logger.warning("agentId not resolved: %s", result.reason)
            outcome.reference = RegistryReference.unresolved(self.network.registry_locator)
            self._transition(outcome, RegistrationState.UNRESOLVED)

        outcome.phase = Phase.PERSIST
        outcome.record = StateRecorder(self.output_path).record(record, outcome.reference)
        self._transition(outcome, RegistrationState.PERSISTED)
        outcome.phase = None

    def _guard(self, record: Dict[str, Any]) -> None:
        existing = find_registration(record, self.network.registry_locator)
        if existing is None:
            return
        if not self.force:
            raise AlreadyRegisteredError(self.network.registry_locator, existing.get("agentId"))
        logger.warning(
            "Forcing new registration despite existing entry agentId=%s",
            existing.get("agentId"),
        )

    def _check_writable(self, record: Dict[str, Any]) -> None:
        # same serialization as the final write, checked before anything is sent
        placeholder = RegistryReference.unresolved(self.network.registry_locator)
        try:
            dump_record(merge_registration(record, placeholder))
        except (TypeError, ValueError) as e:
            raise InputError(
                f"Metadata file cannot be written back as UTF-8 JSON: {self.metadata_path}",
                details={"reason": str(e)},
            ) from e

    def _check_event(self, result: Resolved, outcome: RegistrationOutcome) -> None:
        event = result.event
        signer = self.client.signer_address
        if signer and event.owner.lower() != signer.lower():
            logger.warning("Registered owner %s differs from signer %s", event.owner, signer)
        if event.agent_uri != outcome.agent_uri:
            logger.warning("Registered agentURI differs from the submitted URI")

    def _transition(self, outcome: RegistrationOutcome, state: RegistrationState) -> None:
        logger.debug("%s -> %s", outcome.state.value, state.value)
        outcome.state = state
        outcome.history.append(state)

    def _abort(self, outcome: RegistrationOutcome, exc: RegistrationError) -> None:
        logger.error("Registration aborted during %s: %s", outcome.phase, exc)
        outcome.error = exc
        self._transition(outcome, RegistrationState.ABORTED)

    def _emit(self, phase: str, message: str) -> None:
        logger.info(message)
        if self._progress is not None:
            self._progress(phase, message)
