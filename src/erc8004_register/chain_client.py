"""
ERC-8004 Chain Client

Abstraction over the two network operations a registration needs:

- submit_transaction: sign and broadcast a state-changing contract call
- wait_for_receipt: bounded wait for inclusion

Implementations:
- Web3ChainClient: EVM JSON-RPC via web3.py and eth-account
- DummyChainClient: offline client for dry runs and tests

Submissions are never retried here. A failed or ambiguous ``register`` call
is reported to the caller, because resending can mint a second agent.
"""

from __future__ import annotations

import itertools
import logging
import math
from typing import Any, Dict, List, Optional, Sequence

import httpx
from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from .chain_utils import resolve_chain_id
from .config import NetworkConfig
from .contracts import IDENTITY_REGISTRY_ABI
from .events import encode_registered_log
from .exceptions import (
    ChainIdMismatchError,
    ConfigurationError,
    ConfirmationTimeout,
    FundsError,
    InvalidPrivateKeyError,
    NetworkError,
    NonceError,
    RegistrationError,
    TransactionRejected,
)
from .models import SubmissionReceipt
from .retry import RetryConfig
from .utils import keccak256_hex, to_hex_str

logger = logging.getLogger("erc8004.chain")

_FUNDS_KEYWORDS = ("insufficient funds", "exceeds balance", "gas required exceeds allowance")
_NONCE_KEYWORDS = (
    "nonce too low",
    "nonce too high",
    "replacement transaction underpriced",
    "already known",
    "known transaction",
)
_NETWORK_KEYWORDS = ("timeout", "timed out", "connection", "network", "unavailable", "max retries")


def _check_timeout(timeout: float) -> float:
    if timeout is None or not timeout > 0 or math.isinf(timeout):
        raise ValueError(f"timeout must be a positive finite number, got {timeout!r}")
    return float(timeout)


def classify_send_error(
    exc: Exception,
    address: Optional[str] = None,
    nonce: Optional[int] = None,
) -> RegistrationError:
    """
    Map a web3 / transport exception raised while building, signing or
    sending a transaction onto the registration error taxonomy.

    Args:
        exc: Exception raised by web3.py or the HTTP transport
        address: Signer address, for FundsError details
        nonce: Nonce used, for NonceError details

    Returns:
        The RegistrationError to raise in its place
    """
    if isinstance(exc, RegistrationError):
        return exc

    message = str(exc)
    lowered = message.lower()

    if any(kw in lowered for kw in _FUNDS_KEYWORDS):
        return FundsError(address=address, reason=message)
    if any(kw in lowered for kw in _NONCE_KEYWORDS):
        return NonceError(reason=message, nonce=nonce)
    if isinstance(exc, ContractLogicError) or "revert" in lowered:
        return TransactionRejected(reason=message)
    if isinstance(exc, (ConnectionError, OSError)) or any(
        kw in lowered for kw in _NETWORK_KEYWORDS
    ):
        return NetworkError(message)
    return TransactionRejected(reason=message)


class ChainClient:
    """
    Chain Client Abstract Base Class.

    Defines the interface the registration workflow depends on.
    """

    @property
    def signer_address(self) -> str:
        raise NotImplementedError

    def verify_network(self) -> Optional[int]:
        """Pre-flight check of the endpoint; returns its chain id if known."""
        return None

    def submit_transaction(self, target: str, function_signature: str, args: Sequence[Any]) -> str:
        """
        Sign and broadcast a state-changing contract call.

        Args:
            target: Contract address
            function_signature: Canonical signature, e.g. "register(string)"
            args: Call arguments

        Returns:
            Transaction hash (0x hex)

        Raises:
            NetworkError: Endpoint unreachable
            FundsError: Signer cannot cover gas
            NonceError: Conflicting pending transaction
            TransactionRejected: Contract-level revert
        """
        raise NotImplementedError

    def wait_for_receipt(self, tx_hash: str, timeout: float) -> SubmissionReceipt:
        """
        Block until the transaction is included or ``timeout`` seconds pass.

        Raises:
            ConfirmationTimeout: Not included within the bound
            TransactionRejected: Included but reverted
            NetworkError: Transport failure while polling
        """
        raise NotImplementedError


class Web3ChainClient(ChainClient):
    """
    EVM chain client backed by web3.py.

    Args:
        network: Target network parameters
        private_key: 0x-prefixed hex signing key
        w3: Pre-built Web3 instance (defaults to an HTTPProvider on network.rpc_url)
        abi: Contract ABI containing the called functions
        poll_latency: Seconds between receipt polls
        request_timeout: HTTP timeout per RPC request
        retry_config: Retry policy for read-only probes
        http_client: httpx client for the chain id probe

    Example:
        >>> client = Web3ChainClient(BASE_SEPOLIA, private_key="0x...")
        >>> tx_hash = client.submit_transaction(
        ...     BASE_SEPOLIA.identity_registry, "register(string)", [agent_uri]
        ... )
        >>> receipt = client.wait_for_receipt(tx_hash, timeout=120)
    """

    def __init__(
        self,
        network: NetworkConfig,
        private_key: str,
        w3: Optional[Any] = None,
        abi: Optional[List[Dict[str, Any]]] = None,
        poll_latency: float = 2.0,
        request_timeout: float = 30.0,
        retry_config: Optional[RetryConfig] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.network = network
        self.abi = abi or IDENTITY_REGISTRY_ABI
        self.poll_latency = poll_latency
        self.retry_config = retry_config
        self._http_client = http_client
        try:
            self.account = Account.from_key(private_key)
        except Exception as e:
            raise InvalidPrivateKeyError("not a valid secp256k1 key") from e
        self.w3 = w3 or Web3(
            Web3.HTTPProvider(network.rpc_url, request_kwargs={"timeout": request_timeout})
        )

    @property
    def signer_address(self) -> str:
        return self.account.address

    def verify_network(self) -> int:
        """
        Check that the endpoint serves the configured chain.

        Returns:
            The chain id reported by the endpoint

        Raises:
            ChainIdMismatchError: Endpoint serves another chain
            NetworkError: Endpoint unreachable
        """
        chain_id = resolve_chain_id(
            self.network.rpc_url,
            retry_config=self.retry_config,
            client=self._http_client,
        )
        if chain_id != self.network.chain_id:
            raise ChainIdMismatchError(self.network.chain_id, chain_id, self.network.rpc_url)
        return chain_id

    def submit_transaction(self, target: str, function_signature: str, args: Sequence[Any]) -> str:
        try:
            contract_address = Web3.to_checksum_address(target)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid contract address: {target!r}", details={"contract": target}
            ) from e
        contract = self.w3.eth.contract(address=contract_address, abi=self.abi)
        try:
            function = contract.get_function_by_signature(function_signature)
        except ValueError as e:
            raise ConfigurationError(
                f"Function '{function_signature}' not in contract ABI",
                details={"contract": target},
            ) from e

        address = self.account.address
        nonce = None
        logger.debug(
            "Sending tx: contract=%s, function=%s, args_count=%d",
            target,
            function_signature,
            len(args),
        )
        try:
            nonce = self.w3.eth.get_transaction_count(address, "pending")
            tx = function(*args).build_transaction({
                "from": address,
                "nonce": nonce,
                "chainId": self.network.chain_id,
            })
            signed = self.account.sign_transaction(tx)
            raw = getattr(signed, "raw_transaction", None) or signed.rawTransaction
            tx_hash = self.w3.eth.send_raw_transaction(raw)
        except Exception as e:
            raise classify_send_error(e, address=address, nonce=nonce) from e

        tx_hash = to_hex_str(tx_hash)
        logger.info("Transaction sent: %s (nonce=%s)", tx_hash, nonce)
        return tx_hash

    def wait_for_receipt(self, tx_hash: str, timeout: float) -> SubmissionReceipt:
        timeout = _check_timeout(timeout)
        logger.debug("Waiting up to %.1fs for %s", timeout, tx_hash)
        try:
            raw = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout, poll_latency=self.poll_latency
            )
        except TimeExhausted as e:
            raise ConfirmationTimeout(tx_hash, timeout) from e
        except Exception as e:
            raise NetworkError(
                f"Failed while waiting for receipt: {e}", details={"tx_hash": tx_hash}
            ) from e

        receipt = SubmissionReceipt.from_mapping(raw)
        if not receipt.succeeded:
            raise TransactionRejected(tx_hash=tx_hash, reason="reverted on-chain")
        logger.info(
            "Transaction %s included in block %s with %d log(s)",
            tx_hash,
            receipt.block_number,
            len(receipt.logs),
        )
        return receipt


class DummyChainClient(ChainClient):
    """
    Offline client for dry runs and tests.

    Returns deterministic transaction hashes and receipts carrying a
    well-formed Registered log, without touching any network.

    Args:
        network: Network whose registry address appears in emitted logs
        owner: Address reported as signer and event owner
        first_agent_id: Identifier assigned to the first registration
    """

    def __init__(
        self,
        network: NetworkConfig,
        owner: str = "0x000000000000000000000000000000000000dEaD",
        first_agent_id: int = 1,
    ) -> None:
        self.network = network
        self._owner = owner
        self._agent_ids = itertools.count(first_agent_id)
        self._counter = itertools.count()
        self.submissions: List[Dict[str, Any]] = []
        self._pending: Dict[str, Dict[str, Any]] = {}

    @property
    def signer_address(self) -> str:
        return self._owner

    def verify_network(self) -> int:
        return self.network.chain_id

    def submit_transaction(self, target: str, function_signature: str, args: Sequence[Any]) -> str:
        seq = next(self._counter)
        tx_hash = keccak256_hex(f"{target}|{function_signature}|{list(args)}|{seq}".encode("utf-8"))
        entry = {"target": target, "function": function_signature, "args": list(args), "tx_hash": tx_hash}
        self.submissions.append(entry)
        self._pending[tx_hash] = entry
        logger.debug("Dummy tx %s for %s", tx_hash, function_signature)
        return tx_hash

    def wait_for_receipt(self, tx_hash: str, timeout: float) -> SubmissionReceipt:
        timeout = _check_timeout(timeout)
        entry = self._pending.pop(tx_hash, None)
        if entry is None:
            raise ConfirmationTimeout(tx_hash, timeout)

        logs = ()
        if entry["function"].startswith("register(") and entry["args"]:
            logs = (
                encode_registered_log(
                    entry["target"],
                    next(self._agent_ids),
                    str(entry["args"][0]),
                    self._owner,
                    log_index=0,
                ),
            )
        return SubmissionReceipt(transaction_hash=tx_hash, status=1, block_number=1, logs=logs)
