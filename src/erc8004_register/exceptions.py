"""
ERC-8004 Registration Exceptions Module

Provides fine-grained exception types so the CLI can report the failing phase
and exit with a status that identifies the error kind.

Exception Hierarchy:
    RegistrationError (Base Class)
    ├── ConfigurationError
    │   ├── InvalidPrivateKeyError
    │   ├── MissingContractAddressError
    │   └── ChainIdMismatchError
    ├── InputError
    │   ├── InvalidDataURIError
    │   └── AlreadyRegisteredError
    ├── NetworkError
    │   └── RetryExhaustedError
    ├── FundsError
    ├── NonceError
    ├── TransactionRejected
    ├── ConfirmationTimeout
    ├── EventDecodeFailure
    └── PersistenceError

Example:
    >>> from erc8004_register.exceptions import FundsError, ConfirmationTimeout
    >>> try:
    ...     client.submit_transaction(registry, "register(string)", [uri])
    ... except FundsError as e:
    ...     print(f"Top up {e.details['address']}")

Note:
    - All exceptions inherit from RegistrationError
    - Each exception has code, details and exit_code attributes
    - EventDecodeFailure is absorbed by the event decoder and never reaches the CLI
"""

from typing import Optional, Any


class RegistrationError(Exception):
    """
    Registration Base Exception.

    Attributes:
        code: Error code string for programmatic handling
        details: Error details, can be any type
        exit_code: Process exit status reported by the CLI

    Args:
        message: Error message
        code: Error code, defaults to "REGISTRATION_ERROR"
        details: Error details

    Example:
        >>> raise RegistrationError("Something went wrong", details={"key": "value"})
    """

    exit_code = 1

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.code = code or "REGISTRATION_ERROR"
        self.details = details

    def __str__(self) -> str:
        """Return formatted error message."""
        if self.details:
            return f"[{self.code}] {super().__str__()} - {self.details}"
        return f"[{self.code}] {super().__str__()}"


# ============ Configuration Exceptions ============


class ConfigurationError(RegistrationError):
    """
    Configuration Error Base Class.

    Raised before any network activity when the secret or network parameters
    are missing or invalid.
    """

    exit_code = 2

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message, "CONFIGURATION_ERROR", details)


class InvalidPrivateKeyError(ConfigurationError):
    """
    Invalid Private Key Error.

    Args:
        reason: Reason for invalidity. Never includes the key itself.

    Example:
        >>> raise InvalidPrivateKeyError("Expected 64 hex characters")
    """

    def __init__(self, reason: str = "Invalid format") -> None:
        super().__init__(f"Private key invalid: {reason}")
        self.code = "INVALID_PRIVATE_KEY"


class MissingContractAddressError(ConfigurationError):
    """
    Missing Contract Address Error.

    Raised when the identity registry address is absent or malformed.

    Args:
        network: Network name the address was resolved for
        address: The offending value, if any
    """

    def __init__(self, network: str, address: Optional[str] = None) -> None:
        super().__init__(
            f"Identity registry address missing or invalid for '{network}'",
            details={"network": network, "address": address}
        )
        self.code = "MISSING_CONTRACT_ADDRESS"


class ChainIdMismatchError(ConfigurationError):
    """
    Chain ID Mismatch Error.

    Raised when the RPC endpoint serves a different chain than configured.

    Args:
        expected: Configured chain id
        actual: Chain id reported by the endpoint
        rpc_url: RPC URL queried
    """

    def __init__(self, expected: int, actual: int, rpc_url: Optional[str] = None) -> None:
        super().__init__(
            f"RPC endpoint serves chain {actual}, expected {expected}",
            details={"expected": expected, "actual": actual, "rpc_url": rpc_url}
        )
        self.code = "CHAIN_ID_MISMATCH"


# ============ Input Exceptions ============


class InputError(RegistrationError):
    """
    Input Error Base Class.

    Raised when the metadata file is missing or is not a JSON object.

    Args:
        message: Error message
        details: Error details
    """

    exit_code = 3

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message, "INPUT_ERROR", details)


class InvalidDataURIError(InputError):
    """
    Invalid Data URI Error.

    Raised when a string is not a well-formed ``data:`` URI.

    Example:
        >>> raise InvalidDataURIError("missing ',' separator")
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid data URI: {reason}")
        self.code = "INVALID_DATA_URI"


class AlreadyRegisteredError(InputError):
    """
    Already Registered Error.

    Raised by the pre-flight guard when the metadata record already carries a
    registration for the target registry. Submitting again would mint a second
    agent.

    Args:
        agent_registry: Registry locator of the existing entry
        agent_id: Identifier stored in the existing entry
    """

    exit_code = 4

    def __init__(self, agent_registry: str, agent_id: Any) -> None:
        super().__init__(
            f"Agent already registered in {agent_registry} (agentId={agent_id})",
            details={"agentRegistry": agent_registry, "agentId": agent_id}
        )
        self.code = "ALREADY_REGISTERED"


# ============ Network Exceptions ============


class NetworkError(RegistrationError):
    """
    Network Request Error Base Class.

    Raised when the RPC endpoint cannot be reached or answers with a
    transport-level failure.

    Args:
        message: Error message
        details: Error details
    """

    exit_code = 10

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message, "NETWORK_ERROR", details)


class RetryExhaustedError(NetworkError):
    """
    Retry Exhausted Error.

    Raised when a read-only operation fails after all retry attempts.

    Attributes:
        last_error: Exception from the last attempt

    Args:
        operation: Operation name
        attempts: Number of attempts
        last_error: Exception from the last attempt
    """

    def __init__(
        self,
        operation: str,
        attempts: int,
        last_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            f"Operation '{operation}' failed after {attempts} attempts",
            details={
                "operation": operation,
                "attempts": attempts,
                "last_error": str(last_error),
            }
        )
        self.code = "RETRY_EXHAUSTED"
        self.last_error = last_error


# ============ Transaction Exceptions ============


class FundsError(RegistrationError):
    """
    Insufficient Funds Error.

    Raised when the signer cannot cover gas for the registration call.

    Args:
        address: Signer address
        reason: Node error message
    """

    exit_code = 11

    def __init__(self, address: Optional[str] = None, reason: Optional[str] = None) -> None:
        super().__init__(
            "Insufficient funds for gas",
            "INSUFFICIENT_FUNDS",
            details={"address": address, "reason": reason}
        )


class NonceError(RegistrationError):
    """
    Nonce Conflict Error.

    Raised when a pending transaction from the same signer conflicts with the
    new one (nonce too low, replacement underpriced, already known).
    """

    exit_code = 12

    def __init__(self, reason: Optional[str] = None, nonce: Optional[int] = None) -> None:
        super().__init__(
            "Conflicting pending transaction",
            "NONCE_CONFLICT",
            details={"nonce": nonce, "reason": reason}
        )


class TransactionRejected(RegistrationError):
    """
    Transaction Rejected Error.

    Raised on a contract-level revert, either during gas estimation or after
    inclusion (receipt status 0).

    Args:
        tx_hash: Transaction hash, if the transaction was broadcast
        reason: Revert reason or node message

    Example:
        >>> raise TransactionRejected(tx_hash="0x123...", reason="execution reverted")
    """

    exit_code = 13

    def __init__(self, tx_hash: Optional[str] = None, reason: Optional[str] = None) -> None:
        super().__init__(
            f"Transaction rejected: {reason or 'unknown reason'}",
            "TRANSACTION_REJECTED",
            details={"tx_hash": tx_hash, "reason": reason}
        )


class ConfirmationTimeout(RegistrationError):
    """
    Confirmation Timeout Error.

    Raised when a submitted transaction is not included within the bound. The
    transaction may still be mined later; nothing is rolled back.

    Args:
        tx_hash: Transaction hash being awaited
        timeout_seconds: Bound that elapsed
    """

    exit_code = 14

    def __init__(self, tx_hash: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Transaction {tx_hash} not confirmed within {timeout_seconds}s",
            "CONFIRMATION_TIMEOUT",
            details={"tx_hash": tx_hash, "timeout": timeout_seconds}
        )


# ============ Decode / Persistence Exceptions ============


class EventDecodeFailure(RegistrationError):
    """
    Event Decode Failure.

    Raised internally when a matched log cannot be decoded. The event decoder
    turns it into an ``Unresolved`` result.
    """

    def __init__(self, reason: str, log_index: Optional[int] = None) -> None:
        super().__init__(
            f"Could not decode Registered event: {reason}",
            "EVENT_DECODE_FAILURE",
            details={"log_index": log_index} if log_index is not None else None
        )


class PersistenceError(RegistrationError):
    """
    Persistence Error.

    Raised when the updated metadata record cannot be written. The previous
    file on disk is left unmodified.

    Args:
        path: Target file path
        reason: Failure reason
    """

    exit_code = 20

    def __init__(self, path: str, reason: Optional[str] = None) -> None:
        super().__init__(
            f"Failed to write '{path}'",
            "PERSISTENCE_ERROR",
            details={"path": path, "reason": reason}
        )
