"""
ERC-8004 Agent Registration

Registers an agent on an ERC-8004 IdentityRegistry, supporting:
- On-chain metadata as a base64 data URI (no external storage)
- Registered event decoding to recover the agentId
- Atomic, idempotent update of the registration file

Quick Start:
    >>> from erc8004_register import BASE_SEPOLIA, RegistrationWorkflow, Web3ChainClient
    >>> client = Web3ChainClient(BASE_SEPOLIA, private_key="0x...")
    >>> outcome = RegistrationWorkflow(client, BASE_SEPOLIA, "registration.json").run()
    >>> outcome.reference.to_dict()
    {'agentId': 42, 'agentRegistry': 'eip155:84532:0x8004AA63c570c570eBF15376c0dB199918BFe9Fb'}
"""

from .chain_client import ChainClient, DummyChainClient, Web3ChainClient, classify_send_error
from .config import (
    BASE_MAINNET,
    BASE_SEPOLIA,
    NETWORKS,
    NetworkConfig,
    RegistrationSettings,
    load_settings,
    normalize_private_key,
    resolve_network,
)
from .encoding import DataURI, decode_data_uri, encode_data_uri, encode_metadata, parse_data_uri
from .events import DecodeResult, Resolved, Unresolved, decode_registered_event
from .exceptions import (
    RegistrationError,
    ConfigurationError,
    InvalidPrivateKeyError,
    MissingContractAddressError,
    ChainIdMismatchError,
    InputError,
    InvalidDataURIError,
    AlreadyRegisteredError,
    NetworkError,
    RetryExhaustedError,
    FundsError,
    NonceError,
    TransactionRejected,
    ConfirmationTimeout,
    EventDecodeFailure,
    PersistenceError,
)
from .models import UNKNOWN_AGENT_ID, LogEntry, RegistrationEvent, RegistryReference, SubmissionReceipt
from .retry import DEFAULT_RETRY_CONFIG, NO_RETRY_CONFIG, RetryConfig, retry
from .state import StateRecorder, load_metadata, merge_registration, write_json_atomic
from .workflow import RegistrationOutcome, RegistrationState, RegistrationWorkflow

__version__ = "0.1.0"

__all__ = [
    # Workflow
    "RegistrationWorkflow",
    "RegistrationOutcome",
    "RegistrationState",
    # Chain clients
    "ChainClient",
    "Web3ChainClient",
    "DummyChainClient",
    "classify_send_error",
    # Configuration
    "NetworkConfig",
    "RegistrationSettings",
    "BASE_SEPOLIA",
    "BASE_MAINNET",
    "NETWORKS",
    "load_settings",
    "normalize_private_key",
    "resolve_network",
    # Encoding
    "DataURI",
    "encode_data_uri",
    "encode_metadata",
    "parse_data_uri",
    "decode_data_uri",
    # Events
    "DecodeResult",
    "Resolved",
    "Unresolved",
    "decode_registered_event",
    # Models
    "UNKNOWN_AGENT_ID",
    "LogEntry",
    "RegistrationEvent",
    "RegistryReference",
    "SubmissionReceipt",
    # State
    "StateRecorder",
    "load_metadata",
    "merge_registration",
    "write_json_atomic",
    # Retry
    "RetryConfig",
    "DEFAULT_RETRY_CONFIG",
    "NO_RETRY_CONFIG",
    "retry",
    # Exceptions
    "RegistrationError",
    "ConfigurationError",
    "InvalidPrivateKeyError",
    "MissingContractAddressError",
    "ChainIdMismatchError",
    "InputError",
    "InvalidDataURIError",
    "AlreadyRegisteredError",
    "NetworkError",
    "RetryExhaustedError",
    "FundsError",
    "NonceError",
    "TransactionRejected",
    "ConfirmationTimeout",
    "EventDecodeFailure",
    "PersistenceError",
]
