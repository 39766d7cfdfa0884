"""
Registration configuration.

Network parameters are explicit values handed to the chain client rather than
module globals, so tests can substitute doubles and other networks can be
targeted without code changes.

Environment Variables:
    PRIVATE_KEY: Signer key, 64 hex chars with or without 0x
    NETWORK: Preset name (default "base-sepolia")
    RPC_URL: Override the preset RPC endpoint
    IDENTITY_REGISTRY: Override the preset registry address
    RECEIPT_TIMEOUT: Seconds to wait for inclusion (default 120)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

from eth_utils import is_address, to_checksum_address

from .exceptions import ConfigurationError, InvalidPrivateKeyError, MissingContractAddressError

DEFAULT_METADATA_PATH = "registration.json"
DEFAULT_RECEIPT_TIMEOUT = 120.0


@dataclass(frozen=True)
class NetworkConfig:
    """
    Fixed parameters of one chain + identity registry deployment.

    Attributes:
        name: Preset name
        chain_id: EIP-155 chain id
        rpc_url: JSON-RPC endpoint
        identity_registry: IdentityRegistry contract address
        explorer_url: Block explorer base URL
        scan_slug: Network slug on 8004scan.io, if listed there
    """

    name: str
    chain_id: int
    rpc_url: str
    identity_registry: str
    explorer_url: str
    scan_slug: Optional[str] = None

    @property
    def registry_locator(self) -> str:
        """CAIP-10 style locator stored in ``agentRegistry``."""
        return f"eip155:{self.chain_id}:{self.identity_registry}"

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"

    def agent_url(self, agent_id: int) -> Optional[str]:
        if not self.scan_slug:
            return None
        return f"https://www.8004scan.io/{self.scan_slug}/agent/{agent_id}"


BASE_SEPOLIA = NetworkConfig(
    name="base-sepolia",
    chain_id=84532,
    rpc_url="https://sepolia.base.org",
    identity_registry="0x8004AA63c570c570eBF15376c0dB199918BFe9Fb",
    explorer_url="https://sepolia.basescan.org",
    scan_slug="base-sepolia",
)

BASE_MAINNET = NetworkConfig(
    name="base",
    chain_id=8453,
    rpc_url="https://mainnet.base.org",
    identity_registry="0x8004A169FB4a3325136EB29fA0ceB6D2e539a432",
    explorer_url="https://basescan.org",
    scan_slug="base",
)

NETWORKS: Dict[str, NetworkConfig] = {
    BASE_SEPOLIA.name: BASE_SEPOLIA,
    BASE_MAINNET.name: BASE_MAINNET,
}

DEFAULT_NETWORK = BASE_SEPOLIA.name


@dataclass
class RegistrationSettings:
    """
    Everything one registration run needs.

    Attributes:
        network: Target network
        private_key: Normalized signer key (None only for dry runs)
        metadata_path: Registration JSON file
        output_path: Where the updated record is written (defaults to metadata_path)
        receipt_timeout: Bounded wait for inclusion (seconds)
        force: Register even if the file already has an entry for this registry
        dry_run: Use the offline client instead of the RPC endpoint
        check_network: Verify the endpoint's chain id before submitting
    """

    network: NetworkConfig
    private_key: Optional[str] = None
    metadata_path: str = DEFAULT_METADATA_PATH
    output_path: Optional[str] = None
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT
    force: bool = False
    dry_run: bool = False
    check_network: bool = True

    def __repr__(self) -> str:
        # keep the key out of tracebacks and debug logs
        return (
            f"RegistrationSettings(network={self.network.name!r}, "
            f"metadata_path={self.metadata_path!r}, output_path={self.output_path!r}, "
            f"receipt_timeout={self.receipt_timeout}, "
            f"force={self.force}, dry_run={self.dry_run}, "
            f"private_key={'set' if self.private_key else None})"
        )


def normalize_private_key(value: Optional[str]) -> str:
    """
    Validate a hex private key and return it with a 0x prefix.

    Raises:
        InvalidPrivateKeyError: Missing, wrong length or not hex

    Example:
        >>> normalize_private_key("ab" * 32) == "0x" + "ab" * 32
        True
    """
    if not value or not value.strip():
        raise InvalidPrivateKeyError("PRIVATE_KEY is not set")
    cleaned = value.strip()
    if cleaned[:2].lower() == "0x":
        cleaned = cleaned[2:]
    if len(cleaned) != 64:
        raise InvalidPrivateKeyError(f"expected 64 hex characters, got {len(cleaned)}")
    try:
        bytes.fromhex(cleaned)
    except ValueError:
        raise InvalidPrivateKeyError("not a hex string") from None
    return "0x" + cleaned.lower()


def resolve_network(
    name: Optional[str] = None,
    rpc_url: Optional[str] = None,
    identity_registry: Optional[str] = None,
) -> NetworkConfig:
    """
    Resolve a preset and apply endpoint/registry overrides.

    Raises:
        ConfigurationError: Unknown preset
        MissingContractAddressError: Override is not a valid address
    """
    key = (name or DEFAULT_NETWORK).strip().lower()
    network = NETWORKS.get(key)
    if network is None:
        raise ConfigurationError(
            f"Unknown network '{name}'", details={"known": sorted(NETWORKS)}
        )

    if rpc_url:
        network = replace(network, rpc_url=rpc_url)
    if identity_registry:
        if not is_address(identity_registry):
            raise MissingContractAddressError(network.name, identity_registry)
        network = replace(network, identity_registry=to_checksum_address(identity_registry))
    return network


def parse_timeout(value: Any) -> float:
    """Coerce a receipt timeout to a positive finite float or raise ConfigurationError."""
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid receipt timeout: {value!r}") from None
    if not timeout > 0 or timeout == float("inf"):
        raise ConfigurationError(f"Receipt timeout must be a positive number: {value!r}")
    return timeout


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> RegistrationSettings:
    """
    Build settings from the environment plus explicit overrides.

    Overrides (CLI flags) win over environment variables. ``None`` overrides
    are ignored.

    Args:
        env: Mapping to read instead of os.environ
        **overrides: network, rpc_url, identity_registry, private_key,
            metadata_path, output_path, receipt_timeout, force, dry_run,
            check_network

    Raises:
        ConfigurationError: Any invalid or missing value
    """
    env = os.environ if env is None else env
    opts = {k: v for k, v in overrides.items() if v is not None}

    network = resolve_network(
        opts.get("network") or env.get("NETWORK"),
        rpc_url=opts.get("rpc_url") or env.get("RPC_URL"),
        identity_registry=opts.get("identity_registry") or env.get("IDENTITY_REGISTRY"),
    )

    dry_run = bool(opts.get("dry_run", False))
    raw_key = opts.get("private_key") or env.get("PRIVATE_KEY")
    if dry_run and not raw_key:
        private_key = None
    else:
        private_key = normalize_private_key(raw_key)

    timeout = parse_timeout(
        opts.get("receipt_timeout", env.get("RECEIPT_TIMEOUT", DEFAULT_RECEIPT_TIMEOUT))
    )

    return RegistrationSettings(
        network=network,
        private_key=private_key,
        metadata_path=opts.get("metadata_path", DEFAULT_METADATA_PATH),
        output_path=opts.get("output_path"),
        receipt_timeout=timeout,
        force=bool(opts.get("force", False)),
        dry_run=dry_run,
        check_network=bool(opts.get("check_network", True)),
    )
