"""
ERC-8004 Registration Chain Utilities Module

Functions:
    normalize_hash: Normalize hash strings
    rpc_request: Single JSON-RPC POST over httpx
    resolve_chain_id: Ask an endpoint which chain it serves (retried)

Example:
    >>> from erc8004_register.chain_utils import resolve_chain_id
    >>> resolve_chain_id("https://sepolia.base.org")
    84532
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from .exceptions import NetworkError
from .retry import RetryConfig, retry

logger = logging.getLogger("erc8004.chain")


def normalize_hash(value: Optional[str]) -> str:
    """
    Normalize hash string: lowercase, no 0x prefix.

    Example:
        >>> normalize_hash("0xABC123")
        'abc123'
        >>> normalize_hash(None)
        ''
    """
    if not value:
        return ""
    cleaned = value.lower()
    if cleaned.startswith("0x"):
        cleaned = cleaned[2:]
    return cleaned


def rpc_request(
    rpc_url: str,
    method: str,
    params: Optional[list] = None,
    timeout: float = 10.0,
    client: Optional[httpx.Client] = None,
) -> Any:
    """
    Perform one JSON-RPC call and return its ``result``.

    Args:
        rpc_url: JSON-RPC endpoint
        method: RPC method name
        params: Positional params
        timeout: HTTP timeout (seconds)
        client: Optional httpx client (tests inject a MockTransport here)

    Raises:
        NetworkError: Transport failure, HTTP error status or JSON-RPC error
    """
    body = {"jsonrpc": "2.0", "method": method, "params": params or [], "id": 1}
    try:
        if client is not None:
            response = client.post(rpc_url, json=body, timeout=timeout)
        else:
            response = httpx.post(rpc_url, json=body, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPError as e:
        raise NetworkError(
            f"RPC request {method} failed: {e}", details={"rpc_url": rpc_url}
        ) from e
    except ValueError as e:
        raise NetworkError(
            f"RPC response for {method} is not JSON", details={"rpc_url": rpc_url}
        ) from e

    if not isinstance(payload, dict):
        raise NetworkError(f"Malformed RPC response for {method}", details={"rpc_url": rpc_url})
    if payload.get("error"):
        raise NetworkError(
            f"RPC error for {method}", details={"rpc_url": rpc_url, "error": payload["error"]}
        )
    return payload.get("result")


def resolve_chain_id(
    rpc_url: str,
    timeout: float = 10.0,
    retry_config: Optional[RetryConfig] = None,
    client: Optional[httpx.Client] = None,
) -> int:
    """
    Resolve the chain id served by an RPC endpoint.

    Read-only and idempotent, so transient failures are retried.

    Raises:
        NetworkError: Endpoint unreachable or returned garbage
        RetryExhaustedError: All attempts failed
    """

    @retry(config=retry_config, operation_name="eth_chainId")
    def _probe() -> int:
        result = rpc_request(rpc_url, "eth_chainId", timeout=timeout, client=client)
        if isinstance(result, str) and result.startswith("0x"):
            return int(result, 16)
        raise NetworkError(
            "Unexpected eth_chainId result", details={"rpc_url": rpc_url, "result": result}
        )

    chain_id = _probe()
    logger.debug("Resolved chain id %d from %s", chain_id, rpc_url)
    return chain_id
