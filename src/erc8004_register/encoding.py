"""
Agent metadata encoding.

Turns the raw bytes of a registration file into a self-contained RFC 2397
``data:`` URI so the metadata lives on-chain with no external storage.

Example:
    >>> encode_data_uri(b'{"name":"A"}')
    'data:application/json;base64,eyJuYW1lIjoiQSJ9'
    >>> decode_data_uri('data:application/json;base64,eyJuYW1lIjoiQSJ9')
    b'{"name":"A"}'
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Any, Dict
from urllib.parse import unquote_to_bytes

from .exceptions import InvalidDataURIError
from .utils import canonical_json

JSON_CONTENT_TYPE = "application/json"
DEFAULT_CONTENT_TYPE = "text/plain;charset=US-ASCII"
_SCHEME = "data:"
_BASE64_MARKER = ";base64"


@dataclass(frozen=True)
class DataURI:
    """Parsed data URI: declared media type plus the decoded payload."""

    content_type: str
    data: bytes


def encode_data_uri(data: bytes, content_type: str = JSON_CONTENT_TYPE) -> str:
    """
    Encode bytes as a base64 data URI.

    The bytes are embedded as-is, so the on-chain URI reproduces the file
    exactly (formatting and key order included).

    Args:
        data: Already-serialized metadata bytes
        content_type: Declared media type

    Returns:
        ``data:<content_type>;base64,<payload>``
    """
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError("data must be bytes")
    payload = base64.b64encode(bytes(data)).decode("ascii")
    return f"{_SCHEME}{content_type}{_BASE64_MARKER},{payload}"


def encode_metadata(record: Dict[str, Any]) -> str:
    """Encode a metadata record as canonical JSON in a data URI."""
    return encode_data_uri(canonical_json(record))


def parse_data_uri(uri: str) -> DataURI:
    """
    Parse a data URI.

    Supports both ``;base64`` and percent-encoded payloads.

    Raises:
        InvalidDataURIError: Not a data URI, or the payload does not decode
    """
    if not isinstance(uri, str) or uri[:len(_SCHEME)].lower() != _SCHEME:
        raise InvalidDataURIError("expected 'data:' scheme")

    header, sep, payload = uri[len(_SCHEME):].partition(",")
    if not sep:
        raise InvalidDataURIError("missing ',' separator")

    if header.lower().endswith(_BASE64_MARKER):
        content_type = header[: -len(_BASE64_MARKER)]
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidDataURIError(f"bad base64 payload ({exc})") from exc
    else:
        content_type = header
        data = unquote_to_bytes(payload)

    return DataURI(content_type=content_type or DEFAULT_CONTENT_TYPE, data=data)


def decode_data_uri(uri: str) -> bytes:
    """Return the exact bytes carried by a data URI."""
    return parse_data_uri(uri).data
