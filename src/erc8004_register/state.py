"""
Metadata record persistence.

Reads the agent's registration file once, merges the on-chain reference into
its ``registrations`` list and writes it back with an atomic replace, so a
crash mid-write can never leave a truncated file behind.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from .exceptions import InputError, PersistenceError
from .models import RegistryReference

logger = logging.getLogger("erc8004.state")

PathLike = Union[str, "os.PathLike[str]"]


def load_metadata(path: PathLike) -> Tuple[Dict[str, Any], bytes]:
    """
    Read a registration file.

    Returns:
        (record, raw_bytes). The raw bytes are what gets encoded on-chain.

    Raises:
        InputError: File missing/unreadable, not JSON, not a JSON object,
            or ``registrations`` present but not a list
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        raise InputError(f"Metadata file not found: {path}", details={"path": str(path)}) from None
    except OSError as e:
        raise InputError(f"Cannot read metadata file: {path}", details={"reason": str(e)}) from e

    try:
        record = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise InputError(f"Metadata file is not valid JSON: {path}", details={"reason": str(e)}) from e

    if not isinstance(record, dict):
        raise InputError(
            f"Metadata file must contain a JSON object: {path}",
            details={"type": type(record).__name__},
        )
    registrations = record.get("registrations")
    if registrations is not None and not isinstance(registrations, list):
        raise InputError(
            "'registrations' must be a list", details={"type": type(registrations).__name__}
        )
    return record, raw


def find_registration(record: Dict[str, Any], agent_registry: str) -> Optional[Dict[str, Any]]:
    """Return the entry for ``agent_registry`` (case-insensitive), if any."""
    wanted = agent_registry.lower()
    for entry in record.get("registrations") or []:
        if isinstance(entry, dict) and str(entry.get("agentRegistry", "")).lower() == wanted:
            return entry
    return None


def merge_registration(record: Dict[str, Any], reference: RegistryReference) -> Dict[str, Any]:
    """
    Return a copy of ``record`` whose ``registrations`` holds exactly one entry
    for the reference's registry.

    Entries for other registries keep their order; a prior entry for the same
    registry is replaced. Calling this again with the same reference yields the
    same result.
    """
    wanted = reference.agent_registry.lower()
    kept = [
        entry
        for entry in record.get("registrations") or []
        if not (isinstance(entry, dict) and str(entry.get("agentRegistry", "")).lower() == wanted)
    ]
    updated = dict(record)
    updated["registrations"] = kept + [reference.to_dict()]
    return updated


def dump_record(record: Dict[str, Any]) -> bytes:
    return (json.dumps(record, indent=2, ensure_ascii=False) + "\n").encode("utf-8")


def write_json_atomic(path: PathLike, record: Dict[str, Any]) -> None:
    """
    Write ``record`` to ``path`` via a temp file in the same directory and
    ``os.replace``.

    Raises:
        PersistenceError: Serialization or any filesystem step failed. The
            original file is untouched and the temp file is removed.
    """
    path = Path(path)
    try:
        payload = dump_record(record)
    except (TypeError, ValueError) as e:
        raise PersistenceError(str(path), f"record is not JSON-serializable: {e}") from e

    tmp_name = None
    try:
        mode = stat.S_IMODE(path.stat().st_mode) if path.exists() else None
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
        )
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        if mode is not None:
            os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise PersistenceError(str(path), str(e)) from e
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                logger.warning("Could not remove temp file %s", tmp_name)

    logger.debug("Wrote %d bytes to %s", len(payload), path)


class StateRecorder:
    """
    Merges a RegistryReference into the metadata record and persists it.

    Args:
        path: Registration file to update

    Example:
        >>> recorder = StateRecorder("registration.json")
        >>> updated = recorder.record(record, RegistryReference(42, network.registry_locator))
    """

    def __init__(self, path: PathLike) -> None:
        self.path = Path(path)

    def record(self, record: Dict[str, Any], reference: RegistryReference) -> Dict[str, Any]:
        """
        Merge and write atomically.

        Returns:
            The updated record as written

        Raises:
            PersistenceError: Write failed; the previous file is unchanged
        """
        updated = merge_registration(record, reference)
        write_json_atomic(self.path, updated)
        logger.info(
            "Recorded agentId=%s for %s in %s",
            reference.agent_id,
            reference.agent_registry,
            self.path,
        )
        return updated
