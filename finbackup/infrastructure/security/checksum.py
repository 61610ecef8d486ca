from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, BinaryIO

from finbackup.domain.constants import DEFAULT_CHECKSUM_ALGO
from finbackup.domain.errors import UnsupportedChecksumAlgorithm


def is_supported_algo(algo: object) -> bool:
    # shake_* digests need an explicit length and are not usable here.
    if not isinstance(algo, str) or not algo or algo.startswith("shake_"):
        return False
    try:
        hashlib.new(algo)
    except (ValueError, TypeError):
        return False
    return True


def _dump(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)


def record_sort_key(record: Any) -> tuple[int, float, str, str]:
    """
    Order records by id: missing ids first, then numbers, then strings.

    Records sharing an id are ordered by their canonical JSON.
    """
    tiebreak = _dump(record)
    record_id = record.get("id") if isinstance(record, Mapping) else None
    if record_id is None:
        return (0, 0.0, "", tiebreak)
    if isinstance(record_id, (int, float)) and not isinstance(record_id, bool):
        return (1, float(record_id), "", tiebreak)
    return (2, 0.0, str(record_id), tiebreak)


def canonicalize(data: Mapping[Any, Any]) -> bytes:
    """
    Serialize a backup data payload deterministically.

    Kind names are sorted, records inside each kind are sorted by id and every
    record is dumped with sorted keys, so logically identical payloads yield
    identical bytes whatever their in-memory ordering.
    """
    ordered: dict[str, Any] = {}
    for kind, records in data.items():
        if isinstance(records, list):
            ordered[str(kind)] = sorted(records, key=record_sort_key)
        else:
            ordered[str(kind)] = records
    return _dump(ordered).encode("utf-8")


def digest(payload: bytes, algo: str = DEFAULT_CHECKSUM_ALGO) -> str:
    if not is_supported_algo(algo):
        raise UnsupportedChecksumAlgorithm(str(algo))
    h = hashlib.new(algo)
    h.update(payload)
    return h.hexdigest()


def compute_checksum(data: Mapping[Any, Any], algo: str = DEFAULT_CHECKSUM_ALGO) -> str:
    return digest(canonicalize(data), algo)


def file_digest(path: Path, algo: str = DEFAULT_CHECKSUM_ALGO, chunk_size: int = 8192) -> str:
    if not is_supported_algo(algo):
        raise UnsupportedChecksumAlgorithm(str(algo))
    h = hashlib.new(algo)
    with path.open("rb") as f:
        _update_hash_stream(h, f, chunk_size)
    return h.hexdigest()


def _update_hash_stream(h, stream: BinaryIO, chunk_size: int) -> None:
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        h.update(chunk)
