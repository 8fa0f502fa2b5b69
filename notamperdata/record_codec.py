"""
notamperdata SDK - Record Codec

Immutable records live in Cardano transaction metadata under a single
reserved label. Writers and readers share RECORD_LABEL; anything filed
under another label is not a record.

On-chain layout (JSON metadata, label 8434):

    {
        "hash": "<64 lowercase hex>",
        "subject_id": "<form id>",
        "instance_id": "<response id>",
        "observed_at": 1700000000000,
        "schema_version": "1.0"
    }
"""

import re
import string
from typing import Any, Dict

from .anchor_types import ImmutableRecord
from .errors import SchemaError, DecodeError


RECORD_LABEL = 8434
HASH_LENGTH = 64

# Cardano caps metadata text values at 64 bytes
MAX_TEXT_BYTES = 64

_HEX = frozenset(string.hexdigits.lower())

_TEXT_FIELDS = ("subject_id", "instance_id", "schema_version")

_INTEGER = re.compile(r"-?[0-9]+")


def validate_hash(value: Any) -> str:
    """
    Check a digest against the record hash invariant.

    Args:
        value: Candidate digest

    Returns:
        The digest, unchanged

    Raises:
        SchemaError: wrong type, length, or non-lowercase-hex characters
    """
    if not isinstance(value, str):
        raise SchemaError(f"hash must be a string, got {type(value).__name__}")
    if len(value) != HASH_LENGTH:
        raise SchemaError(f"hash must be {HASH_LENGTH} hex chars, got {len(value)}")
    if not set(value) <= _HEX:
        raise SchemaError("hash must be lowercase hex")
    return value


def _check_text(name: str, value: Any):
    if not isinstance(value, str) or not value:
        raise SchemaError(f"{name} must be a non-empty string")
    if len(value.encode("utf-8")) > MAX_TEXT_BYTES:
        raise SchemaError(f"{name} exceeds {MAX_TEXT_BYTES} bytes")


def encode_payload(record: ImmutableRecord) -> Dict[str, Any]:
    """
    Encode record as the metadata object stored under RECORD_LABEL.

    Raises:
        SchemaError: record violates the schema
    """
    validate_hash(record.hash)
    for attr in _TEXT_FIELDS:
        _check_text(attr, getattr(record, attr))

    observed = record.observed_at_millis
    if isinstance(observed, bool) or not isinstance(observed, int):
        raise SchemaError("observed_at_millis must be an integer")

    return {
        "hash": record.hash,
        "subject_id": record.subject_id,
        "instance_id": record.instance_id,
        "observed_at": observed,
        "schema_version": record.schema_version
    }


def encode(record: ImmutableRecord) -> Dict[int, Dict[str, Any]]:
    """Encode record as full transaction metadata: {RECORD_LABEL: payload}."""
    return {RECORD_LABEL: encode_payload(record)}


def is_candidate(label: Any) -> bool:
    """True if a metadata entry under this label may hold a record."""
    try:
        return int(label) == RECORD_LABEL
    except (TypeError, ValueError):
        return False


def _parse_timestamp(value: Any) -> int:
    # Blockfrost returns metadata integers as JSON numbers, older
    # indexers as strings
    if isinstance(value, bool):
        raise DecodeError("observed_at is not an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER.fullmatch(value):
        return int(value)
    raise DecodeError("observed_at is not an integer")


def decode(payload: Any) -> ImmutableRecord:
    """
    Decode the metadata object stored under RECORD_LABEL.

    Accepts the record itself or the full metadata from encode()
    ({RECORD_LABEL: record}, label as int or as JSON string key).
    Unknown keys are ignored so newer schema versions stay readable.

    Raises:
        DecodeError: payload is not a record
    """
    if isinstance(payload, dict) and "hash" not in payload:
        for label in (RECORD_LABEL, str(RECORD_LABEL)):
            if label in payload:
                payload = payload[label]
                break

    if not isinstance(payload, dict):
        raise DecodeError(f"record payload must be a mapping, got {type(payload).__name__}")

    missing = [k for k in ("hash", "subject_id", "instance_id", "observed_at", "schema_version")
               if k not in payload]
    if missing:
        raise DecodeError(f"record missing fields: {missing}")

    digest = payload["hash"]
    if isinstance(digest, str):
        digest = digest.lower()
    try:
        validate_hash(digest)
        for key in _TEXT_FIELDS:
            if not isinstance(payload[key], str) or not payload[key]:
                raise SchemaError(f"{key} must be a non-empty string")
    except SchemaError as e:
        raise DecodeError(str(e)) from e

    return ImmutableRecord(
        hash=digest,
        subject_id=payload["subject_id"],
        instance_id=payload["instance_id"],
        observed_at_millis=_parse_timestamp(payload["observed_at"]),
        schema_version=payload["schema_version"]
    )
