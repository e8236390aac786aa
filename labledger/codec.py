"""Record codec: experiment records to and from store blobs.

Blobs are compact UTF-8 JSON objects keyed by field name, so readers
tolerate fields they do not know about. ``status`` is the only field
with a decode-time default.

The envelope helpers are a placeholder. They tag and base64-encode the
payload so it reads as opaque, and provide no confidentiality. Swap
``wrap_payload``/``unwrap_payload`` for a real scheme without touching
the registry.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

from pydantic import ValidationError

from labledger.exceptions import DecodeError
from labledger.models.experiment import ExperimentRecord

ENVELOPE_TAG = "FHE-"


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def wrap_payload(payload: dict[str, Any]) -> str:
    body = base64.b64encode(_compact_json(payload).encode("utf-8")).decode("ascii")
    return f"{ENVELOPE_TAG}{body}"


def unwrap_payload(envelope: str) -> dict[str, Any]:
    if not envelope.startswith(ENVELOPE_TAG):
        raise DecodeError("payload is not wrapped in an envelope")
    try:
        raw = base64.b64decode(envelope[len(ENVELOPE_TAG) :], validate=True)
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError(f"envelope body is undecodable: {exc}") from exc
    if not isinstance(payload, dict):
        raise DecodeError("envelope body is not an object")
    return payload


def encode(record: ExperimentRecord) -> bytes:
    return record.model_dump_json(by_alias=True).encode("utf-8")


def decode(blob: bytes, record_id: str) -> ExperimentRecord:
    """Decode one record blob read from the key derived from *record_id*.

    Raises DecodeError for an empty, non-UTF-8, non-JSON or non-object
    blob, a missing required field, or an unknown status.
    """
    if not blob:
        raise DecodeError(f"record {record_id} is empty")
    try:
        data = json.loads(blob.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError(f"record {record_id} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise DecodeError(f"record {record_id} is not a JSON object")

    data.pop("id", None)
    if data.get("status") is None:
        data.pop("status", None)
    try:
        return ExperimentRecord.model_validate({"id": record_id, **data})
    except ValidationError as exc:
        missing = [".".join(str(p) for p in e["loc"]) for e in exc.errors()]
        raise DecodeError(f"record {record_id} has invalid fields: {', '.join(missing)}") from exc
