"""Header transport encoding: JSON serialized, then standard base64."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from ...domain.entities import SettlementResponse
from ...domain.errors import MalformedPayload

ModelT = TypeVar("ModelT", bound=BaseModel)


def json_to_bytes(data: dict) -> bytes:
    """Serialize dict to compact JSON bytes."""
    return json.dumps(data, separators=(",", ":")).encode("utf-8")


def encode_header(model: BaseModel) -> str:
    """Encode a model as base64(JSON) for use in an HTTP header."""
    return base64.b64encode(json_to_bytes(model.model_dump(mode="json"))).decode(
        "ascii"
    )


def decode_header(value: str, model_cls: Type[ModelT]) -> ModelT:
    """Decode a base64(JSON) header value into ``model_cls``.

    Raises:
        MalformedPayload: If the value is not base64, not UTF-8 JSON, or does
            not match the model schema.
    """
    try:
        raw = base64.b64decode(value.strip(), validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise MalformedPayload(f"Header is not base64-encoded JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedPayload("Header JSON must be an object")
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise MalformedPayload(f"Invalid {model_cls.__name__}: {e}") from e


def encode_settlement_response(signature: str) -> str:
    """Value of the payment-response header for a settled payment."""
    return encode_header(SettlementResponse(success=True, transaction=signature))
