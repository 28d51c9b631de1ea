# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .types import PaymentPayload, PaymentResponse, SettleResponse

MAX_HEADER_BYTES = 16384


class DecodeError(ValueError):
    pass


class Base64DecodeError(DecodeError):
    pass


class PayloadJSONError(DecodeError):
    pass


def _b64_json(obj: Dict[str, Any]) -> str:
    s = json.dumps(obj, separators=(",", ":"))
    return base64.b64encode(s.encode("utf-8")).decode("ascii")


def _b64_json_decode(raw: str) -> Any:
    if len(raw) > MAX_HEADER_BYTES:
        raise Base64DecodeError("X-PAYMENT header too large")
    try:
        decoded = base64.b64decode(raw.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise Base64DecodeError("Invalid base64 encoding in X-PAYMENT header") from e
    try:
        return json.loads(decoded.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise PayloadJSONError("Invalid JSON in payment payload") from e


def encode_header(payload: PaymentPayload) -> str:
    return _b64_json(payload.model_dump(exclude_none=True))


def decode_header(raw: str) -> PaymentPayload:
    """Decode an X-PAYMENT header value.

    Raises Base64DecodeError or PayloadJSONError; callers turn these into an
    invalid-payment reason instead of a fault.
    """
    data = _b64_json_decode(raw or "")
    if not isinstance(data, dict):
        raise PayloadJSONError("Invalid JSON in payment payload")
    try:
        return PaymentPayload.model_validate(data)
    except ValidationError as e:
        raise PayloadJSONError(f"Invalid JSON in payment payload: {e.errors()[0]['msg']}") from e


def encode_payment_response(settlement: SettleResponse) -> str:
    return _b64_json(PaymentResponse(settlement=settlement).model_dump())


def decode_payment_response(raw: Optional[str]) -> Optional[PaymentResponse]:
    if not raw:
        return None
    try:
        data = json.loads(base64.b64decode(raw, validate=True).decode("utf-8"))
        return PaymentResponse.model_validate(data)
    except (binascii.Error, ValueError, ValidationError):
        return None
