# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from .result import Fault, Invalid, Ok, Result
from .types import (
    X402_VERSION,
    X_SETTLEMENT_TIME_HEADER,
    X_VERIFICATION_TIME_HEADER,
    PaymentRequirements,
    SettleResponse,
    VerifyResponse,
)

logger = logging.getLogger(__name__)


def _is_json(r: httpx.Response) -> bool:
    return (r.headers.get("content-type") or "").split(";", 1)[0].strip().lower() == "application/json"


class FacilitatorClient:
    def __init__(self, base_url: str, timeout_s: float = 30.0, http: Optional[httpx.AsyncClient] = None):
        if not base_url:
            raise ValueError("base_url required")
        base = base_url.rstrip("/")
        self.verify_url = f"{base}/verify"
        self.settle_url = f"{base}/settle"
        self.http = http or httpx.AsyncClient(timeout=timeout_s, follow_redirects=True)

    async def aclose(self) -> None:
        await self.http.aclose()

    def _body(self, payment_header: str, requirements: PaymentRequirements) -> Dict[str, Any]:
        return {
            "x402Version": X402_VERSION,
            "paymentHeader": payment_header,
            "paymentRequirements": requirements.model_dump(exclude_none=True),
        }

    async def _post(self, url: str, body: Dict[str, Any]) -> httpx.Response:
        r = await self.http.post(url, json=body)
        if not _is_json(r):
            raise httpx.HTTPError(f"invalid content-type from {url} (status {r.status_code})")
        return r

    async def verify(self, payment_header: str, requirements: PaymentRequirements) -> Result[VerifyResponse]:
        try:
            r = await self._post(self.verify_url, self._body(payment_header, requirements))
            data = VerifyResponse.model_validate(r.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error(f"[x402] Facilitator verify call failed: {e}")
            return Fault(str(e) or e.__class__.__name__)
        if not data.isValid:
            return Invalid(data.invalidReason or "Payment verification failed", status_code=403)
        return Ok(data, meta=_timing(r, X_VERIFICATION_TIME_HEADER))

    async def settle(self, payment_header: str, requirements: PaymentRequirements) -> Result[SettleResponse]:
        try:
            r = await self._post(self.settle_url, self._body(payment_header, requirements))
            data = SettleResponse.model_validate(r.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error(f"[x402] Facilitator settle call failed: {e}")
            return Fault(str(e) or e.__class__.__name__)
        if not data.success:
            reason = data.error or "Settlement failed"
            if r.status_code == 409:
                return Invalid(reason, status_code=409, conflict=True)
            return Invalid(reason, status_code=402)
        return Ok(data, meta=_timing(r, X_SETTLEMENT_TIME_HEADER))


def _timing(r: httpx.Response, header: str) -> Dict[str, str]:
    value = r.headers.get(header)
    return {header: value} if value else {}
