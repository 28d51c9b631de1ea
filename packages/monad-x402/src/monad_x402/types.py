# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import MONAD_MAINNET, MONAD_TESTNET, NETWORK_PREFIX, resolve_network

X402_VERSION = 1
SCHEME = "evm-transfer"

X_PAYMENT_HEADER = "X-PAYMENT"
X_PAYMENT_RESPONSE_HEADER = "X-Payment-Response"
X_VERIFICATION_TIME_HEADER = "X-Verification-Time"
X_SETTLEMENT_TIME_HEADER = "X-Settlement-Time"

__all__ = [
    "X402_VERSION",
    "SCHEME",
    "MONAD_TESTNET",
    "MONAD_MAINNET",
    "NETWORK_PREFIX",
    "X_PAYMENT_HEADER",
    "X_PAYMENT_RESPONSE_HEADER",
    "X_VERIFICATION_TIME_HEADER",
    "X_SETTLEMENT_TIME_HEADER",
    "PaymentRequirements",
    "PaymentPayload",
    "PaymentRequiredResponse",
    "VerifyRequest",
    "SettleRequest",
    "VerifyResponse",
    "SettleResponse",
    "PaymentResponse",
    "RouteConfig",
    "build_requirements",
]


# -------------------------------
# Wire models
# -------------------------------


class PaymentRequirements(BaseModel):
    model_config = ConfigDict(frozen=True)

    scheme: str
    network: str
    maxAmountRequired: str = Field(..., description="Exact amount in wei, as a decimal string")
    resource: str
    description: str = ""
    mimeType: str = "application/json"
    outputSchema: Optional[Dict[str, Any]] = None
    payTo: str
    maxTimeoutSeconds: int = 60
    extra: Optional[Dict[str, Any]] = None


class PaymentPayload(BaseModel):
    """Decoded X-PAYMENT header.

    Fields are optional so that a structurally incomplete payload can still be
    decoded and rejected with a specific reason by the validation pipeline.
    """

    x402Version: Optional[int] = None
    scheme: Optional[str] = None
    network: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)

    @property
    def signed_transaction(self) -> Optional[str]:
        value = self.payload.get("signedTransaction")
        return value if isinstance(value, str) and value else None


class PaymentRequiredResponse(BaseModel):
    x402Version: int = X402_VERSION
    accepts: List[PaymentRequirements]
    error: Optional[str] = None


class VerifyRequest(BaseModel):
    x402Version: Optional[int] = Field(None, description="x402 API version")
    paymentHeader: Optional[str] = Field(None, description="Raw base64 X-PAYMENT header value")
    paymentRequirements: Optional[PaymentRequirements] = None


class SettleRequest(VerifyRequest):
    pass


class VerifyResponse(BaseModel):
    isValid: bool
    invalidReason: Optional[str] = None


class SettleResponse(BaseModel):
    success: bool
    error: Optional[str] = None
    txHash: Optional[str] = None
    networkId: Optional[str] = None


class PaymentResponse(BaseModel):
    settlement: SettleResponse


# -------------------------------
# Route configuration
# -------------------------------


@dataclass(frozen=True)
class RouteConfig:
    price: str
    network: Optional[str] = None
    description: str = ""
    mime_type: str = "application/json"
    max_timeout_seconds: int = 60
    output_schema: Optional[Dict[str, Any]] = None


def build_requirements(
    route: RouteConfig,
    recipient: str,
    request_url: str,
    *,
    default_network: str = "testnet",
    extra: Optional[Dict[str, Any]] = None,
) -> PaymentRequirements:
    return PaymentRequirements(
        scheme=SCHEME,
        network=resolve_network(route.network or default_network),
        maxAmountRequired=str(route.price),
        resource=request_url,
        description=route.description,
        mimeType=route.mime_type,
        outputSchema=route.output_schema,
        payTo=recipient,
        maxTimeoutSeconds=route.max_timeout_seconds,
        extra=extra,
    )
