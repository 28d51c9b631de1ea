# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import httpx
from eth_account import Account
from opentelemetry import trace

from .chain import ChainClient
from .config import MonadConfig, NetworkConfig, UnsupportedNetworkError, resolve_network
from .encoding import decode_payment_response, encode_header
from .types import (
    SCHEME,
    X402_VERSION,
    X_PAYMENT_HEADER,
    X_PAYMENT_RESPONSE_HEADER,
    PaymentPayload,
    PaymentResponse,
)

logger = logging.getLogger(__name__)


class PaymentError(RuntimeError):
    pass


@dataclass
class BuyerConfig:
    private_key: str
    base_url: str = ""
    config: MonadConfig = field(default_factory=MonadConfig)


@dataclass(frozen=True)
class PaymentInfo:
    transaction_hash: Optional[str]
    amount: str
    recipient: str
    settled: bool


@dataclass
class PaidResponse:
    response: httpx.Response
    payment_info: Optional[PaymentInfo] = None


def decode_x_payment_response(header: Optional[str]) -> Optional[PaymentResponse]:
    return decode_payment_response(header)


def _first_accept(r: httpx.Response) -> Dict[str, Any]:
    try:
        body = r.json()
    except ValueError as e:
        raise PaymentError("402 response body is not JSON") from e
    accepts = body.get("accepts") if isinstance(body, dict) else None
    if not accepts or not isinstance(accepts, list) or not isinstance(accepts[0], dict):
        raise PaymentError("402 response missing 'accepts'")
    return accepts[0]


class BuyerClient:
    """HTTP client that pays x402 challenges with a native MON transfer.

    One method per HTTP verb, all routed through :meth:`request`. A 402
    answer is paid once and the request retried with an X-PAYMENT header.
    """

    def __init__(
        self,
        cfg: BuyerConfig,
        http: Optional[httpx.AsyncClient] = None,
        chain_factory: Optional[Callable[[NetworkConfig], ChainClient]] = None,
    ):
        if not cfg.private_key:
            raise ValueError("private_key is required")
        self.cfg = cfg
        self.account = Account.from_key(cfg.private_key)
        self.address = self.account.address
        self.http = http or httpx.AsyncClient(base_url=cfg.base_url, timeout=30.0)
        self._chain_factory = chain_factory or ChainClient
        self._tracer = trace.get_tracer("monad_x402.buyer")

    async def aclose(self) -> None:
        await self.http.aclose()

    def _signed_payment(self, accept: Dict[str, Any]) -> PaymentPayload:
        recipient = accept.get("payTo") or accept.get("paymentAddress")
        amount = accept.get("maxAmountRequired") or accept.get("price")
        network = accept.get("network")
        scheme = accept.get("scheme") or "exact"
        if not recipient or not amount:
            raise PaymentError("402 requirements missing recipient or amount")
        if not network:
            raise PaymentError("402 requirements missing network")
        if scheme != SCHEME:
            raise PaymentError(f"Unsupported payment scheme: {scheme}")
        network_id = resolve_network(network)
        try:
            network_cfg = self.cfg.config.network(network_id)
        except UnsupportedNetworkError as e:
            raise PaymentError(str(e)) from e

        chain = self._chain_factory(network_cfg)
        tx = chain.build_transfer_transaction(self.address, recipient, int(amount))
        signed = chain.sign_transaction(tx, self.cfg.private_key)
        logger.info(f"[BUYER] Signed transfer of {amount} wei to {recipient} on {network_id}")
        return PaymentPayload(
            x402Version=X402_VERSION,
            scheme=SCHEME,
            network=network_id,
            payload={"signedTransaction": signed},
        )

    async def request(self, method: str, url: str, **kwargs: Any) -> PaidResponse:
        with self._tracer.start_as_current_span("x402.request") as span:
            span.set_attribute("http.method", method)
            span.set_attribute("http.url", url)
            r = await self.http.request(method, url, **kwargs)
            if r.status_code != 402:
                span.set_attribute("x402.paid", False)
                return PaidResponse(response=r)

            accept = _first_accept(r)
            payload = await asyncio.to_thread(self._signed_payment, accept)
            headers = dict(kwargs.pop("headers", None) or {})
            headers[X_PAYMENT_HEADER] = encode_header(payload)
            paid = await self.http.request(method, url, headers=headers, **kwargs)
            span.set_attribute("x402.paid", True)

            info: Optional[PaymentInfo] = None
            decoded = decode_x_payment_response(paid.headers.get(X_PAYMENT_RESPONSE_HEADER))
            if decoded is not None:
                settlement = decoded.settlement
                info = PaymentInfo(
                    transaction_hash=settlement.txHash,
                    amount=str(accept.get("maxAmountRequired") or accept.get("price")),
                    recipient=str(accept.get("payTo") or accept.get("paymentAddress")),
                    settled=settlement.success,
                )
                logger.info(f"[BUYER] Paid {info.amount} wei, tx={info.transaction_hash}")
            else:
                logger.warning(f"[BUYER] Paid request to {url} returned {paid.status_code} without settlement proof")
            return PaidResponse(response=paid, payment_info=info)

    async def get(self, url: str, **kwargs: Any) -> PaidResponse:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> PaidResponse:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> PaidResponse:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> PaidResponse:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> PaidResponse:
        return await self.request("DELETE", url, **kwargs)

    async def head(self, url: str, **kwargs: Any) -> PaidResponse:
        return await self.request("HEAD", url, **kwargs)

    async def options(self, url: str, **kwargs: Any) -> PaidResponse:
        return await self.request("OPTIONS", url, **kwargs)
