# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""Starlette middleware that gates routes behind an x402 payment.

Three variants share one per-request flow:

* ``PaymentMiddleware``: every configured route requires payment.
* ``BotProtectionMiddleware``: only requests classified as bots pay.
* ``AICrawlerMiddleware``: only AI crawlers pay.

Flow: no X-PAYMENT -> 402 with requirements; X-PAYMENT -> facilitator
verify (403 on rejection) -> facilitator settle (402, or 409 on replay) ->
forward to the handler with an X-Payment-Response header.

Example:
    app.add_middleware(
        PaymentMiddleware,
        pay_to="0x...",
        routes={"/api/premium/*": RouteConfig(price="1000000000000000")},
    )
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .bots import classify, classify_ai_crawler, matches_allow_list
from .encoding import DecodeError, decode_header, encode_payment_response
from .facilitator_client import FacilitatorClient
from .result import Fault, Invalid
from .types import (
    SCHEME,
    X402_VERSION,
    X_PAYMENT_HEADER,
    X_PAYMENT_RESPONSE_HEADER,
    PaymentRequiredResponse,
    PaymentRequirements,
    RouteConfig,
    build_requirements,
)

logger = logging.getLogger(__name__)

CONFIG_ERROR = "Server configuration error: Payment recipient not configured"
BOT_PAYMENT_MESSAGE = "This website requires payment for bot access. Please pay to proceed."
AI_CRAWLER_PAYMENT_MESSAGE = "This content requires payment for AI training/crawling. Please pay to access."
SEO_BOTS = ["Googlebot", "Bingbot", "Yahoo", "DuckDuckBot"]


def default_facilitator_url() -> str:
    return os.getenv("FACILITATOR_URL", "http://localhost:8000/api/facilitator")


def _error(status_code: int, error: str, message: Optional[str] = None) -> JSONResponse:
    content = {"error": error}
    if message is not None:
        content["message"] = message
    return JSONResponse(status_code=status_code, content=content)


class _PaymentGate(BaseHTTPMiddleware):
    """Challenge, verify, settle, forward. Holds no per-request state."""

    def __init__(self, app: Any, facilitator: Optional[FacilitatorClient] = None, facilitator_url: Optional[str] = None):
        super().__init__(app)
        self.facilitator = facilitator or FacilitatorClient(facilitator_url or default_facilitator_url())

    def _payment_required(
        self,
        requirements: PaymentRequirements,
        body_extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> JSONResponse:
        body = PaymentRequiredResponse(accepts=[requirements]).model_dump(exclude_none=True)
        body.update(body_extra or {})
        return JSONResponse(status_code=402, content=body, headers=headers)

    async def _collect(
        self,
        request: Request,
        call_next: Callable,
        requirements: PaymentRequirements,
        *,
        body_extra: Optional[Dict[str, Any]] = None,
        challenge_headers: Optional[Dict[str, str]] = None,
        paid_headers: Optional[Dict[str, str]] = None,
    ) -> Response:
        path = request.url.path
        x_payment = request.headers.get(X_PAYMENT_HEADER)
        if not x_payment:
            logger.info(f"[x402] No payment header, returning 402 for {request.method} {path}")
            return self._payment_required(requirements, body_extra, challenge_headers)

        try:
            payload = decode_header(x_payment)
        except DecodeError as e:
            return _error(400, "Invalid payment header", str(e))
        if payload.x402Version != X402_VERSION:
            return _error(400, "Unsupported x402 version", f"Expected {X402_VERSION}, got {payload.x402Version}")
        if payload.scheme != SCHEME:
            return _error(400, "Unsupported payment scheme", f"Expected {SCHEME}, got {payload.scheme}")

        try:
            verified = await self.facilitator.verify(x_payment, requirements)
            if isinstance(verified, Fault):
                return _error(500, "Payment processing failed", verified.error)
            if isinstance(verified, Invalid):
                logger.info(f"[x402] Payment rejected for {path}: {verified.reason}")
                return _error(403, "Payment verification failed", verified.reason)

            settled = await self.facilitator.settle(x_payment, requirements)
            if isinstance(settled, Fault):
                return _error(500, "Payment processing failed", settled.error)
            if isinstance(settled, Invalid):
                logger.info(f"[x402] Settlement failed for {path}: {settled.reason}")
                return _error(409 if settled.conflict else 402, "Payment settlement failed", settled.reason)
        except Exception as e:
            logger.exception(f"[x402] Payment processing error for {path}")
            return _error(500, "Payment processing failed", str(e))

        settlement = settled.value
        logger.info(f"[x402] Payment settled tx={settlement.txHash} network={settlement.networkId} path={path}")
        response = await call_next(request)
        response.headers[X_PAYMENT_RESPONSE_HEADER] = encode_payment_response(settlement)
        for meta in (verified.meta, settled.meta):
            for name, value in meta.items():
                response.headers[name] = value
        for name, value in (paid_headers or {}).items():
            response.headers[name] = value
        if paid_headers is not None and settlement.txHash:
            response.headers["X-Transaction-Hash"] = settlement.txHash
        return response


# -------------------------------
# Payment-only gating
# -------------------------------


def _route_key(key: str) -> str:
    if key.endswith("/*"):
        return key
    return key.rstrip("/") or "/"


def _match_route(routes: Mapping[str, RouteConfig], path: str) -> Optional[RouteConfig]:
    normalized = path.rstrip("/") or "/"
    if normalized in routes:
        return routes[normalized]
    for key, cfg in routes.items():
        if key.endswith("/*") and (normalized + "/").startswith(key[:-1]):
            return cfg
    return None


class PaymentMiddleware(_PaymentGate):
    def __init__(
        self,
        app: Any,
        pay_to: str,
        routes: Mapping[str, RouteConfig],
        facilitator: Optional[FacilitatorClient] = None,
        facilitator_url: Optional[str] = None,
        default_network: str = "testnet",
    ):
        super().__init__(app, facilitator=facilitator, facilitator_url=facilitator_url)
        self.pay_to = pay_to
        self.routes = {_route_key(k): v for k, v in routes.items()}
        self.default_network = default_network

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        route = _match_route(self.routes, request.url.path)
        if route is None:
            return await call_next(request)
        if not self.pay_to:
            logger.error("[x402] Payment recipient not configured")
            return _error(500, CONFIG_ERROR)
        requirements = build_requirements(
            route, self.pay_to, str(request.url), default_network=self.default_network
        )
        return await self._collect(request, call_next, requirements)


def payment_middleware(
    pay_to: str,
    routes: Mapping[str, RouteConfig],
    facilitator: Optional[FacilitatorClient] = None,
    facilitator_url: Optional[str] = None,
    default_network: str = "testnet",
) -> type:
    """Bind PaymentMiddleware arguments for ``app.add_middleware(...)``."""

    class BoundPaymentMiddleware(PaymentMiddleware):
        def __init__(self, app: Any, **kwargs):
            super().__init__(
                app,
                pay_to=pay_to,
                routes=routes,
                facilitator=facilitator,
                facilitator_url=facilitator_url,
                default_network=default_network,
            )

    return BoundPaymentMiddleware


# -------------------------------
# Bot / AI crawler gating
# -------------------------------


@dataclass
class BotProtectionConfig:
    price: str
    recipient_address: str
    enabled: bool = True
    network: str = "testnet"
    facilitator_url: Optional[str] = None
    allowed_bots: List[str] = field(default_factory=list)
    description: str = "Bot access fee"
    strict_mode: bool = False
    paths: Optional[Sequence[str]] = None
    max_timeout_seconds: int = 60


@dataclass
class AICrawlerConfig:
    price: str
    recipient_address: str
    enabled: bool = True
    network: str = "testnet"
    facilitator_url: Optional[str] = None
    allowed_crawlers: List[str] = field(default_factory=list)
    description: str = "AI crawler access fee"
    paths: Optional[Sequence[str]] = None
    max_timeout_seconds: int = 60


def _covers(paths: Optional[Sequence[str]], path: str) -> bool:
    if paths is None:
        return True
    for p in paths:
        prefix = p.rstrip("/")
        if not prefix or path == prefix or path.startswith(prefix + "/"):
            return True
    return False


class BotProtectionMiddleware(_PaymentGate):
    def __init__(self, app: Any, config: BotProtectionConfig, facilitator: Optional[FacilitatorClient] = None):
        super().__init__(app, facilitator=facilitator, facilitator_url=config.facilitator_url)
        self.config = config

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        cfg = self.config
        if not cfg.enabled or not _covers(cfg.paths, request.url.path):
            return await call_next(request)
        ua = request.headers.get("user-agent", "")
        verdict = classify(ua, request.headers if cfg.strict_mode else None)
        if not verdict.is_bot or matches_allow_list(ua, cfg.allowed_bots):
            return await call_next(request)
        if not cfg.recipient_address:
            logger.error("[BOT] Payment recipient not configured")
            return _error(500, CONFIG_ERROR)

        logger.info(f"[BOT] {verdict.label} detected on {request.url.path}")
        route = RouteConfig(
            price=cfg.price,
            network=cfg.network,
            description=cfg.description,
            max_timeout_seconds=cfg.max_timeout_seconds,
        )
        requirements = build_requirements(
            route, cfg.recipient_address, str(request.url), extra={"botDetected": verdict.label}
        )
        return await self._collect(
            request,
            call_next,
            requirements,
            body_extra={"botDetected": verdict.label, "message": BOT_PAYMENT_MESSAGE},
            challenge_headers={"X-Bot-Detected": verdict.label, "X-Payment-Required": "true"},
            paid_headers={"X-Payment-Verified": "true", "X-Bot-Paid": verdict.label},
        )


class AICrawlerMiddleware(_PaymentGate):
    def __init__(self, app: Any, config: AICrawlerConfig, facilitator: Optional[FacilitatorClient] = None):
        super().__init__(app, facilitator=facilitator, facilitator_url=config.facilitator_url)
        self.config = config

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        cfg = self.config
        if not cfg.enabled or not _covers(cfg.paths, request.url.path):
            return await call_next(request)
        ua = request.headers.get("user-agent", "")
        verdict = classify_ai_crawler(ua)
        if not verdict.is_bot or matches_allow_list(ua, cfg.allowed_crawlers):
            return await call_next(request)
        if not cfg.recipient_address:
            logger.error("[BOT] Payment recipient not configured")
            return _error(500, CONFIG_ERROR)

        logger.info(f"[BOT] AI crawler {verdict.label} detected on {request.url.path}")
        route = RouteConfig(
            price=cfg.price,
            network=cfg.network,
            description=cfg.description,
            max_timeout_seconds=cfg.max_timeout_seconds,
        )
        requirements = build_requirements(
            route, cfg.recipient_address, str(request.url), extra={"crawlerDetected": verdict.label}
        )
        return await self._collect(
            request,
            call_next,
            requirements,
            body_extra={"crawlerDetected": verdict.label, "message": AI_CRAWLER_PAYMENT_MESSAGE},
            challenge_headers={"X-AI-Crawler-Detected": verdict.label, "X-Payment-Required": "true"},
            paid_headers={"X-Payment-Verified": "true", "X-AI-Crawler-Paid": verdict.label},
        )


def _bind(middleware_cls: type, config: Any, facilitator: Optional[FacilitatorClient]) -> type:
    class Bound(middleware_cls):  # type: ignore[valid-type, misc]
        def __init__(self, app: Any, **kwargs):
            super().__init__(app, config=config, facilitator=facilitator)

    Bound.__name__ = middleware_cls.__name__
    return Bound


def block_all_bots(
    recipient_address: str,
    price: str,
    strict_mode: bool = False,
    facilitator: Optional[FacilitatorClient] = None,
    **kwargs: Any,
) -> type:
    config = BotProtectionConfig(price=price, recipient_address=recipient_address, strict_mode=strict_mode, **kwargs)
    return _bind(BotProtectionMiddleware, config, facilitator)


def block_all_bots_except_seo(
    recipient_address: str,
    price: str,
    facilitator: Optional[FacilitatorClient] = None,
    **kwargs: Any,
) -> type:
    config = BotProtectionConfig(
        price=price, recipient_address=recipient_address, allowed_bots=list(SEO_BOTS), **kwargs
    )
    return _bind(BotProtectionMiddleware, config, facilitator)


def block_ai_crawlers(
    recipient_address: str,
    price: str,
    facilitator: Optional[FacilitatorClient] = None,
    **kwargs: Any,
) -> type:
    config = AICrawlerConfig(price=price, recipient_address=recipient_address, **kwargs)
    return _bind(AICrawlerMiddleware, config, facilitator)


def allow_specific_crawlers(
    recipient_address: str,
    price: str,
    allowed: Sequence[str],
    facilitator: Optional[FacilitatorClient] = None,
    **kwargs: Any,
) -> type:
    config = AICrawlerConfig(
        price=price, recipient_address=recipient_address, allowed_crawlers=list(allowed), **kwargs
    )
    return _bind(AICrawlerMiddleware, config, facilitator)
