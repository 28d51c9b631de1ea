# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from monad_x402.config import MonadConfig
from monad_x402.types import (
    SCHEME,
    X402_VERSION,
    X_SETTLEMENT_TIME_HEADER,
    X_VERIFICATION_TIME_HEADER,
    SettleRequest,
    SettleResponse,
    VerifyRequest,
    VerifyResponse,
)

from .service import ChainRegistry, settle_payment, verify_payment

logger = logging.getLogger(__name__)


class FacilitatorRuntimeConfig(BaseModel):
    monad: MonadConfig = Field(default_factory=MonadConfig)


def get_facilitator_cfg() -> FacilitatorRuntimeConfig:
    return FacilitatorRuntimeConfig()


def get_chain_registry(cfg: FacilitatorRuntimeConfig = Depends(get_facilitator_cfg)) -> ChainRegistry:
    return ChainRegistry(cfg.monad)


router = APIRouter(prefix="/api/facilitator", tags=["x402-facilitator"])


def _elapsed(start: float) -> str:
    return f"{int((time.perf_counter() - start) * 1000)}ms"


@router.post("/verify", response_model=VerifyResponse)
async def facilitator_verify(body: VerifyRequest):
    start = time.perf_counter()
    try:
        outcome = verify_payment(body.x402Version, body.paymentHeader, body.paymentRequirements)
    except Exception as e:
        logger.exception("[FACILITATOR] verify failed unexpectedly")
        return JSONResponse(
            status_code=500,
            content=VerifyResponse(isValid=False, invalidReason=f"Internal server error: {e}").model_dump(),
            headers={X_VERIFICATION_TIME_HEADER: _elapsed(start)},
        )
    return JSONResponse(
        status_code=outcome.status_code,
        content=outcome.response.model_dump(),
        headers={X_VERIFICATION_TIME_HEADER: _elapsed(start)},
    )


@router.post("/settle", response_model=SettleResponse)
async def facilitator_settle(
    body: SettleRequest,
    cfg: FacilitatorRuntimeConfig = Depends(get_facilitator_cfg),
    registry: ChainRegistry = Depends(get_chain_registry),
):
    start = time.perf_counter()
    try:
        # broadcast + receipt wait block on RPC
        outcome = await run_in_threadpool(
            settle_payment,
            body.x402Version,
            body.paymentHeader,
            body.paymentRequirements,
            registry,
            cfg.monad.receipt_timeout_s,
        )
    except Exception as e:
        logger.exception("[FACILITATOR] settle failed unexpectedly")
        return JSONResponse(
            status_code=500,
            content=SettleResponse(success=False, error=f"Internal server error: {e}").model_dump(),
            headers={X_SETTLEMENT_TIME_HEADER: _elapsed(start)},
        )
    return JSONResponse(
        status_code=outcome.status_code,
        content=outcome.response.model_dump(),
        headers={X_SETTLEMENT_TIME_HEADER: _elapsed(start)},
    )


@router.get("/supported")
async def facilitator_supported(registry: ChainRegistry = Depends(get_chain_registry)) -> dict:
    return {
        "kinds": [
            {"x402Version": X402_VERSION, "scheme": SCHEME, "network": network}
            for network in registry.networks()
        ]
    }
