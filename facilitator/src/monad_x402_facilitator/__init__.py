# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""Monad x402 Facilitator

Provides a FastAPI router that verifies and settles ``evm-transfer`` payments
on Monad.

Usage:
    from monad_x402_facilitator import router

    app = FastAPI()
    app.include_router(router)
"""

from .routes import (
    FacilitatorRuntimeConfig,
    get_chain_registry,
    get_facilitator_cfg,
    router,
)
from .service import (
    ChainRegistry,
    SettleOutcome,
    VerifyOutcome,
    is_replay_error,
    settle_payment,
    verify_payment,
)

__version__ = "0.1.0"

__all__ = [
    "router",
    "FacilitatorRuntimeConfig",
    "get_facilitator_cfg",
    "get_chain_registry",
    "ChainRegistry",
    "VerifyOutcome",
    "SettleOutcome",
    "verify_payment",
    "settle_payment",
    "is_replay_error",
]
