#!/usr/bin/env python3
# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""
Standalone runner for the Monad x402 Facilitator.

Env:
  - FACILITATOR_PORT (default: 8000)
  - FACILITATOR_HOST (default: 0.0.0.0)
  - MONAD_TESTNET_RPC_URL (default: https://testnet-rpc.monad.xyz)
  - MONAD_MAINNET_RPC_URL (mainnet is disabled unless set)
  - MONAD_RECEIPT_TIMEOUT_S (default: 60)
"""

import logging
import os
import sys
from datetime import datetime, timezone

# Add repo source trees to Python path
repo_root = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, os.path.join(repo_root, 'facilitator', 'src'))
sys.path.insert(0, os.path.join(repo_root, 'packages', 'monad-x402', 'src'))

# Load .env BEFORE building config so MONAD_* vars are picked up
from dotenv import load_dotenv  # type: ignore
load_dotenv()

from fastapi import Depends, FastAPI

from monad_x402_facilitator import (
    ChainRegistry,
    FacilitatorRuntimeConfig,
    get_chain_registry,
    get_facilitator_cfg,
    router,
)


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("monad_facilitator")


def build_app(cfg: FacilitatorRuntimeConfig = None, registry: ChainRegistry = None) -> FastAPI:
    app = FastAPI(
        title="Monad x402 Facilitator",
        description="Verify and settle evm-transfer payments on Monad",
        version="0.1.0",
    )

    # One config and one set of RPC connections for the process lifetime
    cfg = cfg or FacilitatorRuntimeConfig()
    registry = registry or ChainRegistry(cfg.monad)
    app.dependency_overrides[get_facilitator_cfg] = lambda: cfg
    app.dependency_overrides[get_chain_registry] = lambda: registry

    @app.get("/health")
    async def health(registry: ChainRegistry = Depends(get_chain_registry)) -> dict:
        return {
            "status": "ok",
            "time": datetime.now(timezone.utc).isoformat(),
            "networks": registry.networks(),
        }

    # Mount facilitator router (/api/facilitator/*)
    app.include_router(router)

    logger.info(f"Facilitator app initialized for networks {registry.networks()}")
    return app


app = build_app()


if __name__ == "__main__":
    import uvicorn

    host = os.getenv("FACILITATOR_HOST", "0.0.0.0")
    port = int(os.getenv("FACILITATOR_PORT", "8000"))
    uvicorn.run("run_facilitator:app", host=host, port=port, reload=True, log_level="info")
