# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import os
from typing import Dict, Optional

from pydantic import BaseModel, Field

MONAD_TESTNET = "monad-testnet"
MONAD_MAINNET = "monad-mainnet"
NETWORK_PREFIX = "monad-"

MONAD_TESTNET_CHAIN_ID = 10143
MONAD_TESTNET_RPC_URL = "https://testnet-rpc.monad.xyz"
MONAD_TESTNET_EXPLORER_URL = "https://testnet-explorer.monad.xyz"
MONAD_MAINNET_CHAIN_ID = 143


class UnsupportedNetworkError(ValueError):
    pass


def resolve_network(name: Optional[str]) -> str:
    """Map a short network name onto its x402 network id.

    'testnet' -> 'monad-testnet', 'mainnet' -> 'monad-mainnet'; ids that
    already carry the 'monad-' prefix are returned unchanged.
    """
    n = (name or "testnet").strip()
    if n == "mainnet":
        return MONAD_MAINNET
    if n == "testnet":
        return MONAD_TESTNET
    if n.startswith(NETWORK_PREFIX):
        return n
    return f"{NETWORK_PREFIX}{n}"


class NetworkConfig(BaseModel):
    network_id: str
    chain_id: int
    rpc_url: str
    explorer_url: Optional[str] = None
    rpc_timeout_s: float = 15.0


def _env_float(key: str, default: str) -> float:
    return float(os.getenv(key, default))


def _env_networks() -> Dict[str, NetworkConfig]:
    timeout = _env_float("MONAD_RPC_TIMEOUT_S", "15")
    networks: Dict[str, NetworkConfig] = {
        MONAD_TESTNET: NetworkConfig(
            network_id=MONAD_TESTNET,
            chain_id=int(os.getenv("MONAD_TESTNET_CHAIN_ID", str(MONAD_TESTNET_CHAIN_ID))),
            rpc_url=os.getenv("MONAD_TESTNET_RPC_URL", MONAD_TESTNET_RPC_URL),
            explorer_url=os.getenv("MONAD_TESTNET_EXPLORER_URL", MONAD_TESTNET_EXPLORER_URL),
            rpc_timeout_s=timeout,
        )
    }
    # Mainnet is opt-in: only wired when an RPC endpoint is provided
    mainnet_rpc = os.getenv("MONAD_MAINNET_RPC_URL")
    if mainnet_rpc:
        networks[MONAD_MAINNET] = NetworkConfig(
            network_id=MONAD_MAINNET,
            chain_id=int(os.getenv("MONAD_MAINNET_CHAIN_ID", str(MONAD_MAINNET_CHAIN_ID))),
            rpc_url=mainnet_rpc,
            explorer_url=os.getenv("MONAD_MAINNET_EXPLORER_URL") or None,
            rpc_timeout_s=timeout,
        )
    return networks


class MonadConfig(BaseModel):
    """Chain access settings, built once at startup and passed to components."""

    default_network: str = Field(default_factory=lambda: resolve_network(os.getenv("MONAD_NETWORK", "testnet")))
    networks: Dict[str, NetworkConfig] = Field(default_factory=_env_networks)
    receipt_timeout_s: float = Field(default_factory=lambda: _env_float("MONAD_RECEIPT_TIMEOUT_S", "60"))

    def network(self, name: Optional[str] = None) -> NetworkConfig:
        network_id = resolve_network(name or self.default_network)
        try:
            return self.networks[network_id]
        except KeyError:
            raise UnsupportedNetworkError(f"Unsupported network: {network_id}") from None

    def supports(self, name: str) -> bool:
        return resolve_network(name) in self.networks
