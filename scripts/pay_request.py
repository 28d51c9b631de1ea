#!/usr/bin/env python3
# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""
Fetch a paywalled URL as a buyer, paying the x402 challenge in MON.

Env:
  - BUYER_PRIVATE_KEY (required; see scripts/create_wallets.py)
  - SELLER_BASE_URL (default: http://localhost:3000)
  - OTEL_EXPORTER_OTLP_ENDPOINT / OTEL_CONSOLE_EXPORTER=1 to export x402.request spans

Usage:
  python scripts/pay_request.py /api/premium
"""

import asyncio
import logging
import os
import sys

sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "packages", "monad-x402", "src"))

from dotenv import load_dotenv

from monad_x402 import BuyerClient, BuyerConfig, MonadConfig, PaymentError, maybe_setup_otel

load_dotenv()

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")


async def main(path: str) -> int:
    key = os.getenv("BUYER_PRIVATE_KEY")
    if not key:
        print("BUYER_PRIVATE_KEY not set. Please run first: python scripts/create_wallets.py")
        return 1

    provider = maybe_setup_otel()
    config = MonadConfig()
    buyer = BuyerClient(
        BuyerConfig(
            private_key=key,
            base_url=os.getenv("SELLER_BASE_URL", "http://localhost:3000"),
            config=config,
        )
    )
    try:
        result = await buyer.get(path)
    except PaymentError as e:
        print(f"\nCould not pay for {path}: {e}")
        return 1
    finally:
        await buyer.aclose()
        if provider is not None:
            provider.shutdown()

    print(f"\nHTTP {result.response.status_code}")
    print(result.response.text)
    info = result.payment_info
    if info is not None:
        print(f"\nPaid {info.amount} wei to {info.recipient} (settled={info.settled})")
        if info.transaction_hash and config.network().explorer_url:
            print(f"   {config.network().explorer_url}/tx/{info.transaction_hash}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "/api/premium")))
