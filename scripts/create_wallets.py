# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""
Create and manage Monad x402 test wallets
Generate buyer and seller wallets, and save to .env file
"""

import json
import os
import sys
from datetime import datetime

sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "packages", "monad-x402", "src"))

from dotenv import load_dotenv, set_key
from eth_account import Account

from monad_x402 import MonadConfig, generate_wallet, is_valid_private_key

# Load existing environment variables
load_dotenv()


def create_wallets():
    """Create new buyer and seller wallets"""

    config = MonadConfig()
    network = config.network()
    print(f"\nMonad x402 wallet generator ({network.network_id}, chain {network.chain_id})")

    existing_buyer_key = os.getenv("BUYER_PRIVATE_KEY")
    if existing_buyer_key and is_valid_private_key(existing_buyer_key):
        key = existing_buyer_key if existing_buyer_key.startswith("0x") else f"0x{existing_buyer_key}"
        print(f"\nExisting buyer wallet: {Account.from_key(key).address}")
        response = input("Create new wallets? (y/n): ").lower()
        if response != "y":
            print("Keeping existing wallet configuration")
            return

    buyer_address, buyer_key = generate_wallet()
    seller_address, seller_key = generate_wallet()
    print(f"\nBuyer wallet:  {buyer_address}")
    print(f"Seller wallet: {seller_address}")

    env_file = ".env"
    if not os.path.exists(env_file):
        open(env_file, "a").close()
    set_key(env_file, "BUYER_PRIVATE_KEY", buyer_key)
    set_key(env_file, "BUYER_ADDRESS", buyer_address)
    set_key(env_file, "SELLER_PRIVATE_KEY", seller_key)
    set_key(env_file, "SELLER_ADDRESS", seller_address)
    print(f"\nWallet information saved to {env_file}")

    wallets_info = {
        "created_at": datetime.now().isoformat(),
        "network": network.network_id,
        "buyer": {"address": buyer_address, "private_key": buyer_key},
        "seller": {"address": seller_address, "private_key": seller_key},
    }
    with open("wallets.json", "w") as f:
        json.dump(wallets_info, f, indent=2)
    print("Wallet backup saved to wallets.json")

    if network.explorer_url:
        print(f"\nBuyer:  {network.explorer_url}/address/{buyer_address}")
        print(f"Seller: {network.explorer_url}/address/{seller_address}")
    print("\nThe buyer needs testnet MON for both the payment and gas; the seller only receives.")


if __name__ == "__main__":
    create_wallets()
