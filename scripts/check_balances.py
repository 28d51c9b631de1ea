# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""
Check wallet MON balances on Monad
"""

import os
import sys
from datetime import datetime

sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "packages", "monad-x402", "src"))

from dotenv import load_dotenv

from monad_x402 import ChainClient, MonadConfig, format_mon, is_valid_address, parse_mon

load_dotenv()

MIN_BUYER_BALANCE = parse_mon("0.01")


def check_balances():
    """Check buyer and seller balances"""

    network = MonadConfig().network()
    chain = ChainClient(network)

    if not chain.w3.is_connected():
        print(f"Unable to connect to {network.rpc_url}")
        return

    print(f"Connected to {network.network_id} (Chain ID: {chain.w3.eth.chain_id})")
    print(f"Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    wallets = {"Buyer": os.getenv("BUYER_ADDRESS"), "Seller": os.getenv("SELLER_ADDRESS")}
    if not all(is_valid_address(a) for a in wallets.values()):
        print("\nWallet configuration not found")
        print("Please run first: python scripts/create_wallets.py")
        return

    balances = {}
    for name, address in wallets.items():
        balances[name] = chain.get_balance(address)
        print(f"\n{name} wallet: {address}")
        print(f"   MON: {format_mon(balances[name])}")
        if network.explorer_url:
            print(f"   {chain.get_address_explorer_url(address)}")

    if balances["Buyer"] < MIN_BUYER_BALANCE:
        print(f"\nBuyer MON insufficient (need at least {format_mon(MIN_BUYER_BALANCE)} MON)")
    else:
        print("\nBuyer MON sufficient")


if __name__ == "__main__":
    check_balances()
