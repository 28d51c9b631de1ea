# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
import os
import sys
from typing import Any, Callable, Dict, Optional
from unittest.mock import Mock

import pytest


def _add_project_paths_to_syspath() -> None:
    root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    for path in (
        root,
        os.path.join(root, "facilitator", "src"),
        os.path.join(root, "packages", "monad-x402", "src"),
    ):
        if path not in sys.path:
            sys.path.insert(0, path)


_add_project_paths_to_syspath()


# Import after adding to syspath
from eth_account import Account
from eth_utils import decode_hex, keccak, to_checksum_address

from monad_x402 import (
    ChainClient,
    MonadConfig,
    NetworkConfig,
    PaymentPayload,
    PaymentRequirements,
    encode_header,
)

BUYER_KEY = "0x" + "a" * 64
SELLER_ADDRESS = to_checksum_address("0x" + "c" * 40)
PRICE = "1000000000000000"  # 0.001 MON
TESTNET = "monad-testnet"


@pytest.fixture
def test_env(monkeypatch) -> None:
    """Set up test environment variables."""
    monkeypatch.setenv("MONAD_NETWORK", "testnet")
    monkeypatch.setenv("MONAD_TESTNET_RPC_URL", "http://127.0.0.1:8545")
    monkeypatch.delenv("MONAD_MAINNET_RPC_URL", raising=False)
    monkeypatch.setenv("FACILITATOR_URL", "http://facilitator.test/api/facilitator")


@pytest.fixture
def monad_config(test_env) -> MonadConfig:
    return MonadConfig()


@pytest.fixture
def testnet(monad_config: MonadConfig) -> NetworkConfig:
    return monad_config.network("testnet")


@pytest.fixture
def buyer() -> Any:
    return Account.from_key(BUYER_KEY)


@pytest.fixture
def seller_address() -> str:
    return SELLER_ADDRESS


def make_w3(receipt_status: int = 1, send_error: Optional[Exception] = None) -> Mock:
    """web3 stand-in: broadcast returns keccak(raw), receipt has the given status."""
    w3 = Mock()
    w3.eth.get_transaction_count.return_value = 0
    w3.eth.max_priority_fee = 1_000_000_000
    w3.eth.get_block.return_value = {"baseFeePerGas": 50_000_000_000}
    w3.eth.block_number = 100
    if send_error is not None:
        w3.eth.send_raw_transaction.side_effect = send_error
    else:
        w3.eth.send_raw_transaction.side_effect = lambda raw: keccak(decode_hex(raw))
    w3.eth.wait_for_transaction_receipt.return_value = {"status": receipt_status, "blockNumber": 100}
    return w3


@pytest.fixture
def w3() -> Mock:
    return make_w3()


@pytest.fixture
def chain_factory(w3: Mock) -> Callable[[NetworkConfig], ChainClient]:
    def factory(network: NetworkConfig) -> ChainClient:
        return ChainClient(network, w3=w3)

    return factory


@pytest.fixture
def sign_transfer() -> Callable[..., str]:
    """Sign an EIP-1559 MON transfer from the buyer key."""

    def _sign(to: str = SELLER_ADDRESS, value: int = int(PRICE), nonce: int = 0, chain_id: int = 10143) -> str:
        tx: Dict[str, Any] = {
            "type": 2,
            "chainId": chain_id,
            "nonce": nonce,
            "to": to_checksum_address(to),
            "value": value,
            "gas": 21000,
            "maxFeePerGas": 101_000_000_000,
            "maxPriorityFeePerGas": 1_000_000_000,
            "data": b"",
        }
        return ChainClient.sign_transaction(tx, BUYER_KEY)

    return _sign


@pytest.fixture
def requirements() -> PaymentRequirements:
    return PaymentRequirements(
        scheme="evm-transfer",
        network=TESTNET,
        maxAmountRequired=PRICE,
        resource="http://testserver/api/premium",
        description="Premium data",
        payTo=SELLER_ADDRESS,
    )


@pytest.fixture
def payment_header(sign_transfer) -> Callable[..., str]:
    def _header(signed: Optional[str] = None, **overrides: Any) -> str:
        fields: Dict[str, Any] = {
            "x402Version": 1,
            "scheme": "evm-transfer",
            "network": TESTNET,
            "payload": {"signedTransaction": signed or sign_transfer()},
        }
        fields.update(overrides)
        return encode_header(PaymentPayload(**fields))

    return _header
