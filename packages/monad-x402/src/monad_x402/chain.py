# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple, Union

import rlp
from eth_account import Account
from eth_utils import big_endian_to_int, decode_hex, is_address, keccak, to_checksum_address, to_hex
from web3 import Web3
from web3.exceptions import TimeExhausted, TransactionNotFound

from .config import (
    MONAD_TESTNET_CHAIN_ID,
    MONAD_TESTNET_EXPLORER_URL,
    MONAD_TESTNET_RPC_URL,
    NetworkConfig,
)

logger = logging.getLogger(__name__)

TRANSFER_GAS_LIMIT = 21000

__all__ = [
    "MONAD_TESTNET_CHAIN_ID",
    "MONAD_TESTNET_EXPLORER_URL",
    "MONAD_TESTNET_RPC_URL",
    "TRANSFER_GAS_LIMIT",
    "ChainClient",
    "ParsedTransaction",
    "TransactionParseError",
    "parse_signed_transaction",
    "format_mon",
    "parse_mon",
    "is_valid_address",
    "is_valid_private_key",
    "generate_wallet",
]


class TransactionParseError(ValueError):
    pass


@dataclass(frozen=True)
class ParsedTransaction:
    sender: str
    to: Optional[str]
    value: int
    chain_id: Optional[int]
    nonce: int
    tx_hash: str
    tx_type: int


# (to index, value index) inside the RLP field list of each typed envelope
_TYPED_FIELDS = {
    1: (4, 5),  # EIP-2930: chainId, nonce, gasPrice, gas, to, value, ...
    2: (5, 6),  # EIP-1559: chainId, nonce, maxPriorityFee, maxFee, gas, to, value, ...
}


def _address_or_none(raw: bytes) -> Optional[str]:
    if not raw:
        return None
    if len(raw) != 20:
        raise TransactionParseError(f"invalid recipient length {len(raw)}")
    return to_checksum_address(raw)


def _decode_fields(raw: bytes) -> Tuple[int, Optional[int], int, bytes, bytes]:
    if not raw:
        raise TransactionParseError("empty transaction")
    if raw[0] >= 0xC0:
        # legacy: [nonce, gasPrice, gas, to, value, data, v, r, s]
        fields = rlp.decode(raw)
        if len(fields) != 9:
            raise TransactionParseError(f"legacy transaction must have 9 fields, got {len(fields)}")
        v = big_endian_to_int(fields[6])
        chain_id = (v - 35) // 2 if v >= 35 else None
        return 0, chain_id, big_endian_to_int(fields[0]), fields[3], fields[4]
    tx_type = raw[0]
    if tx_type not in _TYPED_FIELDS:
        raise TransactionParseError(f"unsupported transaction type {tx_type}")
    fields = rlp.decode(raw[1:])
    to_idx, value_idx = _TYPED_FIELDS[tx_type]
    if len(fields) < value_idx + 4:
        raise TransactionParseError("truncated typed transaction")
    return (
        tx_type,
        big_endian_to_int(fields[0]),
        big_endian_to_int(fields[1]),
        fields[to_idx],
        fields[value_idx],
    )


def parse_signed_transaction(signed: Union[str, bytes]) -> ParsedTransaction:
    """Decode a raw signed transaction without broadcasting it.

    Supports legacy, EIP-2930 and EIP-1559 envelopes. The sender is recovered
    from the signature.
    """
    try:
        raw = decode_hex(signed) if isinstance(signed, str) else bytes(signed)
        tx_type, chain_id, nonce, to_raw, value_raw = _decode_fields(raw)
        sender = Account.recover_transaction(raw)
        return ParsedTransaction(
            sender=sender,
            to=_address_or_none(to_raw),
            value=big_endian_to_int(value_raw),
            chain_id=chain_id,
            nonce=nonce,
            tx_hash=to_hex(keccak(raw)),
            tx_type=tx_type,
        )
    except TransactionParseError:
        raise
    except Exception as e:
        raise TransactionParseError(str(e) or e.__class__.__name__) from e


def format_mon(wei: Union[int, str]) -> str:
    text = format(Decimal(Web3.from_wei(int(wei), "ether")), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def parse_mon(mon: Union[str, int, Decimal]) -> int:
    return int(Web3.to_wei(Decimal(str(mon)), "ether"))


def is_valid_address(address: Optional[str]) -> bool:
    return bool(address) and is_address(address)


def is_valid_private_key(private_key: Optional[str]) -> bool:
    if not private_key:
        return False
    key = private_key if private_key.startswith("0x") else f"0x{private_key}"
    try:
        Account.from_key(key)
        return True
    except Exception:
        return False


def generate_wallet() -> Tuple[str, str]:
    acct = Account.create()
    return acct.address, to_hex(acct.key)


class ChainClient:
    """Thin wrapper over a web3 connection to one Monad network."""

    def __init__(self, network: NetworkConfig, w3: Optional[Web3] = None):
        self.network = network
        self.w3 = w3 or Web3(
            Web3.HTTPProvider(network.rpc_url, request_kwargs={"timeout": network.rpc_timeout_s})
        )

    def build_transfer_transaction(self, sender: str, to: str, amount_wei: Union[int, str]) -> Dict[str, Any]:
        sender = to_checksum_address(sender)
        nonce = self.w3.eth.get_transaction_count(sender, "pending")
        priority_fee = self.w3.eth.max_priority_fee
        base_fee = self.w3.eth.get_block("latest").get("baseFeePerGas", 0)
        return {
            "type": 2,
            "chainId": self.network.chain_id,
            "from": sender,
            "to": to_checksum_address(to),
            "value": int(amount_wei),
            "nonce": nonce,
            "gas": TRANSFER_GAS_LIMIT,
            "maxPriorityFeePerGas": priority_fee,
            "maxFeePerGas": 2 * base_fee + priority_fee,
            "data": b"",
        }

    @staticmethod
    def sign_transaction(tx: Dict[str, Any], private_key: str) -> str:
        signed = Account.sign_transaction(tx, private_key)
        return to_hex(signed.raw_transaction)

    def submit_transaction(self, signed_hex: str) -> str:
        tx_hash = self.w3.eth.send_raw_transaction(signed_hex)
        logger.info(f"[CHAIN] Broadcast {to_hex(tx_hash)} on {self.network.network_id}")
        return to_hex(tx_hash)

    def wait_for_transaction(
        self,
        tx_hash: str,
        confirmations: int = 1,
        timeout: Optional[float] = None,
        poll_latency: float = 0.5,
    ) -> Optional[Any]:
        """Block until the receipt exists, or return None after ``timeout``."""
        timeout = 60.0 if timeout is None else timeout
        deadline = time.monotonic() + timeout
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout, poll_latency=poll_latency
            )
        except TimeExhausted:
            logger.warning(f"[CHAIN] No receipt for {tx_hash} within {timeout}s")
            return None
        while confirmations > 1:
            depth = self.w3.eth.block_number - receipt["blockNumber"] + 1
            if depth >= confirmations:
                break
            if time.monotonic() >= deadline:
                return None
            time.sleep(poll_latency)
        return receipt

    def verify_transaction(self, tx_hash: str, expected_recipient: str, expected_amount: Union[int, str]) -> bool:
        try:
            tx = self.w3.eth.get_transaction(tx_hash)
            receipt = self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return False
        if receipt is None or receipt["status"] != 1:
            return False
        to = tx.get("to")
        if not to or to.lower() != expected_recipient.lower():
            return False
        return int(tx["value"]) == int(expected_amount)

    def get_balance(self, address: str) -> int:
        return int(self.w3.eth.get_balance(to_checksum_address(address)))

    def _explorer(self) -> str:
        if not self.network.explorer_url:
            raise ValueError(f"No explorer configured for {self.network.network_id}")
        return self.network.explorer_url.rstrip("/")

    def get_explorer_url(self, tx_hash: str) -> str:
        return f"{self._explorer()}/tx/{tx_hash}"

    def get_address_explorer_url(self, address: str) -> str:
        return f"{self._explorer()}/address/{address}"
