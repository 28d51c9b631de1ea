# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""Payment validation and settlement for the ``evm-transfer`` scheme.

``verify_payment`` is a pure, ordered pipeline: the first failing check
decides the reason and nothing touches the chain. ``settle_payment`` re-runs
the header checks, broadcasts the signed transaction and waits for one
confirmation. It blocks; call it from a worker thread.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, NamedTuple, Optional, Union

from monad_x402.chain import (
    ChainClient,
    ParsedTransaction,
    TransactionParseError,
    is_valid_address,
    parse_signed_transaction,
)
from monad_x402.config import MonadConfig, NetworkConfig, resolve_network
from monad_x402.encoding import DecodeError, decode_header
from monad_x402.types import (
    NETWORK_PREFIX,
    SCHEME,
    X402_VERSION,
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    VerifyResponse,
)

logger = logging.getLogger(__name__)

MISSING_FIELDS = "Missing paymentHeader or paymentRequirements"
ALREADY_USED = "Transaction already used"

# Node error fragments meaning the transaction (or its nonce) was already consumed
REPLAY_MARKERS = (
    "nonce too low",
    "already known",
    "known transaction",
    "already submitted",
    "sequence_number_too_old",
    "invalid_seq_number",
)


class ChainRegistry:
    """Lazily built ChainClient per configured network."""

    def __init__(self, config: MonadConfig, factory: Callable[[NetworkConfig], ChainClient] = ChainClient):
        self.config = config
        self._factory = factory
        self._clients: Dict[str, ChainClient] = {}

    def networks(self) -> List[str]:
        return sorted(self.config.networks)

    def get(self, network: str) -> Optional[ChainClient]:
        if not self.config.supports(network):
            return None
        network_id = resolve_network(network)
        client = self._clients.get(network_id)
        if client is None:
            client = self._factory(self.config.network(network_id))
            self._clients[network_id] = client
        return client


class VerifyOutcome(NamedTuple):
    response: VerifyResponse
    status_code: int = 200


class SettleOutcome(NamedTuple):
    response: SettleResponse
    status_code: int = 200


class _Rejection(NamedTuple):
    reason: str
    status_code: int = 200


class _Envelope(NamedTuple):
    payload: PaymentPayload
    signed_transaction: str


def _check_envelope(
    x402_version: Optional[int],
    payment_header: Optional[str],
    requirements: Optional[PaymentRequirements],
) -> Union[_Rejection, _Envelope]:
    if x402_version != X402_VERSION:
        return _Rejection(f"Unsupported x402 version: {x402_version}")
    if not payment_header or requirements is None:
        return _Rejection(MISSING_FIELDS, 400)
    if requirements.scheme != SCHEME:
        return _Rejection(f"Unsupported scheme: {requirements.scheme}")
    if not requirements.network.startswith(NETWORK_PREFIX):
        return _Rejection(f"Unsupported network: {requirements.network}")
    try:
        payload = decode_header(payment_header)
    except DecodeError as e:
        return _Rejection(str(e), 400)
    if payload.scheme != requirements.scheme:
        return _Rejection(f"Scheme mismatch: expected {requirements.scheme}, got {payload.scheme}")
    if payload.network != requirements.network:
        return _Rejection(f"Network mismatch: expected {requirements.network}, got {payload.network}")
    signed = payload.signed_transaction
    if not signed:
        return _Rejection("Invalid payload: missing signedTransaction")
    return _Envelope(payload, signed)


def _check_transfer(tx: ParsedTransaction, requirements: PaymentRequirements) -> Optional[str]:
    if (tx.to or "").lower() != requirements.payTo.lower():
        return f"Recipient mismatch: expected {requirements.payTo}, got {tx.to}"
    if str(tx.value) != requirements.maxAmountRequired:
        return f"Amount mismatch: expected {requirements.maxAmountRequired}, got {tx.value}"
    if not is_valid_address(tx.sender):
        return "Invalid sender address"
    return None


def verify_payment(
    x402_version: Optional[int],
    payment_header: Optional[str],
    requirements: Optional[PaymentRequirements],
) -> VerifyOutcome:
    checked = _check_envelope(x402_version, payment_header, requirements)
    if isinstance(checked, _Rejection):
        logger.info(f"[FACILITATOR] verify rejected: {checked.reason}")
        return VerifyOutcome(VerifyResponse(isValid=False, invalidReason=checked.reason), checked.status_code)

    try:
        tx = parse_signed_transaction(checked.signed_transaction)
    except TransactionParseError as e:
        reason = f"Failed to parse transaction: {e}"
        logger.info(f"[FACILITATOR] verify rejected: {reason}")
        return VerifyOutcome(VerifyResponse(isValid=False, invalidReason=reason))

    reason = _check_transfer(tx, requirements)
    if reason:
        logger.info(f"[FACILITATOR] verify rejected: {reason}")
        return VerifyOutcome(VerifyResponse(isValid=False, invalidReason=reason))

    logger.info(f"[FACILITATOR] verified {tx.value} wei {tx.sender} -> {tx.to} ({requirements.network})")
    return VerifyOutcome(VerifyResponse(isValid=True))


def is_replay_error(message: str) -> bool:
    m = (message or "").lower()
    return any(marker in m for marker in REPLAY_MARKERS)


def settle_payment(
    x402_version: Optional[int],
    payment_header: Optional[str],
    requirements: Optional[PaymentRequirements],
    registry: ChainRegistry,
    receipt_timeout_s: float = 60.0,
) -> SettleOutcome:
    checked = _check_envelope(x402_version, payment_header, requirements)
    if isinstance(checked, _Rejection):
        logger.info(f"[FACILITATOR] settle rejected: {checked.reason}")
        return SettleOutcome(SettleResponse(success=False, error=checked.reason), checked.status_code)

    network = requirements.network
    chain = registry.get(network)
    if chain is None:
        return SettleOutcome(SettleResponse(success=False, error=f"Unsupported network: {network}"), 400)

    try:
        tx_hash = chain.submit_transaction(checked.signed_transaction)
    except Exception as e:
        message = str(e) or e.__class__.__name__
        if is_replay_error(message):
            logger.warning(f"[FACILITATOR] replayed transaction on {network}: {message}")
            return SettleOutcome(SettleResponse(success=False, error=ALREADY_USED), 409)
        logger.error(f"[FACILITATOR] broadcast failed on {network}: {message}")
        return SettleOutcome(SettleResponse(success=False, error=message), 500)

    # broadcast already happened: every failure from here on must carry the hash
    try:
        receipt = chain.wait_for_transaction(tx_hash, confirmations=1, timeout=receipt_timeout_s)
    except Exception as e:
        message = str(e) or e.__class__.__name__
        logger.error(f"[FACILITATOR] receipt lookup failed for {tx_hash} on {network}: {message}")
        return SettleOutcome(
            SettleResponse(success=False, error=f"Receipt lookup failed: {message}", txHash=tx_hash, networkId=network)
        )
    if receipt is None:
        logger.warning(f"[FACILITATOR] no receipt for {tx_hash}")
        return SettleOutcome(
            SettleResponse(success=False, error="Transaction receipt not found", txHash=tx_hash, networkId=network)
        )
    if receipt["status"] != 1:
        logger.warning(f"[FACILITATOR] {tx_hash} reverted")
        return SettleOutcome(SettleResponse(success=False, error="Transaction failed on blockchain", txHash=tx_hash))

    logger.info(f"[FACILITATOR] settled {tx_hash} on {network}")
    return SettleOutcome(SettleResponse(success=True, txHash=tx_hash, networkId=network))
