# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""
Buyer -> seller middleware -> facilitator -> (mocked) chain, all in process.
"""
import httpx
import pytest
from eth_utils import decode_hex, keccak, to_checksum_address
from fastapi import FastAPI

from monad_x402 import (
    BuyerClient,
    BuyerConfig,
    ChainClient,
    FacilitatorClient,
    PaymentMiddleware,
    RouteConfig,
    decode_payment_response,
)
from monad_x402_facilitator import ChainRegistry, FacilitatorRuntimeConfig

from conftest import BUYER_KEY, PRICE, SELLER_ADDRESS, make_w3


def _replay_aware_w3():
    w3 = make_w3()
    seen = set()

    def send(raw):
        if raw in seen:
            raise ValueError({"code": -32000, "message": "already known"})
        seen.add(raw)
        return keccak(decode_hex(raw))

    w3.eth.send_raw_transaction.side_effect = send
    return w3


@pytest.fixture
def w3():
    return _replay_aware_w3()


@pytest.fixture
def stack(monad_config, w3):
    import run_facilitator

    registry = ChainRegistry(monad_config, factory=lambda net: ChainClient(net, w3=w3))
    facilitator_app = run_facilitator.build_app(FacilitatorRuntimeConfig(monad=monad_config), registry)
    facilitator = FacilitatorClient(
        "http://facilitator.test/api/facilitator",
        http=httpx.AsyncClient(transport=httpx.ASGITransport(app=facilitator_app), base_url="http://facilitator.test"),
    )

    seller = FastAPI()
    seller.add_middleware(
        PaymentMiddleware,
        pay_to=SELLER_ADDRESS,
        routes={"/api/premium": RouteConfig(price=PRICE, description="Premium data")},
        facilitator=facilitator,
    )

    @seller.get("/api/premium")
    async def premium():
        return {"data": "premium"}

    return seller


def _seller_http(seller):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=seller), base_url="http://testserver")


@pytest.mark.asyncio
async def test_signed_transfer_is_settled(stack, payment_header, w3):
    async with _seller_http(stack) as http:
        r = await http.get("/api/premium", headers={"X-PAYMENT": payment_header()})
    assert r.status_code == 200
    assert r.json() == {"data": "premium"}
    proof = decode_payment_response(r.headers["X-Payment-Response"])
    assert proof.settlement.success is True
    assert proof.settlement.networkId == "monad-testnet"
    assert r.headers["X-Verification-Time"].endswith("ms")
    assert r.headers["X-Settlement-Time"].endswith("ms")
    w3.eth.send_raw_transaction.assert_called_once()


@pytest.mark.asyncio
async def test_wrong_recipient_is_403(stack, payment_header, sign_transfer, w3):
    other = to_checksum_address("0x" + "c" * 39 + "b")
    async with _seller_http(stack) as http:
        r = await http.get("/api/premium", headers={"X-PAYMENT": payment_header(sign_transfer(to=other))})
    assert r.status_code == 403
    assert r.json()["message"].startswith("Recipient mismatch")
    w3.eth.send_raw_transaction.assert_not_called()


@pytest.mark.asyncio
async def test_underpayment_is_403(stack, payment_header, sign_transfer, w3):
    async with _seller_http(stack) as http:
        r = await http.get("/api/premium", headers={"X-PAYMENT": payment_header(sign_transfer(value=int(PRICE) - 1))})
    assert r.status_code == 403
    assert r.json()["message"] == f"Amount mismatch: expected {PRICE}, got {int(PRICE) - 1}"
    w3.eth.send_raw_transaction.assert_not_called()


@pytest.mark.asyncio
async def test_replayed_header_is_409(stack, payment_header):
    header = payment_header()
    async with _seller_http(stack) as http:
        first = await http.get("/api/premium", headers={"X-PAYMENT": header})
        second = await http.get("/api/premium", headers={"X-PAYMENT": header})
    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json() == {"error": "Payment settlement failed", "message": "Transaction already used"}


@pytest.mark.asyncio
async def test_buyer_pays_automatically(stack, monad_config, w3):
    buyer = BuyerClient(
        BuyerConfig(private_key=BUYER_KEY, config=monad_config),
        http=_seller_http(stack),
        chain_factory=lambda net: ChainClient(net, w3=w3),
    )
    try:
        result = await buyer.get("/api/premium")
    finally:
        await buyer.aclose()
    assert result.response.status_code == 200
    assert result.response.json() == {"data": "premium"}
    info = result.payment_info
    assert info.settled is True
    assert info.amount == PRICE
    assert info.recipient == SELLER_ADDRESS
    assert info.transaction_hash.startswith("0x")
