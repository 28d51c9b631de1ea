# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
import pytest
from fastapi.testclient import TestClient

from monad_x402 import ChainClient, MonadConfig
from monad_x402_facilitator import ChainRegistry, FacilitatorRuntimeConfig

from conftest import make_w3


@pytest.fixture
def build_client(monad_config):
    import run_facilitator

    def _build(w3=None):
        w3 = w3 or make_w3()
        registry = ChainRegistry(monad_config, factory=lambda net: ChainClient(net, w3=w3))
        app = run_facilitator.build_app(FacilitatorRuntimeConfig(monad=monad_config), registry)
        return TestClient(app)

    return _build


def _body(header, requirements, version=1):
    return {
        "x402Version": version,
        "paymentHeader": header,
        "paymentRequirements": requirements.model_dump(exclude_none=True),
    }


def test_verify_valid(build_client, payment_header, requirements):
    client = build_client()
    r = client.post("/api/facilitator/verify", json=_body(payment_header(), requirements))
    assert r.status_code == 200
    assert r.json() == {"isValid": True, "invalidReason": None}
    assert r.headers["X-Verification-Time"].endswith("ms")


def test_verify_invalid_is_still_200(build_client, payment_header, requirements):
    client = build_client()
    r = client.post("/api/facilitator/verify", json=_body(payment_header(scheme="exact"), requirements))
    assert r.status_code == 200
    assert r.json()["isValid"] is False
    assert r.json()["invalidReason"].startswith("Scheme mismatch")


def test_verify_missing_header_is_400(build_client, requirements):
    client = build_client()
    body = _body(None, requirements)
    del body["paymentHeader"]
    r = client.post("/api/facilitator/verify", json=body)
    assert r.status_code == 400
    assert r.json()["invalidReason"] == "Missing paymentHeader or paymentRequirements"


def test_verify_bad_base64_is_400(build_client, requirements):
    client = build_client()
    r = client.post("/api/facilitator/verify", json=_body("%%%", requirements))
    assert r.status_code == 400
    assert r.json()["isValid"] is False


def test_settle_success(build_client, payment_header, requirements):
    client = build_client()
    r = client.post("/api/facilitator/settle", json=_body(payment_header(), requirements))
    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["networkId"] == "monad-testnet"
    assert data["txHash"].startswith("0x")
    assert r.headers["X-Settlement-Time"].endswith("ms")


def test_settle_replay_is_409(build_client, payment_header, requirements):
    client = build_client(make_w3(send_error=ValueError("nonce too low")))
    r = client.post("/api/facilitator/settle", json=_body(payment_header(), requirements))
    assert r.status_code == 409
    assert r.json()["error"] == "Transaction already used"


def test_settle_reverted_is_200_failure(build_client, payment_header, requirements):
    client = build_client(make_w3(receipt_status=0))
    r = client.post("/api/facilitator/settle", json=_body(payment_header(), requirements))
    assert r.status_code == 200
    assert r.json()["success"] is False
    assert r.json()["error"] == "Transaction failed on blockchain"


def test_supported(build_client):
    r = build_client().get("/api/facilitator/supported")
    assert r.status_code == 200
    assert r.json() == {"kinds": [{"x402Version": 1, "scheme": "evm-transfer", "network": "monad-testnet"}]}


def test_supported_lists_mainnet_when_configured(monkeypatch, test_env):
    import run_facilitator

    monkeypatch.setenv("MONAD_MAINNET_RPC_URL", "http://127.0.0.1:9545")
    client = TestClient(run_facilitator.build_app(FacilitatorRuntimeConfig(monad=MonadConfig())))
    networks = [k["network"] for k in client.get("/api/facilitator/supported").json()["kinds"]]
    assert networks == ["monad-mainnet", "monad-testnet"]


def test_health(build_client):
    r = build_client().get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["networks"] == ["monad-testnet"]
