from __future__ import annotations

import base64
import json

import pytest
import requests
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from privy_stacks_signer.config import PrivySettings
from privy_stacks_signer.privy import (
    PrivyAPIError,
    PrivyWalletClient,
    authorization_signature,
    canonical_json,
    signature_from,
)

API = "https://api.privy.io/v1"


class FakeResponse:
    def __init__(self, payload, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code
        self.text = json.dumps(payload)

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self._responses = responses
        self.calls: list[dict] = []

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "json": json, "headers": headers})
        response = self._responses.get((method, url))
        if response is None:
            raise AssertionError(f"Unexpected request: {method} {url}")
        return response


@pytest.fixture()
def p256_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture()
def authorization_key(p256_key) -> str:
    der = p256_key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return "wallet-auth:" + base64.b64encode(der).decode("ascii")


def _settings(**overrides) -> PrivySettings:
    values = {"app_id": "app-123", "app_secret": "secret", "wallet_owner_id": "owner-1"}
    values.update(overrides)
    return PrivySettings(**values)


def test_canonical_json_sorts_keys():
    assert canonical_json({"b": 1, "a": {"d": 2, "c": 3}}) == '{"a":{"c":3,"d":2},"b":1}'


def test_authorization_signature_verifies_with_public_key(p256_key, authorization_key):
    payload = {"version": 1, "method": "POST", "url": f"{API}/wallets/w1/raw_sign", "body": {}}

    signature = authorization_signature(payload, authorization_key)

    p256_key.public_key().verify(
        base64.b64decode(signature),
        canonical_json(payload).encode("utf-8"),
        ec.ECDSA(hashes.SHA256()),
    )


def test_get_wallet_sends_basic_auth_and_app_id():
    session = FakeSession({("GET", f"{API}/wallets/w1"): FakeResponse({"id": "w1", "public_key": "02ab"})})
    client = PrivyWalletClient(_settings(), session=session)  # type: ignore[arg-type]

    wallet = client.get_wallet("w1")

    assert wallet["public_key"] == "02ab"
    headers = session.calls[0]["headers"]
    assert headers["privy-app-id"] == "app-123"
    assert headers["Authorization"] == "Basic " + base64.b64encode(b"app-123:secret").decode("ascii")


def test_http_errors_raise_privy_api_error():
    session = FakeSession({("GET", f"{API}/wallets/missing"): FakeResponse({"error": "not found"}, 404)})
    client = PrivyWalletClient(_settings(), session=session)  # type: ignore[arg-type]

    with pytest.raises(PrivyAPIError) as excinfo:
        client.get_wallet("missing")

    assert excinfo.value.status_code == 404
    assert excinfo.value.payload == {"error": "not found"}


def test_create_wallet_posts_owner():
    session = FakeSession({("POST", f"{API}/wallets"): FakeResponse({"id": "w2"})})
    client = PrivyWalletClient(_settings(), session=session)  # type: ignore[arg-type]

    assert client.create_wallet("user-9", chain_type="bitcoin-segwit") == {"id": "w2"}
    assert session.calls[0]["json"] == {"chain_type": "bitcoin-segwit", "owner": {"user_id": "user-9"}}


def test_raw_sign_assigns_owner_and_signs_request(authorization_key):
    session = FakeSession(
        {
            ("GET", f"{API}/wallets/w1"): FakeResponse({"id": "w1", "owner_id": None}),
            ("PATCH", f"{API}/wallets/w1"): FakeResponse({"id": "w1", "owner_id": "owner-1"}),
            ("POST", f"{API}/wallets/w1/raw_sign"): FakeResponse({"data": {"signature": "0x" + "ab" * 64}}),
        }
    )
    client = PrivyWalletClient(_settings(authorization_key=authorization_key), session=session)  # type: ignore[arg-type]

    body = client.raw_sign("w1", "deadbeef" * 8)

    assert signature_from(body) == "0x" + "ab" * 64
    assert [call["method"] for call in session.calls] == ["GET", "PATCH", "POST"]
    assert session.calls[1]["json"] == {"owner_id": "owner-1"}
    sign_call = session.calls[2]
    assert sign_call["json"] == {"params": {"hash": "0x" + "deadbeef" * 8}}
    assert sign_call["headers"]["privy-idempotency-key"]
    assert sign_call["headers"]["privy-authorization-signature"]


def test_raw_sign_skips_owner_update_and_signature_when_not_needed():
    session = FakeSession(
        {
            ("GET", f"{API}/wallets/w1"): FakeResponse({"id": "w1", "owner_id": "owner-1"}),
            ("POST", f"{API}/wallets/w1/raw_sign"): FakeResponse({"data": {"signature": "cd" * 64}}),
        }
    )
    client = PrivyWalletClient(_settings(), session=session)  # type: ignore[arg-type]

    client.raw_sign("w1", "0x" + "00" * 32)

    assert [call["method"] for call in session.calls] == ["GET", "POST"]
    assert "privy-authorization-signature" not in session.calls[1]["headers"]


def test_raw_sign_normalises_upper_case_hash_prefix():
    session = FakeSession(
        {
            ("GET", f"{API}/wallets/w1"): FakeResponse({"id": "w1", "owner_id": "owner-1"}),
            ("POST", f"{API}/wallets/w1/raw_sign"): FakeResponse({"data": {"signature": "cd" * 64}}),
        }
    )
    client = PrivyWalletClient(_settings(), session=session)  # type: ignore[arg-type]

    client.raw_sign("w1", "0X" + "ab" * 32)

    assert session.calls[1]["json"] == {"params": {"hash": "0x" + "ab" * 32}}


def test_raw_sign_requires_configured_owner_for_unowned_wallet():
    session = FakeSession({("GET", f"{API}/wallets/w1"): FakeResponse({"id": "w1"})})
    client = PrivyWalletClient(_settings(wallet_owner_id=None), session=session)  # type: ignore[arg-type]

    with pytest.raises(PrivyAPIError, match="no owner"):
        client.raw_sign("w1", "00" * 32)


def test_signature_from_rejects_missing_signature():
    with pytest.raises(PrivyAPIError):
        signature_from({"data": {}})
