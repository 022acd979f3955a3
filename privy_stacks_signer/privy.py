"""Client for Privy's server wallet REST API.

Covers the calls a server-side signing flow needs: wallet lookup and
creation, ownership checks, and ``raw_sign`` with an authorization signature.
The returned signature is the bare ``r || s`` pair consumed by
:func:`privy_stacks_signer.signatures.generate_candidates`.
"""
from __future__ import annotations

import base64
import json
import logging
import uuid
from typing import Any, Dict, Mapping, MutableMapping, Optional

import requests
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from .config import PrivySettings
from .signatures import strip_hex_prefix

_LOGGER = logging.getLogger(__name__)

AUTHORIZATION_KEY_PREFIX = "wallet-auth:"


class PrivyAPIError(RuntimeError):
    """Raised when the Privy API responds with an error or unexpected payload."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


def canonical_json(payload: Any) -> str:
    """Serialise ``payload`` with sorted keys and no insignificant whitespace."""

    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _load_authorization_key(authorization_key: str) -> ec.EllipticCurvePrivateKey:
    encoded = authorization_key.strip()
    if encoded.startswith(AUTHORIZATION_KEY_PREFIX):
        encoded = encoded[len(AUTHORIZATION_KEY_PREFIX):]
    key = serialization.load_der_private_key(base64.b64decode(encoded), password=None)
    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise ValueError("Privy authorization key must be an EC (P-256) private key")
    return key


def authorization_signature(payload: Mapping[str, Any], authorization_key: str) -> str:
    """Return the base64 P-256 signature Privy expects for ``payload``."""

    key = _load_authorization_key(authorization_key)
    message = canonical_json(payload).encode("utf-8")
    signature = key.sign(message, ec.ECDSA(hashes.SHA256()))
    return base64.b64encode(signature).decode("ascii")


def signature_from(body: Mapping[str, Any]) -> str:
    """Extract the hex signature from a ``raw_sign`` response body."""

    data = body.get("data")
    if isinstance(data, Mapping) and isinstance(data.get("signature"), str):
        return data["signature"]
    raise PrivyAPIError(f"raw_sign response has no signature: {body!r}", payload=body)


class PrivyWalletClient:
    """Thin wrapper around ``/v1/wallets`` endpoints."""

    def __init__(
        self,
        settings: PrivySettings,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = 20.0,
    ) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.settings.api_url}/v1/{path.lstrip('/')}"

    def _headers(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        token = base64.b64encode(f"{self.settings.app_id}:{self.settings.app_secret}".encode("utf-8")).decode("ascii")
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {token}",
            "privy-app-id": self.settings.app_id,
        }
        if extra:
            headers.update(extra)
        return headers

    def _request(
        self,
        method: str,
        path: str,
        body: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        url = self._url(path)
        _LOGGER.debug("%s %s %s", method, url, body)
        response = self.session.request(
            method,
            url,
            json=body,
            headers=self._headers(headers),
            timeout=self.timeout,
        )
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            try:
                payload = response.json()
            except ValueError:
                payload = getattr(response, "text", None)
            raise PrivyAPIError(
                f"Privy API error for {method} {path}: {exc}",
                status_code=response.status_code,
                payload=payload,
            ) from exc
        data = response.json()
        if not isinstance(data, Mapping):
            raise PrivyAPIError(f"Unexpected payload for {method} {path}: {data!r}", payload=data)
        return dict(data)

    def get_wallet(self, wallet_id: str) -> Dict[str, Any]:
        return self._request("GET", f"wallets/{wallet_id}")

    def create_wallet(self, owner_user_id: Optional[str] = None, chain_type: str = "ethereum") -> Dict[str, Any]:
        body: MutableMapping[str, Any] = {"chain_type": chain_type}
        if owner_user_id:
            body["owner"] = {"user_id": owner_user_id}
        return self._request("POST", "wallets", body)

    def has_owner(self, wallet_id: str) -> bool:
        # TODO: check for an additional signer rather than the owner once Privy exposes it on this endpoint.
        return bool(self.get_wallet(wallet_id).get("owner_id"))

    def set_owner(self, wallet_id: str, owner_id: str) -> Dict[str, Any]:
        return self._request("PATCH", f"wallets/{wallet_id}", {"owner_id": owner_id})

    def ensure_owner(self, wallet_id: str) -> None:
        """Assign the configured owner when ``wallet_id`` has none."""

        if self.has_owner(wallet_id):
            return
        owner_id = self.settings.wallet_owner_id
        if not owner_id:
            raise PrivyAPIError(f"Wallet {wallet_id} has no owner and PRIVY_WALLET_OWNER_ID is not set")
        _LOGGER.info("Assigning owner %s to wallet %s", owner_id, wallet_id)
        self.set_owner(wallet_id, owner_id)

    def raw_sign(self, wallet_id: str, payload_hash: str) -> Dict[str, Any]:
        """Sign a 32-byte hash with the wallet key and return the response body."""

        self.ensure_owner(wallet_id)

        hash_hex = f"0x{strip_hex_prefix(payload_hash)}"
        path = f"wallets/{wallet_id}/raw_sign"
        body = {"params": {"hash": hash_hex}}
        headers = {"privy-idempotency-key": str(uuid.uuid4())}

        if self.settings.authorization_key:
            signed_payload = {
                "version": 1,
                "method": "POST",
                "url": self._url(path),
                "body": body,
                "headers": {"privy-app-id": self.settings.app_id, **headers},
            }
            headers["privy-authorization-signature"] = authorization_signature(
                signed_payload, self.settings.authorization_key
            )

        return self._request("POST", path, body, headers)


__all__ = [
    "AUTHORIZATION_KEY_PREFIX",
    "PrivyAPIError",
    "PrivyWalletClient",
    "authorization_signature",
    "canonical_json",
    "signature_from",
]
