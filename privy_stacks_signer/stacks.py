"""Minimal Stacks transaction handling for remote-signer flows.

Transactions are treated as opaque serialized bytes. The only structure read
or written is the origin single-signature spending condition, which sits at
fixed offsets for standard (non-sponsored) authorization:

    version(1) chain_id(4) auth_type(1) hash_mode(1) signer(20)
    nonce(8) fee(8) key_encoding(1) signature(65)
"""
from __future__ import annotations

import hashlib
import logging
from typing import Any, Callable, Dict, Mapping, Optional

import requests

from .signatures import strip_hex_prefix

_LOGGER = logging.getLogger(__name__)

STACKS_API_URLS: Dict[str, str] = {
    "mainnet": "https://api.mainnet.hiro.so",
    "testnet": "https://api.testnet.hiro.so",
}

AUTH_STANDARD = 0x04
AUTH_SPONSORED = 0x05
SINGLE_SIG_HASH_MODES = (0x00, 0x02)

_AUTH_TYPE_OFFSET = 5
_HASH_MODE_OFFSET = 6
_NONCE_OFFSET = 27
_FEE_OFFSET = 35
_SIGNATURE_OFFSET = 44
_SIGNATURE_LENGTH = 65
_MIN_LENGTH = _SIGNATURE_OFFSET + _SIGNATURE_LENGTH


class StacksTransactionError(ValueError):
    """Raised when a serialized transaction cannot be signed in place."""


def _sha512_256(data: bytes) -> bytes:
    return hashlib.new("sha512_256", data).digest()


def _check_single_sig(tx: bytes) -> None:
    if len(tx) < _MIN_LENGTH:
        raise StacksTransactionError(f"Transaction is too short ({len(tx)} bytes) to carry a signature")
    auth_type = tx[_AUTH_TYPE_OFFSET]
    if auth_type != AUTH_STANDARD:
        kind = "sponsored" if auth_type == AUTH_SPONSORED else f"0x{auth_type:02x}"
        raise StacksTransactionError(f"Only standard authorization is supported, got {kind}")
    hash_mode = tx[_HASH_MODE_OFFSET]
    if hash_mode not in SINGLE_SIG_HASH_MODES:
        raise StacksTransactionError(f"Hash mode 0x{hash_mode:02x} is not a single-signature mode")


def decode_transaction(value: str | bytes) -> bytes:
    if isinstance(value, bytes):
        return value
    try:
        return bytes.fromhex(strip_hex_prefix(value))
    except ValueError as exc:
        raise StacksTransactionError(f"Transaction is not valid hex: {exc}") from exc


def presign_sighash(unsigned_tx: bytes) -> str:
    """Return the hex digest the origin account must sign.

    The initial sighash is the txid of the transaction with nonce, fee and
    signature cleared; the pre-sign hash then binds the real auth type, fee
    and nonce to it.
    """

    _check_single_sig(unsigned_tx)
    cleared = bytearray(unsigned_tx)
    cleared[_NONCE_OFFSET:_FEE_OFFSET + 8] = bytes(16)
    cleared[_SIGNATURE_OFFSET:_SIGNATURE_OFFSET + _SIGNATURE_LENGTH] = bytes(_SIGNATURE_LENGTH)
    initial = _sha512_256(bytes(cleared))

    auth_type = unsigned_tx[_AUTH_TYPE_OFFSET:_AUTH_TYPE_OFFSET + 1]
    fee = unsigned_tx[_FEE_OFFSET:_FEE_OFFSET + 8]
    nonce = unsigned_tx[_NONCE_OFFSET:_NONCE_OFFSET + 8]
    return _sha512_256(initial + auth_type + fee + nonce).hex()


def attach_signature(unsigned_tx: bytes, full_signature: str) -> bytes:
    """Return a copy of ``unsigned_tx`` carrying ``marker || r || s``."""

    _check_single_sig(unsigned_tx)
    try:
        signature = bytes.fromhex(strip_hex_prefix(full_signature))
    except ValueError as exc:
        raise StacksTransactionError(f"Signature is not valid hex: {exc}") from exc
    if len(signature) != _SIGNATURE_LENGTH:
        raise StacksTransactionError(f"Recoverable signature must be {_SIGNATURE_LENGTH} bytes, got {len(signature)}")
    signed = bytearray(unsigned_tx)
    signed[_SIGNATURE_OFFSET:_SIGNATURE_OFFSET + _SIGNATURE_LENGTH] = signature
    return bytes(signed)


def signature_factory(unsigned_tx: bytes) -> Callable[[str], bytes]:
    """Build a resolver ``construct_transaction`` callback for ``unsigned_tx``."""

    _check_single_sig(unsigned_tx)

    def construct(full_signature: str) -> bytes:
        return attach_signature(unsigned_tx, full_signature)

    return construct


def resolve_api_url(network: str) -> str:
    try:
        return STACKS_API_URLS[network]
    except KeyError:
        raise ValueError(f"Unknown Stacks network {network!r}; expected one of {sorted(STACKS_API_URLS)}") from None


class StacksNodeClient:
    """Submit serialized transactions to a Stacks node or Hiro API."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = 20.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def broadcast(self, transaction: bytes) -> Mapping[str, Any]:
        """POST ``transaction`` and return ``{"txid": ...}`` or the rejection body.

        Transport errors propagate as :class:`requests.RequestException`.
        """

        url = f"{self.base_url}/v2/transactions"
        _LOGGER.debug("Broadcasting %d bytes to %s", len(transaction), url)
        response = self.session.post(
            url,
            data=transaction,
            headers={"Content-Type": "application/octet-stream"},
            timeout=self.timeout,
        )
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code < 400:
            if isinstance(payload, str):
                return {"txid": payload}
            if isinstance(payload, Mapping) and "txid" in payload:
                return dict(payload)
            return {"error": "Unexpected broadcast response", "reason": f"HTTP {response.status_code}"}

        if isinstance(payload, Mapping) and payload.get("error"):
            return dict(payload)
        return {
            "error": getattr(response, "text", "") or "transaction rejected",
            "reason": f"HTTP {response.status_code}",
        }


__all__ = [
    "STACKS_API_URLS",
    "StacksNodeClient",
    "StacksTransactionError",
    "attach_signature",
    "decode_transaction",
    "presign_sighash",
    "resolve_api_url",
    "signature_factory",
]
