"""Offline secp256k1 recovery checks for signature candidates.

Used for diagnostics only: the resolver always follows its fixed marker order,
but knowing which marker recovers the wallet's own key locally makes broadcast
logs much easier to read.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError

from .signatures import SignatureCandidate, strip_hex_prefix

_LOGGER = logging.getLogger(__name__)


def _as_bytes(value: str | bytes) -> bytes:
    if isinstance(value, bytes):
        return value
    return bytes.fromhex(strip_hex_prefix(value))


def normalise_public_key(public_key: str | bytes) -> bytes:
    """Return the 33-byte compressed form of ``public_key``."""

    raw = _as_bytes(public_key)
    if len(raw) == 33:
        return raw
    if len(raw) == 65 and raw[0] == 4:
        raw = raw[1:]
    if len(raw) == 64:
        return keys.PublicKey(raw).to_compressed_bytes()
    raise ValueError(f"Unsupported public key length: {len(raw)} bytes")


def recover_public_key(candidate: SignatureCandidate, message_hash: str | bytes) -> Optional[bytes]:
    """Recover the compressed public key implied by ``candidate``.

    Only markers 0 and 1 are meaningful recovery ids for secp256k1 here;
    other markers, and signatures the curve rejects, yield ``None``.
    """

    digest = _as_bytes(message_hash)
    if len(digest) != 32:
        raise ValueError(f"Message hash must be 32 bytes, got {len(digest)}")
    try:
        signature = keys.Signature(vrs=(candidate.marker, int(candidate.r, 16), int(candidate.s, 16)))
        recovered = signature.recover_public_key_from_msg_hash(digest)
    except (BadSignature, ValidationError) as exc:
        _LOGGER.debug("Marker %s does not recover a key: %s", candidate.marker_hex, exc)
        return None
    return recovered.to_compressed_bytes()


def find_matching_marker(
    candidates: Iterable[SignatureCandidate],
    message_hash: str | bytes,
    public_key: str | bytes,
) -> Optional[int]:
    """Return the first marker whose recovered key equals ``public_key``."""

    expected = normalise_public_key(public_key)
    for candidate in candidates:
        if recover_public_key(candidate, message_hash) == expected:
            return candidate.marker
    return None


__all__ = ["find_matching_marker", "normalise_public_key", "recover_public_key"]
