"""Build recoverable Stacks signature candidates from a raw ``r || s`` signature.

Remote signers such as Privy's ``raw_sign`` endpoint return the 64-byte ECDSA
pair without the recovery byte that a Stacks spending condition expects in
front of it. Every possible recovery marker therefore yields one candidate,
and the resolver in :mod:`privy_stacks_signer.resolver` tries them in
:data:`MARKER_PRIORITY` order.
"""
from __future__ import annotations

import logging
import string
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, MutableMapping, Tuple

_LOGGER = logging.getLogger(__name__)

RECOVERY_MARKERS: Tuple[int, ...] = (0, 1, 2, 3)
# Marker 1 recovers the signer's key more often than 0 for Privy signatures.
MARKER_PRIORITY: Tuple[int, ...] = (1, 0, 2, 3)
DEFAULT_MARKER = 1

SIGNATURE_HEX_LENGTH = 128
COMPONENT_HEX_LENGTH = 64

_HEX_DIGITS = frozenset(string.hexdigits)


class SignatureFormatError(ValueError):
    """Raised when a signature cannot be interpreted as hexadecimal."""


@dataclass(frozen=True)
class SignatureCandidate:
    """A raw signature completed with one recovery marker."""

    marker: int
    r: str
    s: str

    @property
    def marker_hex(self) -> str:
        return f"{self.marker:02x}"

    @property
    def full_signature(self) -> str:
        """Return ``marker || r || s`` as 130 hex characters."""

        return f"{self.marker_hex}{self.r}{self.s}"

    def as_dict(self) -> MutableMapping[str, Any]:
        return {
            "marker": self.marker_hex,
            "r": self.r,
            "s": self.s,
            "fullSignature": self.full_signature,
        }


@dataclass(frozen=True)
class SignatureCandidates:
    """Candidates in the order they should be tried plus a lookup by marker."""

    ordered: Tuple[SignatureCandidate, ...]
    by_marker: Mapping[int, SignatureCandidate] = field(default_factory=dict)

    def __iter__(self):
        return iter(self.ordered)

    def __len__(self) -> int:
        return len(self.ordered)

    def default(self) -> SignatureCandidate:
        """Return the candidate reported when no marker was accepted."""

        return self.by_marker[DEFAULT_MARKER]


def strip_hex_prefix(value: str) -> str:
    text = value.strip()
    if text[:2] in ("0x", "0X"):
        return text[2:]
    return text


def pad_component(value: str) -> str:
    """Left-pad a signature component to 32 bytes of hex."""

    return value.rjust(COMPONENT_HEX_LENGTH, "0")


def split_signature(signature: str) -> Tuple[str, str]:
    """Split a raw hex signature into padded ``(r, s)`` components.

    A body that is not exactly 128 hex characters means the signer broke its
    contract. The components are still padded and returned, but the condition
    is logged at WARNING level.
    """

    body = strip_hex_prefix(signature)
    if not all(char in _HEX_DIGITS for char in body):
        raise SignatureFormatError(f"Signature is not hexadecimal: {signature!r}")

    if len(body) != SIGNATURE_HEX_LENGTH:
        _LOGGER.warning(
            "Signature length is %d hex characters, expected %d; padding components",
            len(body),
            SIGNATURE_HEX_LENGTH,
        )

    r = pad_component(body[:COMPONENT_HEX_LENGTH].lower())
    s = pad_component(body[COMPONENT_HEX_LENGTH:SIGNATURE_HEX_LENGTH].lower())
    return r, s


def generate_candidates(signature: str, priority: Iterable[int] = MARKER_PRIORITY) -> SignatureCandidates:
    """Return one candidate per recovery marker, ordered by ``priority``."""

    order = tuple(priority)
    if sorted(order) != sorted(RECOVERY_MARKERS):
        raise ValueError(f"Priority {order!r} must be a permutation of {RECOVERY_MARKERS!r}")

    r, s = split_signature(signature)
    by_marker: Dict[int, SignatureCandidate] = {
        marker: SignatureCandidate(marker=marker, r=r, s=s) for marker in RECOVERY_MARKERS
    }
    return SignatureCandidates(
        ordered=tuple(by_marker[marker] for marker in order),
        by_marker=by_marker,
    )


__all__ = [
    "COMPONENT_HEX_LENGTH",
    "DEFAULT_MARKER",
    "MARKER_PRIORITY",
    "RECOVERY_MARKERS",
    "SIGNATURE_HEX_LENGTH",
    "SignatureCandidate",
    "SignatureCandidates",
    "SignatureFormatError",
    "generate_candidates",
    "pad_component",
    "split_signature",
    "strip_hex_prefix",
]
