"""Shared fixtures for the signing and broadcast tests."""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping

import pytest

R_HEX = "a1b2" * 16
S_HEX = "c3d4" * 16


@pytest.fixture()
def raw_signature() -> str:
    return R_HEX + S_HEX


@pytest.fixture()
def unsigned_tx() -> bytes:
    """A testnet single-sig STX transfer with an empty signature field."""

    return (
        bytes([0x80])  # version
        + bytes.fromhex("80000000")  # chain id
        + bytes([0x04, 0x00])  # standard auth, P2PKH
        + bytes([0x11]) * 20  # signer hash
        + (5).to_bytes(8, "big")  # nonce
        + (180).to_bytes(8, "big")  # fee
        + bytes([0x00])  # compressed key encoding
        + bytes(65)  # signature
        + bytes([0x03, 0x01])
        + bytes(4)
        + bytes([0xAA]) * 12
    )


class RecordingBroadcaster:
    """Broadcast double that replays canned responses and records calls."""

    def __init__(self, responses: List[Mapping[str, Any]]) -> None:
        self._responses = list(responses)
        self.calls: List[Any] = []

    def __call__(self, transaction: Any) -> Mapping[str, Any]:
        self.calls.append(transaction)
        if not self._responses:
            raise AssertionError("broadcast called more often than expected")
        return self._responses.pop(0)


@pytest.fixture()
def broadcaster_factory() -> Callable[[List[Mapping[str, Any]]], RecordingBroadcaster]:
    return RecordingBroadcaster


def signature_rejection() -> Dict[str, Any]:
    return {
        "error": "transaction rejected",
        "reason": "SignatureValidation",
        "reason_data": {"message": "Signer hash does not equal hash of public key(s)"},
        "txid": "0xrejected",
    }


@pytest.fixture()
def signature_rejected() -> Callable[[], Dict[str, Any]]:
    return signature_rejection
