from __future__ import annotations

from privy_stacks_signer.resolver import resolve
from privy_stacks_signer.responses import build_broadcast_response


def _identity(full_signature: str) -> str:
    return full_signature


def test_success_maps_to_200_with_txid(raw_signature, broadcaster_factory):
    outcome = resolve(raw_signature, _identity, broadcaster_factory([{"txid": "0xabc"}]), "SELL-MEME")

    status, body = build_broadcast_response(outcome, walletId="w1")

    assert status == 200
    assert body["txid"] == "0xabc"
    assert body["walletId"] == "w1"
    assert body["recoveryIdUsed"] == "01"
    assert body["allVariantsTested"] == 4
    assert "SELL-MEME signed successfully" in body["note"]


def test_network_rejection_echoes_reason(raw_signature, broadcaster_factory):
    rejection = {
        "error": "transaction rejected",
        "reason": "ContractAlreadyExists",
        "reason_data": {"contract_identifier": "SP000.meme"},
        "txid": "0xdup",
    }
    outcome = resolve(raw_signature, _identity, broadcaster_factory([rejection]), "DEPLOY-CONTRACT")

    status, body = build_broadcast_response(outcome)

    assert status == 400
    assert body["error"] == "transaction rejected"
    assert body["reason"] == "ContractAlreadyExists"
    assert body["reason_data"] == {"contract_identifier": "SP000.meme"}
    assert body["txid"] == "0xdup"
    assert "rejected by the network" in body["note"]


def test_unresolved_signature_is_reported_distinctly(raw_signature, broadcaster_factory, signature_rejected):
    outcome = resolve(raw_signature, _identity, broadcaster_factory([signature_rejected() for _ in range(4)]))

    status, body = build_broadcast_response(outcome)

    assert status == 400
    assert body["reason"] == "SignatureValidation"
    assert "could not be resolved" in body["note"]
    assert len(body["attempts"]) == 4
    assert body["signatureData"]["marker"] == "01"
