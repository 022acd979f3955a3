"""Translate resolution outcomes into HTTP-style ``(status, body)`` pairs."""
from __future__ import annotations

from typing import Any, Dict, Tuple

from .resolver import ResolutionOutcome


def build_broadcast_response(outcome: ResolutionOutcome, **context: Any) -> Tuple[int, Dict[str, Any]]:
    """Return the status code and JSON body for a sign-and-broadcast request.

    Extra keyword arguments (wallet id, signed hash, ...) are copied into the
    body unchanged.
    """

    candidate = outcome.chosen_candidate
    body: Dict[str, Any] = dict(context)
    body.update(
        {
            "success": outcome.success,
            "signatureData": candidate.as_dict(),
            "recoveryIdUsed": candidate.marker_hex,
            "allVariantsTested": outcome.attempts_count,
            "attempts": [attempt.as_dict() for attempt in outcome.attempts],
            "broadcastResult": dict(outcome.final_response),
        }
    )

    if outcome.success:
        body["txid"] = outcome.transaction_id
        body["note"] = f"{outcome.label} signed successfully with recovery ID {candidate.marker_hex}"
        return 200, body

    response = outcome.final_response
    for key in ("error", "reason", "reason_data", "txid"):
        if response.get(key) is not None:
            body[key] = response[key]
    if outcome.signature_unresolved:
        body["note"] = f"{outcome.label} failed: signature could not be resolved after trying all recovery IDs"
    else:
        body["note"] = (
            f"{outcome.label} rejected by the network with recovery ID {candidate.marker_hex}: "
            f"{response.get('error')} - {response.get('reason')}"
        )
    return 400, body


__all__ = ["build_broadcast_response"]
