"""Try recovery markers one at a time until a Stacks node accepts the signature.

The resolver is deliberately sequential: every attempt is a real broadcast of
the same nonce, so candidates are never submitted concurrently. A
``SignatureValidation`` rejection means "wrong marker, try the next one"; any
other rejection means the signature itself passed and the transaction failed
for an unrelated reason, so the loop stops there.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Mapping, MutableMapping, Optional, Tuple

from .signatures import MARKER_PRIORITY, SignatureCandidate, generate_candidates

_LOGGER = logging.getLogger(__name__)

SIGNATURE_VALIDATION = "SignatureValidation"

ACCEPTED = "accepted"
REJECTED_BY_NETWORK = "rejected_by_network"
THREW_DURING_CONSTRUCTION = "threw_during_construction"

ConstructTransaction = Callable[[str], Any]
Broadcast = Callable[[Any], Mapping[str, Any]]


@dataclass(frozen=True)
class RecoveryAttemptResult:
    """Outcome of trying a single candidate."""

    candidate: SignatureCandidate
    outcome: str
    transaction_id: Optional[str] = None
    code: Optional[str] = None
    reason: Optional[str] = None
    detail: Any = None
    stage: Optional[str] = None

    def as_dict(self) -> MutableMapping[str, Any]:
        payload: MutableMapping[str, Any] = {
            "marker": self.candidate.marker_hex,
            "outcome": self.outcome,
        }
        for key in ("transaction_id", "code", "reason", "detail", "stage"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


@dataclass(frozen=True)
class ResolutionOutcome:
    """Structured result handed back to the HTTP layer or CLI."""

    success: bool
    final_response: Mapping[str, Any]
    chosen_candidate: SignatureCandidate
    attempts_count: int
    attempts: Tuple[RecoveryAttemptResult, ...] = field(default_factory=tuple)
    label: str = "STACKS"

    @property
    def transaction_id(self) -> Optional[str]:
        txid = self.final_response.get("txid")
        return txid if isinstance(txid, str) else None

    @property
    def signature_unresolved(self) -> bool:
        """True when no candidate got past signature validation."""

        if self.success:
            return False
        return all(
            attempt.outcome == THREW_DURING_CONSTRUCTION or attempt.reason == SIGNATURE_VALIDATION
            for attempt in self.attempts
        )

    def as_dict(self) -> MutableMapping[str, Any]:
        return {
            "success": self.success,
            "response": dict(self.final_response),
            "signatureData": self.chosen_candidate.as_dict(),
            "allVariantsTested": self.attempts_count,
        }


def classify_response(response: Mapping[str, Any]) -> str:
    """Return ``accepted``, ``signature_rejected`` or ``rejected``."""

    if not response.get("error"):
        return "accepted"
    if response.get("reason") == SIGNATURE_VALIDATION:
        return "signature_rejected"
    return "rejected"


def _reason_message(response: Mapping[str, Any]) -> Any:
    reason_data = response.get("reason_data")
    if isinstance(reason_data, Mapping) and reason_data.get("message"):
        return reason_data["message"]
    return response.get("reason")


def resolve(
    signature: str,
    construct_transaction: ConstructTransaction,
    broadcast: Broadcast,
    label: str = "STACKS",
    *,
    priority: Iterable[int] = MARKER_PRIORITY,
    logger: Optional[logging.Logger] = None,
) -> ResolutionOutcome:
    """Broadcast ``signature`` with each recovery marker until one is accepted.

    Args:
        signature: Raw ``r || s`` hex signature, optionally ``0x`` prefixed.
        construct_transaction: Builds a signed transaction from a 130-character
            ``marker || r || s`` hex signature.
        broadcast: Submits a transaction and returns the node's response
            mapping (``{"txid": ...}`` or ``{"error", "reason", ...}``).
        label: Name of the call site, attached to every log record.
        priority: Order in which markers are tried.
        logger: Destination for attempt and summary records.

    Returns:
        A :class:`ResolutionOutcome`. Collaborator failures never propagate.
    """

    log = logger or _LOGGER
    candidates = generate_candidates(signature, priority)
    attempts: List[RecoveryAttemptResult] = []
    last_error: Optional[Mapping[str, Any]] = None

    for index, candidate in enumerate(candidates, start=1):
        stage = "construct"
        try:
            transaction = construct_transaction(candidate.full_signature)
            stage = "broadcast"
            response = broadcast(transaction)
            if not isinstance(response, Mapping):
                raise TypeError(f"Unexpected broadcast response: {response!r}")
        except Exception as exc:  # noqa: BLE001 - collaborator failures are per-candidate
            attempt = RecoveryAttemptResult(
                candidate=candidate,
                outcome=THREW_DURING_CONSTRUCTION,
                detail=str(exc),
                stage=stage,
            )
            attempts.append(attempt)
            last_error = {"error": "Exception", "message": str(exc)}
            log.warning(
                "%s: marker %s threw during %s: %s",
                label,
                candidate.marker_hex,
                stage,
                exc,
                extra={"label": label, "marker": candidate.marker, "attempt": index, "outcome": attempt.outcome},
            )
            continue

        verdict = classify_response(response)
        if verdict == "accepted":
            txid = response.get("txid")
            attempts.append(
                RecoveryAttemptResult(
                    candidate=candidate,
                    outcome=ACCEPTED,
                    transaction_id=txid if isinstance(txid, str) else None,
                )
            )
            log.info(
                "%s: marker %s accepted (txid=%s)",
                label,
                candidate.marker_hex,
                txid,
                extra={"label": label, "marker": candidate.marker, "attempt": index, "outcome": ACCEPTED},
            )
            return _finish(log, label, True, response, candidate, len(candidates), attempts)

        attempt = RecoveryAttemptResult(
            candidate=candidate,
            outcome=REJECTED_BY_NETWORK,
            code=response.get("error"),
            reason=response.get("reason"),
            detail=response.get("reason_data"),
        )
        attempts.append(attempt)
        log.info(
            "%s: marker %s rejected: %s",
            label,
            candidate.marker_hex,
            _reason_message(response),
            extra={
                "label": label,
                "marker": candidate.marker,
                "attempt": index,
                "outcome": REJECTED_BY_NETWORK,
                "reason": attempt.reason,
            },
        )
        if verdict == "rejected":
            return _finish(log, label, False, response, candidate, len(candidates), attempts)
        last_error = response

    final = last_error if last_error is not None else {"error": "Exception", "message": "no candidates attempted"}
    return _finish(log, label, False, final, candidates.default(), len(candidates), attempts)


def _finish(
    log: logging.Logger,
    label: str,
    success: bool,
    response: Mapping[str, Any],
    candidate: SignatureCandidate,
    attempts_count: int,
    attempts: List[RecoveryAttemptResult],
) -> ResolutionOutcome:
    outcome = ResolutionOutcome(
        success=success,
        final_response=response,
        chosen_candidate=candidate,
        attempts_count=attempts_count,
        attempts=tuple(attempts),
        label=label,
    )
    log.log(
        logging.INFO if success else logging.WARNING,
        "%s: resolution %s after %d of %d candidates (marker %s)",
        label,
        "succeeded" if success else "failed",
        len(attempts),
        attempts_count,
        candidate.marker_hex,
        extra={
            "label": label,
            "success": success,
            "attempts_tried": len(attempts),
            "attempts_count": attempts_count,
            "marker": candidate.marker,
        },
    )
    return outcome


@dataclass
class Resolver:
    """Bind a transaction factory and broadcaster for repeated resolutions."""

    construct_transaction: ConstructTransaction
    broadcast: Broadcast
    label: str = "STACKS"
    priority: Tuple[int, ...] = MARKER_PRIORITY
    logger: Optional[logging.Logger] = None

    def resolve(self, signature: str) -> ResolutionOutcome:
        return resolve(
            signature,
            self.construct_transaction,
            self.broadcast,
            self.label,
            priority=self.priority,
            logger=self.logger,
        )


__all__ = [
    "ACCEPTED",
    "REJECTED_BY_NETWORK",
    "SIGNATURE_VALIDATION",
    "THREW_DURING_CONSTRUCTION",
    "RecoveryAttemptResult",
    "ResolutionOutcome",
    "Resolver",
    "classify_response",
    "resolve",
]
