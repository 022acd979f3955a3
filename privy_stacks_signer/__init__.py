"""Privy remote signing and recovery-id resolution for Stacks transactions."""
from __future__ import annotations

from .resolver import RecoveryAttemptResult, ResolutionOutcome, Resolver, classify_response, resolve
from .responses import build_broadcast_response
from .signatures import (
    MARKER_PRIORITY,
    SignatureCandidate,
    SignatureCandidates,
    SignatureFormatError,
    generate_candidates,
)

__all__ = [
    "MARKER_PRIORITY",
    "RecoveryAttemptResult",
    "ResolutionOutcome",
    "Resolver",
    "SignatureCandidate",
    "SignatureCandidates",
    "SignatureFormatError",
    "build_broadcast_response",
    "classify_response",
    "generate_candidates",
    "resolve",
]
