"""
DineIn Integration - Adapter Utilities
========================================
Shared infrastructure for inbound adapters.

Adapters are stateless translators: they verify and parse what an
external system sends and hand a typed value to the engines. External
systems never write to engine projections directly.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any, Dict


# ══════════════════════════════════════════════════════════════
# ERROR HIERARCHY
# ══════════════════════════════════════════════════════════════

class IntegrationError(Exception):
    """Base error for all integration failures."""

    def __init__(self, message: str, system_id: str = "", retryable: bool = False):
        super().__init__(message)
        self.system_id = system_id
        self.retryable = retryable


class ValidationError(IntegrationError):
    """External payload failed validation (bad payload, missing fields)."""

    def __init__(self, message: str, system_id: str = ""):
        super().__init__(message, system_id=system_id, retryable=False)


class AuthenticationError(IntegrationError):
    """Signature verification failed."""

    def __init__(self, message: str, system_id: str = ""):
        super().__init__(message, system_id=system_id, retryable=False)


# ══════════════════════════════════════════════════════════════
# WEBHOOK SIGNATURES
# ══════════════════════════════════════════════════════════════

_ALGORITHMS = {
    "sha256": hashlib.sha256,
    "sha1": hashlib.sha1,
}


def sign_payload(payload_bytes: bytes, secret: str, algorithm: str = "sha256") -> str:
    """Hex HMAC of the raw body, as the gateway computes it."""
    digest = _ALGORITHMS.get(algorithm)
    if digest is None:
        raise ValueError(f"Unsupported signature algorithm '{algorithm}'.")
    return hmac.new(secret.encode("utf-8"), payload_bytes, digest).hexdigest()


def verify_hmac_signature(
    payload_bytes: bytes,
    signature: str,
    secret: str,
    algorithm: str = "sha256",
) -> bool:
    """
    Verify HMAC signature on an inbound webhook payload.

    Returns True if signature matches, False otherwise.
    """
    if algorithm not in _ALGORITHMS or not secret or not signature:
        return False
    expected = sign_payload(payload_bytes, secret, algorithm)
    return hmac.compare_digest(expected, signature)


def payload_hash(payload: Dict[str, Any]) -> str:
    """Deterministic hash of a parsed payload, for log correlation."""
    normalized = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
