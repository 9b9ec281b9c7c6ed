"""
DineIn Integration Layer - Public API
=======================================
Controlled gateway for external system communication.

Inbound: gateway callback → verify → parse → settlement
"""

from integration.adapters import (
    AuthenticationError,
    IntegrationError,
    ValidationError,
    sign_payload,
    verify_hmac_signature,
)
from integration.payment_gateway import (
    SIGNATURE_HEADER,
    PaymentCallback,
    PaymentGatewayAdapter,
)

__all__ = [
    "sign_payload",
    "verify_hmac_signature",
    "IntegrationError",
    "ValidationError",
    "AuthenticationError",
    "PaymentCallback",
    "PaymentGatewayAdapter",
    "SIGNATURE_HEADER",
]
