"""
DineIn Integration - Payment Gateway Callback
===============================================
The online payment path starts here:

    raw body + signature → HMAC check → JSON → required fields
      → captured? → PaymentCallback

Every failure raises PaymentCallbackRejectedError before anything is
handed to settlement, so a rejected callback never touches table,
reservation or ledger state.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

from core.errors import PaymentCallbackRejectedError
from core.primitives.money import ZERO, to_money
from integration.adapters import (
    AuthenticationError,
    IntegrationError,
    ValidationError,
    payload_hash,
    verify_hmac_signature,
)

logger = logging.getLogger("dinein.integration")

REQUIRED_FIELDS = ("reservation_id", "restaurant_id", "transaction_id", "amount", "status")
STATUS_CAPTURED = "captured"
SIGNATURE_HEADER = "X-Gateway-Signature"


@dataclass(frozen=True)
class PaymentCallback:
    reservation_id: str
    restaurant_id: uuid.UUID
    transaction_id: str
    amount: Decimal
    status: str


class PaymentGatewayAdapter:
    """
    Verifies and parses gateway callbacks.

    Usage:
        adapter = PaymentGatewayAdapter(secret="...")
        callback = adapter.verify(request.body, request.headers[SIGNATURE_HEADER])
    """

    system_type = "payment_gateway"

    def __init__(self, secret: str, system_id: str = "gateway", algorithm: str = "sha256"):
        self._secret = secret
        self._algorithm = algorithm
        self.system_id = system_id

    def verify(self, body: bytes, signature: str) -> PaymentCallback:
        try:
            return self._parse(body, signature)
        except IntegrationError as exc:
            logger.error(f"Payment callback from {self.system_id} rejected: {exc}")
            raise PaymentCallbackRejectedError(str(exc)) from exc

    def _parse(self, body: bytes, signature: str) -> PaymentCallback:
        if not verify_hmac_signature(body, signature or "", self._secret, self._algorithm):
            raise AuthenticationError("Invalid callback signature.", system_id=self.system_id)

        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise ValidationError(f"Callback body is not JSON: {exc}", system_id=self.system_id)
        if not isinstance(payload, dict):
            raise ValidationError("Callback body must be a JSON object.", system_id=self.system_id)

        self._validate(payload)
        logger.info(
            f"Payment callback {payload['transaction_id']} for reservation "
            f"{payload['reservation_id']} verified ({payload_hash(payload)[:12]})"
        )
        return PaymentCallback(
            reservation_id=str(payload["reservation_id"]),
            restaurant_id=uuid.UUID(str(payload["restaurant_id"])),
            transaction_id=str(payload["transaction_id"]),
            amount=to_money(str(payload["amount"])),
            status=payload["status"],
        )

    def _validate(self, payload: Dict[str, Any]) -> None:
        missing = [name for name in REQUIRED_FIELDS if payload.get(name) in (None, "")]
        if missing:
            raise ValidationError(
                f"Callback is missing required fields: {', '.join(missing)}",
                system_id=self.system_id,
            )

        if payload["status"] != STATUS_CAPTURED:
            raise ValidationError(
                f"Payment status is '{payload['status']}', not '{STATUS_CAPTURED}'.",
                system_id=self.system_id,
            )

        try:
            uuid.UUID(str(payload["restaurant_id"]))
        except ValueError:
            raise ValidationError("restaurant_id must be a valid UUID.", system_id=self.system_id)

        try:
            amount = Decimal(str(payload["amount"]))
        except InvalidOperation:
            raise ValidationError("amount must be a decimal number.", system_id=self.system_id)
        if not amount.is_finite() or amount <= ZERO:
            raise ValidationError("amount must be positive.", system_id=self.system_id)
