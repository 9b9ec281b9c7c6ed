"""
DineIn Django Adapter Views
=============================
Thin JSON views over DineInApi.

Success: {"ok": true, "data": ...}
Failure: {"ok": false, "error": {"code", "kind", "message", "retryable", "details"}}

Status by error kind: validation 400, conflict 409, external 502,
consistency 500. External and consistency errors show the generic
message; the full one is in the log.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Callable

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from adapters.django_api.wiring import get_api
from core.errors import DineInError, TableOccupiedError
from integration.payment_gateway import SIGNATURE_HEADER

logger = logging.getLogger("dinein.api")

_STATUS_BY_KIND = {
    "validation": 400,
    "conflict": 409,
    "external": 502,
    "consistency": 500,
}


def _json_error(code: str, message: str, status: int = 400,
                details: dict | None = None) -> JsonResponse:
    return JsonResponse(
        {"ok": False, "error": {"code": code, "message": message,
                                "details": details or {}}},
        status=status,
    )


def _json_ok(data: Any, status: int = 200) -> JsonResponse:
    return JsonResponse({"ok": True, "data": data}, status=status)


def _error_response(exc: DineInError) -> JsonResponse:
    body = exc.to_dict()
    details = {}
    if isinstance(exc, TableOccupiedError):
        details = {"occupant_reservation_id": exc.occupant_reservation_id,
                   "occupant_user_id": exc.occupant_user_id}
    body["details"] = details
    return JsonResponse({"ok": False, "error": body},
                        status=_STATUS_BY_KIND.get(exc.kind, 500))


def _parse_uuid(value: Any, field_name: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise ValueError(f"{field_name} must be a valid UUID.") from exc


def _parse_json_body(request: HttpRequest) -> dict[str, Any]:
    if not request.body:
        return {}
    try:
        parsed = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise ValueError("Request body must be valid JSON.") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Request body must be a JSON object.")
    return parsed


def _method_not_allowed() -> JsonResponse:
    return _json_error(
        "METHOD_NOT_ALLOWED",
        "Method not allowed for this endpoint.",
        status=405,
    )


def _run(action: Callable[[], Any], status: int = 200) -> JsonResponse:
    try:
        return _json_ok(action(), status=status)
    except DineInError as exc:
        return _error_response(exc)
    except (ValueError, KeyError) as exc:
        return _json_error("INVALID_REQUEST", str(exc), status=400)


def _write_view(handler: Callable[[dict], Any], status: int = 200):
    @csrf_exempt
    def view(request: HttpRequest) -> JsonResponse:
        if request.method != "POST":
            return _method_not_allowed()
        try:
            body = _parse_json_body(request)
        except ValueError as exc:
            return _json_error("INVALID_REQUEST", str(exc), status=400)
        return _run(lambda: handler(body), status=status)
    return view


def _read_view(handler: Callable[[dict], Any]):
    def view(request: HttpRequest) -> JsonResponse:
        if request.method != "GET":
            return _method_not_allowed()
        return _run(lambda: handler(request.GET))
    return view


# ══════════════════════════════════════════════════════════════
# TABLES AND RESERVATIONS
# ══════════════════════════════════════════════════════════════

def _register_table(body: dict) -> dict:
    table = get_api().register_table(
        _parse_uuid(body["restaurant_id"], "restaurant_id"),
        body["table_id"], body["name"], int(body["seats"]), body.get("area", ""),
    )
    return table.to_dict()


def _claim_table(body: dict) -> dict:
    reservation = get_api().claim_table(
        _parse_uuid(body["restaurant_id"], "restaurant_id"),
        body["table_id"], body["user_id"], body.get("user_name", ""),
    )
    return reservation.to_dict()


def _accept_reservation(body: dict) -> dict:
    return get_api().accept_reservation(
        _parse_uuid(body["restaurant_id"], "restaurant_id"), body["reservation_id"],
    ).to_dict()


def _place_order(body: dict) -> dict:
    items = body["items"]
    if not isinstance(items, list):
        raise ValueError("items must be a list.")
    order = get_api().place_order(
        _parse_uuid(body["restaurant_id"], "restaurant_id"), body["reservation_id"], items,
    )
    return order.to_dict()


# ══════════════════════════════════════════════════════════════
# BILL AND PAYMENT
# ══════════════════════════════════════════════════════════════

def _live_bill(query) -> dict:
    return get_api().get_live_bill(
        _parse_uuid(query["restaurant_id"], "restaurant_id"), query["reservation_id"],
    ).to_dict()


def _apply_coupon(body: dict) -> dict:
    discount = get_api().apply_coupon(
        _parse_uuid(body["restaurant_id"], "restaurant_id"),
        body["reservation_id"], body["code"],
    )
    return {"discount_amount": discount}


def _request_counter_payment(body: dict) -> dict:
    total = get_api().request_counter_payment(
        _parse_uuid(body["restaurant_id"], "restaurant_id"), body["reservation_id"],
    )
    return {"total_bill_amount": total}


def _confirm_counter_payment(body: dict) -> dict:
    return get_api().confirm_counter_payment(
        _parse_uuid(body["restaurant_id"], "restaurant_id"), body["reservation_id"],
    ).to_dict()


def _wallet_stats(query) -> dict:
    return get_api().get_wallet_stats(
        _parse_uuid(query["restaurant_id"], "restaurant_id"),
    ).to_dict()


@csrf_exempt
def payment_webhook_view(request: HttpRequest) -> JsonResponse:
    """Raw body is passed through untouched: the signature covers its bytes."""
    if request.method != "POST":
        return _method_not_allowed()
    signature = request.headers.get(SIGNATURE_HEADER, "")
    return _run(lambda: get_api().handle_payment_callback(request.body, signature).to_dict())


register_table_view = _write_view(_register_table, status=201)
claim_table_view = _write_view(_claim_table, status=201)
accept_reservation_view = _write_view(_accept_reservation)
place_order_view = _write_view(_place_order, status=201)
live_bill_view = _read_view(_live_bill)
apply_coupon_view = _write_view(_apply_coupon)
request_counter_payment_view = _write_view(_request_counter_payment)
confirm_counter_payment_view = _write_view(_confirm_counter_payment)
wallet_stats_view = _read_view(_wallet_stats)
