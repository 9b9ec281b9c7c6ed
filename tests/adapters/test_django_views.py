"""
DineIn Django Adapter - View Tests
====================================
JSON envelope, status codes by error kind, and the signed webhook path.
"""

import json
import uuid
from decimal import Decimal

import pytest
from django.test import Client, override_settings

RID = uuid.uuid4()
SECRET = "whsec-views"

MEMORY = {"ONLINE_FEE_RATE": "3", "PAYMENT_GATEWAY_SECRET": SECRET, "EVENT_STORE": "memory"}


@pytest.fixture
def client():
    from adapters.django_api.wiring import get_api, reset_api
    from engines.ordering.catalog import MenuItem

    with override_settings(DINEIN=MEMORY):
        reset_api()
        get_api().catalog.put(RID, MenuItem(menu_item_id="soup", name="Soup",
                                            price=Decimal("8.50")))
        yield Client()
        reset_api()


def _post(client, url, body):
    return client.post(url, data=json.dumps(body), content_type="application/json")


def _seat(client, table_id="T1", user_id="guest-1"):
    _post(client, "/v1/tables/register",
          {"restaurant_id": str(RID), "table_id": table_id, "name": "Patio", "seats": 2})
    resp = _post(client, "/v1/tables/claim",
                 {"restaurant_id": str(RID), "table_id": table_id, "user_id": user_id})
    res_id = resp.json()["data"]["reservation_id"]
    _post(client, "/v1/reservations/accept",
          {"restaurant_id": str(RID), "reservation_id": res_id})
    return res_id


class TestTableViews:
    def test_register_and_claim(self, client):
        resp = _post(client, "/v1/tables/register",
                     {"restaurant_id": str(RID), "table_id": "T1", "name": "Patio", "seats": 2})
        assert resp.status_code == 201
        assert resp.json() == {"ok": True, "data": {
            "table_id": "T1", "restaurant_id": str(RID), "name": "Patio", "seats": 2,
            "area": "", "status": "available", "current_reservation_id": None,
        }}

        resp = _post(client, "/v1/tables/claim",
                     {"restaurant_id": str(RID), "table_id": "T1", "user_id": "guest-1"})
        assert resp.status_code == 201
        assert resp.json()["data"]["status"] == "pending"

    def test_occupied_table_is_conflict(self, client):
        res_id = _seat(client)
        resp = _post(client, "/v1/tables/claim",
                     {"restaurant_id": str(RID), "table_id": "T1", "user_id": "guest-2"})
        assert resp.status_code == 409
        error = resp.json()["error"]
        assert error["code"] == "TABLE_OCCUPIED"
        assert error["kind"] == "conflict"
        assert error["retryable"] is True
        assert error["details"]["occupant_reservation_id"] == res_id
        assert error["details"]["occupant_user_id"] == "guest-1"

    def test_unknown_table_is_validation(self, client):
        resp = _post(client, "/v1/tables/claim",
                     {"restaurant_id": str(RID), "table_id": "nope", "user_id": "guest-1"})
        assert resp.status_code == 400
        assert resp.json()["error"]["kind"] == "validation"


class TestRequestHandling:
    def test_get_on_write_endpoint(self, client):
        resp = client.get("/v1/tables/register")
        assert resp.status_code == 405
        assert resp.json()["error"]["code"] == "METHOD_NOT_ALLOWED"

    def test_post_on_read_endpoint(self, client):
        assert _post(client, "/v1/wallet/stats", {}).status_code == 405

    def test_invalid_json(self, client):
        resp = client.post("/v1/tables/register", data="{not json",
                           content_type="application/json")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "INVALID_REQUEST"

    def test_missing_field(self, client):
        resp = _post(client, "/v1/tables/register", {"restaurant_id": str(RID)})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "INVALID_REQUEST"

    def test_bad_restaurant_id(self, client):
        resp = client.get("/v1/wallet/stats", {"restaurant_id": "abc"})
        assert resp.status_code == 400
        assert "UUID" in resp.json()["error"]["message"]


class TestBillAndPaymentViews:
    def test_order_bill_and_counter_payment(self, client):
        res_id = _seat(client)
        resp = _post(client, "/v1/orders/place", {
            "restaurant_id": str(RID), "reservation_id": res_id,
            "items": [{"menu_item_id": "soup", "quantity": 2}],
        })
        assert resp.status_code == 201
        assert Decimal(resp.json()["data"]["total_amount"]) == Decimal("17.00")

        resp = client.get("/v1/bill", {"restaurant_id": str(RID), "reservation_id": res_id})
        bill = resp.json()["data"]
        assert Decimal(bill["net_total"]) == Decimal("17.00")
        assert bill["items"][0]["quantity"] == 2

        resp = _post(client, "/v1/payments/counter/request",
                     {"restaurant_id": str(RID), "reservation_id": res_id})
        assert Decimal(resp.json()["data"]["total_bill_amount"]) == Decimal("17.00")

        resp = _post(client, "/v1/payments/counter/confirm",
                     {"restaurant_id": str(RID), "reservation_id": res_id})
        assert resp.status_code == 200
        assert resp.json()["data"]["payment_method"] == "counter"

        resp = client.get("/v1/wallet/stats", {"restaurant_id": str(RID)})
        assert resp.json()["data"]["available_balance"] == "17.00"

    def test_items_must_be_list(self, client):
        res_id = _seat(client)
        resp = _post(client, "/v1/orders/place",
                     {"restaurant_id": str(RID), "reservation_id": res_id, "items": "soup"})
        assert resp.status_code == 400

    def test_unknown_coupon(self, client):
        res_id = _seat(client)
        resp = _post(client, "/v1/coupons/apply",
                     {"restaurant_id": str(RID), "reservation_id": res_id, "code": "NOPE"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "COUPON_NOT_APPLICABLE"


class TestWebhookView:
    def _callback(self, res_id, amount="17.51"):
        return json.dumps({
            "reservation_id": res_id, "restaurant_id": str(RID),
            "transaction_id": "tx-77", "amount": amount, "status": "captured",
        }).encode("utf-8")

    def _send(self, client, body, signature):
        return client.post("/v1/payments/webhook", data=body,
                           content_type="application/json",
                           headers={"X-Gateway-Signature": signature})

    def test_signed_callback_settles(self, client):
        from integration.adapters import sign_payload

        res_id = _seat(client)
        _post(client, "/v1/orders/place", {"restaurant_id": str(RID), "reservation_id": res_id,
                                           "items": [{"menu_item_id": "soup", "quantity": 2}]})
        body = self._callback(res_id)

        resp = self._send(client, body, sign_payload(body, SECRET))
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["transaction_id"] == "tx-77"
        assert data["amount_charged"] == "17.51"

    def test_bad_signature_shows_generic_message(self, client):
        res_id = _seat(client)
        resp = self._send(client, self._callback(res_id), "deadbeef")
        assert resp.status_code == 502
        error = resp.json()["error"]
        assert error["code"] == "PAYMENT_CALLBACK_REJECTED"
        assert error["message"] == "Something went wrong, please try again."

    def test_webhook_is_post_only(self, client):
        assert client.get("/v1/payments/webhook").status_code == 405


@pytest.mark.django_db(transaction=True)
def test_database_event_store_wiring():
    from adapters.django_api.wiring import get_api, reset_api
    from core.event_store.models import Event

    settings = dict(MEMORY, EVENT_STORE="database")
    with override_settings(DINEIN=settings):
        reset_api()
        try:
            resp = _post(Client(), "/v1/tables/register",
                         {"restaurant_id": str(RID), "table_id": "T9", "name": "Bar", "seats": 1})
            assert resp.status_code == 201
            assert get_api().session.projection_store.get_table(RID, "T9") is not None
            assert Event.objects.filter(event_type="session.table.registered.v1").count() == 1
        finally:
            reset_api()


@pytest.mark.django_db(transaction=True)
def test_database_store_survives_restart():
    from adapters.django_api.wiring import get_api, reset_api
    from engines.ordering.catalog import MenuItem

    settings = dict(MEMORY, EVENT_STORE="database")
    with override_settings(DINEIN=settings):
        reset_api()
        try:
            get_api().catalog.put(RID, MenuItem(menu_item_id="soup", name="Soup",
                                                price=Decimal("8.50")))
            client = Client()
            res_id = _seat(client)
            _post(client, "/v1/orders/place", {"restaurant_id": str(RID), "reservation_id": res_id,
                                               "items": [{"menu_item_id": "soup", "quantity": 2}]})
            first = _post(client, "/v1/payments/counter/confirm",
                          {"restaurant_id": str(RID), "reservation_id": res_id}).json()["data"]

            # a new process starts with empty projections
            reset_api()
            api = get_api()

            resp = client.get("/v1/wallet/stats", {"restaurant_id": str(RID)})
            assert resp.json()["data"]["available_balance"] == "17.00"
            reservation = api.session.projection_store.get_reservation(res_id)
            assert reservation.status == "completed"
            assert reservation.total_bill_amount == Decimal("17.00")
            assert api.session.projection_store.get_table(RID, "T1").status == "available"

            again = _post(client, "/v1/payments/counter/confirm",
                          {"restaurant_id": str(RID), "reservation_id": res_id})
            assert again.status_code == 200
            assert again.json()["data"]["settlement_id"] == first["settlement_id"]
            assert len(api.list_transactions(RID)) == 1
        finally:
            reset_api()
