"""
DineIn Wallet Engine - Test Suite
===================================
Append-only ledger, derived balances, withdrawals and the postings made
in reaction to session and settlement events.
"""

import threading
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

RID = uuid.uuid4()
NOW = datetime(2026, 3, 1, 21, 0, 0, tzinfo=timezone.utc)


# ══════════════════════════════════════════════════════════════
# TEST HELPERS
# ══════════════════════════════════════════════════════════════

def kw(issued_at=NOW):
    return dict(
        restaurant_id=RID,
        actor_type="STAFF",
        actor_id="owner-1",
        command_id=uuid.uuid4(),
        correlation_id=uuid.uuid4(),
        issued_at=issued_at,
    )


class StubReg:
    def __init__(self):
        self._types = set()

    def register(self, event_type):
        self._types.add(event_type)

    def is_registered(self, event_type):
        return event_type in self._types


class StubFactory:
    def __call__(self, *, command, event_type, payload, event_id=None):
        return {"event_id": event_id or command.command_id,
                "event_type": event_type, "payload": payload}


class StubPersist:
    """Rejects a repeated event_id the way the real store does."""

    def __init__(self):
        self.calls = []
        self._ids = set()
        self._lock = threading.Lock()

    def __call__(self, *, event_data, context, registry, **kwargs):
        with self._lock:
            if event_data["event_id"] in self._ids:
                return {"accepted": False,
                        "rejection": {"code": "DUPLICATE_EVENT_ID"}}
            self._ids.add(event_data["event_id"])
            self.calls.append(event_data)
        return {"accepted": True}


class StubBus:
    def __init__(self):
        self.handlers = {}

    def register_handler(self, command_type, handler):
        self.handlers[command_type] = handler


def _service():
    from core.concurrency import KeyedLockTable
    from engines.wallet.services import WalletService

    persist = StubPersist()
    svc = WalletService(restaurant_context=None, command_bus=StubBus(),
                        event_factory=StubFactory(), persist_event=persist,
                        event_type_registry=StubReg(), locks=KeyedLockTable())
    return svc, persist


def _post(svc, amount, tx_type="bill_payment", status="completed", reference=None,
          issued_at=NOW):
    from engines.wallet.commands import TransactionPostRequest

    request = TransactionPostRequest(
        transaction_id=uuid.uuid4().hex, tx_type=tx_type, amount=Decimal(amount),
        status=status, reference=reference or uuid.uuid4().hex,
    )
    svc._execute_command(request.to_command(**kw(issued_at)))
    return svc.projection_store.get_transaction(request.transaction_id)


def _withdraw(svc, amount):
    from engines.wallet.commands import WithdrawalRequest

    request = WithdrawalRequest(transaction_id=uuid.uuid4().hex, amount=Decimal(amount),
                                destination="bank-1")
    return svc._execute_command(request.to_command(**kw()))


def _event(event_type, payload, event_id=None):
    return {
        "event_id": event_id or uuid.uuid4(),
        "event_type": event_type,
        "restaurant_id": RID,
        "correlation_id": uuid.uuid4(),
        "created_at": NOW,
        "payload": payload,
    }


# ══════════════════════════════════════════════════════════════
# COMMANDS
# ══════════════════════════════════════════════════════════════

class TestWalletCommands:
    def test_sign_matches_type(self):
        from engines.wallet.commands import TransactionPostRequest

        with pytest.raises(ValueError, match="negative"):
            TransactionPostRequest(transaction_id="t", tx_type="withdrawal",
                                   amount=Decimal("5"), reference="r")
        with pytest.raises(ValueError, match="positive"):
            TransactionPostRequest(transaction_id="t", tx_type="bill_payment",
                                   amount=Decimal("-5"), reference="r")

    def test_zero_rejected(self):
        from engines.wallet.commands import TransactionPostRequest

        with pytest.raises(ValueError, match="non-zero"):
            TransactionPostRequest(transaction_id="t", tx_type="bill_payment",
                                   amount=Decimal("0"), reference="r")

    def test_cannot_post_failed(self):
        from engines.wallet.commands import TransactionPostRequest

        with pytest.raises(ValueError):
            TransactionPostRequest(transaction_id="t", tx_type="bill_payment",
                                   amount=Decimal("1"), reference="r", status="failed")


# ══════════════════════════════════════════════════════════════
# LEDGER
# ══════════════════════════════════════════════════════════════

class TestLedger:
    def test_balances_derived_from_log(self):
        svc, _ = _service()
        _post(svc, "100.00")
        _post(svc, "8.00", tx_type="reservation", status="pending")
        _post(svc, "-20.00", tx_type="subscription")
        _withdraw(svc, "30.00")

        stats = svc.get_wallet_stats(RID)
        assert stats.available_balance == Decimal("50.00")
        assert stats.pending_balance == Decimal("8.00")
        assert stats.total_earnings == Decimal("100.00")
        assert stats.total_withdrawn == Decimal("30.00")
        assert stats.to_dict()["available_balance"] == Decimal("50.00")

    def test_withdrawal_over_balance_rejected(self):
        from core.errors import InsufficientBalanceError

        svc, _ = _service()
        _post(svc, "10.00")
        _post(svc, "50.00", tx_type="reservation", status="pending")
        with pytest.raises(InsufficientBalanceError, match="Available balance 10.00"):
            _withdraw(svc, "10.01")

    def test_reference_is_unique(self):
        from core.errors import ValidationFailure

        svc, _ = _service()
        _post(svc, "5.00", reference="settlement:s1")
        with pytest.raises(ValidationFailure) as info:
            _post(svc, "5.00", reference="settlement:s1")
        assert info.value.code == "TRANSACTION_ALREADY_EXISTS"

    def test_only_pending_changes_status(self):
        from core.errors import InvalidTransitionError
        from engines.wallet.commands import TransactionStatusRequest

        svc, _ = _service()
        tx = _post(svc, "5.00", tx_type="reservation", status="pending")
        svc._execute_command(TransactionStatusRequest(
            transaction_id=tx.transaction_id, status="completed").to_command(**kw()))
        assert tx.status == "completed"
        assert tx.amount == Decimal("5.00")
        with pytest.raises(InvalidTransitionError):
            svc._execute_command(TransactionStatusRequest(
                transaction_id=tx.transaction_id, status="failed").to_command(**kw()))

    def test_list_transactions_by_window(self):
        svc, _ = _service()
        _post(svc, "1.00", issued_at=NOW - timedelta(days=2))
        _post(svc, "2.00", issued_at=NOW)
        recent = svc.list_transactions(RID, since=NOW - timedelta(days=1))
        assert [t.amount for t in recent] == [Decimal("2.00")]
        assert len(svc.list_transactions(RID)) == 2

    def test_concurrent_withdrawals_never_overdraw(self):
        from core.errors import InsufficientBalanceError

        svc, _ = _service()
        _post(svc, "100.00")
        barrier = threading.Barrier(8)
        outcomes = []
        guard = threading.Lock()

        def worker():
            barrier.wait()
            try:
                _withdraw(svc, "30.00")
                result = "ok"
            except InsufficientBalanceError:
                result = "refused"
            with guard:
                outcomes.append(result)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 3
        assert svc.get_wallet_stats(RID).available_balance == Decimal("10.00")


# ══════════════════════════════════════════════════════════════
# SUBSCRIPTIONS
# ══════════════════════════════════════════════════════════════

class TestWalletSubscriptions:
    def _claimed(self, amount_paid="10.00"):
        return _event("session.table.claimed.v1", {
            "reservation_id": "r1", "table_id": "T1",
            "amount_paid": Decimal(amount_paid),
            "expected_split": {"platform_share": Decimal("2.00"),
                               "restaurant_share": Decimal("8.00")},
        })

    def _settled(self, net_total="37.00", event_id=None):
        return _event("settlement.bill.settled.v1", {
            "reservation_id": "r1", "settlement_id": "s1",
            "bill_snapshot": {
                "net_total": Decimal(net_total), "payment_method": "counter",
                "menu_subtotal": Decimal("40.00"), "discount_amount": Decimal("3.00"),
                "order_ids": ["o1", "o2"],
            },
        }, event_id=event_id)

    def test_booking_fee_posted_pending(self):
        from engines.wallet.subscriptions import WalletSubscriptionHandler, fee_reference

        svc, _ = _service()
        WalletSubscriptionHandler(svc).handle_table_claimed(self._claimed())
        tx = svc.projection_store.get_by_reference(fee_reference("r1"))
        assert tx.status == "pending"
        assert tx.amount == Decimal("8.00")
        assert svc.get_wallet_stats(RID).pending_balance == Decimal("8.00")

    def test_no_fee_no_entry(self):
        from engines.wallet.subscriptions import WalletSubscriptionHandler

        svc, _ = _service()
        WalletSubscriptionHandler(svc).handle_table_claimed(self._claimed("0"))
        assert svc.list_transactions(RID) == []

    def test_settlement_posts_bill_and_completes_fee(self):
        from engines.wallet.subscriptions import (
            WalletSubscriptionHandler,
            fee_reference,
            settlement_reference,
        )

        svc, _ = _service()
        handler = WalletSubscriptionHandler(svc)
        handler.handle_table_claimed(self._claimed())
        handler.handle_bill_settled(self._settled())

        store = svc.projection_store
        bill = store.get_by_reference(settlement_reference("s1"))
        assert bill.amount == Decimal("37.00")
        assert bill.order_id == "o1"
        assert bill.metadata["discount_amount"] == Decimal("3.00")
        assert store.get_by_reference(fee_reference("r1")).status == "completed"
        assert svc.get_wallet_stats(RID).available_balance == Decimal("45.00")

    def test_redispatch_does_not_double_post(self):
        from engines.wallet.subscriptions import WalletSubscriptionHandler

        svc, _ = _service()
        handler = WalletSubscriptionHandler(svc)
        event = self._settled()
        handler.handle_bill_settled(event)
        handler.handle_bill_settled(event)
        assert len(svc.list_transactions(RID)) == 1

    def test_zero_net_total_posts_nothing(self):
        from engines.wallet.subscriptions import WalletSubscriptionHandler

        svc, _ = _service()
        WalletSubscriptionHandler(svc).handle_bill_settled(self._settled("0.00"))
        assert svc.list_transactions(RID) == []

    def test_cancellation_fails_fee_and_posts_share(self):
        from engines.wallet.subscriptions import (
            WalletSubscriptionHandler,
            cancellation_reference,
            fee_reference,
        )

        svc, _ = _service()
        handler = WalletSubscriptionHandler(svc)
        handler.handle_table_claimed(self._claimed())
        handler.handle_reservation_released(_event("session.reservation.cancelled.v1", {
            "reservation_id": "r1",
            "revenue_split": {"platform_share": Decimal("3.00"),
                              "restaurant_share": Decimal("2.00"),
                              "refund_amount": Decimal("5.00")},
        }))

        store = svc.projection_store
        assert store.get_by_reference(fee_reference("r1")).status == "failed"
        share = store.get_by_reference(cancellation_reference("r1"))
        assert share.amount == Decimal("2.00")
        assert share.metadata["refund_amount"] == Decimal("5.00")
        stats = svc.get_wallet_stats(RID)
        assert stats.available_balance == Decimal("2.00")
        assert stats.pending_balance == Decimal("0")

    def test_no_service_is_a_no_op(self):
        from engines.wallet.subscriptions import WalletSubscriptionHandler

        WalletSubscriptionHandler(None).handle_bill_settled(self._settled())
