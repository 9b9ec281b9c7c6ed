"""
DineIn Core - keyed locks, the event bus and the injectable clock.
"""

from __future__ import annotations

import threading
import time
import uuid
from datetime import datetime, timedelta, timezone

import pytest

RID = uuid.uuid4()
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestKeyedLockTable:
    def test_key_helpers(self):
        from core.concurrency import offer_key, reservation_key, table_key, wallet_key

        assert table_key(RID, "T1") == f"table:{RID}:T1"
        assert offer_key("o1") == "offer:o1"
        assert reservation_key("r1") == "reservation:r1"
        assert wallet_key(RID) == f"wallet:{RID}"

    def test_reentrant(self):
        from core.concurrency import KeyedLockTable

        locks = KeyedLockTable()
        with locks.hold("offer:o1"):
            with locks.hold("offer:o1"):
                pass
        assert "offer:o1" in locks.known_keys()

    def test_empty_key_rejected(self):
        from core.concurrency import KeyedLockTable

        with pytest.raises(ValueError):
            with KeyedLockTable().hold(""):
                pass

    def test_same_key_serialises(self):
        from core.concurrency import KeyedLockTable

        locks = KeyedLockTable()
        inside = []
        overlaps = []

        def worker():
            with locks.hold("table:x"):
                inside.append(1)
                if len(inside) > 1:
                    overlaps.append(1)
                time.sleep(0.01)
                inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert overlaps == []

    def test_different_keys_do_not_block(self):
        from core.concurrency import KeyedLockTable

        locks = KeyedLockTable()
        acquired = threading.Event()

        def other():
            with locks.hold("table:b"):
                acquired.set()

        with locks.hold("table:a"):
            t = threading.Thread(target=other)
            t.start()
            assert acquired.wait(timeout=2)
        t.join()


class TestEventBus:
    def test_dispatch_in_registration_order_and_isolates_failures(self):
        from core.events import SubscriberRegistry, dispatch

        registry = SubscriberRegistry()
        calls = []

        def first(event):
            calls.append("first")

        def broken(event):
            raise RuntimeError("listener down")

        def last(event):
            calls.append("last")

        registry.register_subscriber("session.table.claimed.v1", first, "ordering")
        registry.register_subscriber("session.table.claimed.v1", broken, "wallet")
        registry.register_subscriber("session.table.claimed.v1", last, "ui")

        result = dispatch({"event_type": "session.table.claimed.v1",
                           "event_id": uuid.uuid4()}, registry)
        assert calls == ["first", "last"]
        assert result["subscribers_notified"] == 2
        assert result["subscribers_failed"] == 1
        assert result["failures"][0]["engine"] == "wallet"

    def test_self_subscription_blocked(self):
        from core.events import SelfSubscriptionError, SubscriberRegistry

        with pytest.raises(SelfSubscriptionError):
            SubscriberRegistry().register_subscriber(
                "wallet.transaction.recorded.v1", lambda e: None, "wallet")

    def test_duplicate_handler_blocked(self):
        from core.events import DuplicateSubscriberError, SubscriberRegistry

        def handler(event):
            return None

        registry = SubscriberRegistry()
        registry.register_subscriber("session.table.claimed.v1", handler, "ui")
        with pytest.raises(DuplicateSubscriberError):
            registry.register_subscriber("session.table.claimed.v1", handler, "ui")

    def test_unversioned_event_type_rejected(self):
        from core.events import InvalidEventTypeFormat, SubscriberRegistry

        for event_type in ("session.table.claimed", "settled", "Session.Table.Claimed.v1"):
            with pytest.raises(InvalidEventTypeFormat):
                SubscriberRegistry().register_subscriber(event_type, lambda e: None, "ui")

    def test_detached_listener_not_called(self):
        from core.events import SubscriberRegistry, dispatch

        calls = []
        registry = SubscriberRegistry()
        detach = registry.register_subscriber(
            "settlement.bill.settled.v1", lambda e: calls.append(e["event_id"]), "ui")
        detach()
        detach()

        result = dispatch({"event_type": "settlement.bill.settled.v1", "event_id": "1"}, registry)
        assert calls == []
        assert result["subscribers_notified"] == 0
        assert registry.get_subscribers("settlement.bill.settled.v1") == []

    def test_no_subscribers_is_not_an_error(self):
        from core.events import SubscriberRegistry, dispatch

        result = dispatch({"event_type": "a.b.c", "event_id": "1"}, SubscriberRegistry())
        assert result["subscribers_notified"] == 0


class TestClock:
    def test_fixed_clock_advances(self):
        from core.time import FixedClock

        clock = FixedClock(NOW)
        clock.advance(90)
        assert clock.now_utc() == NOW + timedelta(seconds=90)

    def test_naive_datetime_rejected(self):
        from core.time import FixedClock

        with pytest.raises(ValueError):
            FixedClock(datetime(2026, 1, 1))

    def test_window_is_inclusive_and_open_ended(self):
        from core.time import within_window

        assert within_window(NOW, NOW, NOW)
        assert within_window(NOW, None, None)
        assert not within_window(NOW, NOW + timedelta(seconds=1), None)
        assert not within_window(NOW, None, NOW - timedelta(seconds=1))
