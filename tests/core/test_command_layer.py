"""
DineIn Core - Command contract, bus routing and the error taxonomy.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest

RID = uuid.uuid4()
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def kw(**overrides):
    base = dict(
        command_id=uuid.uuid4(),
        command_type="session.table.claim.request",
        restaurant_id=RID,
        actor_type="GUEST",
        actor_id="guest-1",
        payload={"table_id": "T1"},
        issued_at=NOW,
        correlation_id=uuid.uuid4(),
        source_engine="session",
    )
    base.update(overrides)
    return base


class StubHandler:
    def __init__(self, error=None):
        self.seen = []
        self.error = error

    def execute(self, command):
        self.seen.append(command)
        if self.error is not None:
            raise self.error
        return "done"


# ══════════════════════════════════════════════════════════════
# COMMAND CONTRACT
# ══════════════════════════════════════════════════════════════


class TestCommand:
    def test_valid_command(self):
        from core.commands.base import Command

        cmd = Command(**kw())
        assert cmd.command_type == "session.table.claim.request"

    def test_type_must_end_with_request(self):
        from core.commands.base import Command

        with pytest.raises(ValueError, match=".request"):
            Command(**kw(command_type="session.table.claim"))

    def test_type_needs_four_segments(self):
        from core.commands.base import Command

        with pytest.raises(ValueError, match="4 segments"):
            Command(**kw(command_type="session.claim.request"))

    def test_namespace_must_match_engine(self):
        from core.commands.base import Command

        with pytest.raises(ValueError, match="does not match"):
            Command(**kw(source_engine="ordering"))

    def test_unknown_actor_type(self):
        from core.commands.base import Command

        with pytest.raises(ValueError, match="actor_type"):
            Command(**kw(actor_type="ROBOT"))

    def test_restaurant_id_must_be_uuid(self):
        from core.commands.base import Command

        with pytest.raises(ValueError, match="restaurant_id"):
            Command(**kw(restaurant_id=str(RID)))

    def test_payload_must_be_dict(self):
        from core.commands.base import Command

        with pytest.raises(TypeError):
            Command(**kw(payload=["T1"]))

    def test_frozen(self):
        from core.commands.base import Command

        cmd = Command(**kw())
        with pytest.raises(Exception):
            cmd.actor_id = "someone-else"


class TestDerivedIds:
    def test_same_event_same_engine_same_id(self):
        from core.commands.base import derive_command_id

        event_id = uuid.uuid4()
        assert derive_command_id(event_id, "wallet") == derive_command_id(str(event_id), "wallet")

    def test_engines_get_distinct_ids(self):
        from core.commands.base import derive_command_id

        event_id = uuid.uuid4()
        assert derive_command_id(event_id, "wallet") != derive_command_id(event_id, "offers")

    def test_command_id_must_be_uuid(self):
        from core.commands.base import Command

        with pytest.raises(ValueError, match="command_id"):
            Command(**kw(command_id="cmd-1"))


# ══════════════════════════════════════════════════════════════
# COMMAND BUS
# ══════════════════════════════════════════════════════════════


class TestCommandBus:
    def test_routes_to_handler(self):
        from core.commands.base import Command
        from core.commands.bus import CommandBus

        bus = CommandBus()
        handler = StubHandler()
        bus.register_handler("session.table.claim.request", handler)
        assert bus.handle(Command(**kw())) == "done"
        assert len(handler.seen) == 1

    def test_no_handler(self):
        from core.commands.base import Command
        from core.commands.bus import CommandBus, NoHandlerRegistered

        with pytest.raises(NoHandlerRegistered):
            CommandBus().handle(Command(**kw()))

    def test_duplicate_registration_rejected(self):
        from core.commands.bus import CommandBus, DuplicateHandlerError

        bus = CommandBus()
        bus.register_handler("session.table.claim.request", StubHandler())
        with pytest.raises(DuplicateHandlerError):
            bus.register_handler("session.table.claim.request", StubHandler())

    def test_handler_needs_execute(self):
        from core.commands.bus import CommandBus

        with pytest.raises(TypeError):
            CommandBus().register_handler("session.table.claim.request", object())

    def test_typed_errors_propagate_unchanged(self):
        from core.commands.base import Command
        from core.commands.bus import CommandBus
        from core.errors import TableOccupiedError

        error = TableOccupiedError("Table 'T1' is occupied by another guest.")
        bus = CommandBus()
        bus.register_handler("session.table.claim.request", StubHandler(error=error))
        with pytest.raises(TableOccupiedError) as info:
            bus.handle(Command(**kw()))
        assert info.value is error


# ══════════════════════════════════════════════════════════════
# ERRORS
# ══════════════════════════════════════════════════════════════


class TestErrorTaxonomy:
    def test_kinds(self):
        from core.errors import (
            DuplicateSettlementError,
            OfferExhaustedError,
            PaymentCallbackRejectedError,
            TableNotFoundError,
        )

        assert TableNotFoundError("x").kind == "validation"
        assert OfferExhaustedError("x").kind == "conflict"
        assert PaymentCallbackRejectedError("x").kind == "external"
        assert DuplicateSettlementError("x").kind == "consistency"

    def test_conflicts_are_retryable_except_amount_mismatch(self):
        from core.errors import OfferExhaustedError, PaymentAmountMismatchError

        assert OfferExhaustedError("x").retryable is True
        assert PaymentAmountMismatchError("x").retryable is False

    def test_internal_detail_hidden_from_users(self):
        from core.errors import GENERIC_USER_MESSAGE, ProjectionConsistencyError

        body = ProjectionConsistencyError("wallet listener blew up").to_dict()
        assert body["message"] == GENERIC_USER_MESSAGE
        assert body["code"] == "PROJECTION_INCONSISTENT"

    def test_validation_message_shown(self):
        from core.errors import CouponNotApplicableError

        body = CouponNotApplicableError("Coupon has expired.").to_dict()
        assert body == {
            "code": "COUPON_NOT_APPLICABLE",
            "kind": "validation",
            "message": "Coupon has expired.",
            "retryable": False,
        }

    def test_occupant_details(self):
        from core.errors import TableOccupiedError

        exc = TableOccupiedError("busy", occupant_user_id="u1",
                                 occupant_reservation_id="r1")
        assert exc.is_held_by("u1")
        assert not exc.is_held_by("u2")


class TestRaiseForRejection:
    def test_mapped_code(self):
        from core.commands.rejection import RejectionReason
        from core.engines.execution import raise_for_rejection
        from core.errors import OfferExhaustedError

        reason = RejectionReason(code="OFFER_EXHAUSTED", message="Used up.",
                                 policy_name="budget")
        with pytest.raises(OfferExhaustedError) as info:
            raise_for_rejection(reason, {"OFFER_EXHAUSTED": OfferExhaustedError})
        assert info.value.policy_name == "budget"

    def test_unmapped_code_is_validation(self):
        from core.commands.rejection import RejectionReason
        from core.engines.execution import raise_for_rejection
        from core.errors import ValidationFailure

        reason = RejectionReason(code="ORDER_NOT_OPEN", message="Closed.",
                                 policy_name="open")
        with pytest.raises(ValidationFailure) as info:
            raise_for_rejection(reason, {})
        assert info.value.code == "ORDER_NOT_OPEN"

    def test_first_rejection_wins(self):
        from core.commands.base import Command
        from core.commands.rejection import RejectionReason
        from core.engines.execution import first_rejection

        first = RejectionReason(code="A", message="a", policy_name="p1")
        second = RejectionReason(code="B", message="b", policy_name="p2")
        checks = [lambda c: None, lambda c: first, lambda c: second]
        assert first_rejection(Command(**kw()), checks) is first

    def test_rejection_reason_requires_fields(self):
        from core.commands.rejection import RejectionReason

        with pytest.raises(ValueError):
            RejectionReason(code="", message="m", policy_name="p")
