"""
DineIn Wallet Engine - Policies
=================================
Ledger uniqueness, status transitions, and the withdrawal balance guard.
"""

from typing import Optional

from core.commands.rejection import ReasonCode, RejectionReason
from core.primitives.money import to_money
from engines.wallet.records import STATUS_PENDING

_POSTING_COMMANDS = (
    "wallet.transaction.post.request",
    "wallet.withdrawal.request.request",
)


def transaction_must_be_new_policy(
    command,
    transaction_lookup=None,
    reference_lookup=None,
) -> Optional[RejectionReason]:
    """One entry per transaction_id and one per business reference."""
    if transaction_lookup is None:
        return None
    if command.command_type not in _POSTING_COMMANDS:
        return None

    transaction_id = command.payload["transaction_id"]
    if transaction_lookup(transaction_id) is not None:
        return RejectionReason(
            code=ReasonCode.TRANSACTION_ALREADY_EXISTS,
            message=f"Transaction '{transaction_id}' already posted.",
            policy_name="transaction_must_be_new_policy",
        )

    reference = command.payload.get("reference")
    if reference and reference_lookup is not None and reference_lookup(reference) is not None:
        return RejectionReason(
            code=ReasonCode.TRANSACTION_ALREADY_EXISTS,
            message=f"Ledger already holds an entry for '{reference}'.",
            policy_name="transaction_must_be_new_policy",
        )
    return None


def transaction_status_policy(
    command,
    transaction_lookup=None,
) -> Optional[RejectionReason]:
    """Only pending entries change status."""
    if transaction_lookup is None:
        return None
    if command.command_type != "wallet.transaction.status.request":
        return None

    transaction_id = command.payload["transaction_id"]
    tx = transaction_lookup(transaction_id)
    if tx is None or tx.restaurant_id != str(command.restaurant_id):
        return RejectionReason(
            code=ReasonCode.TRANSACTION_NOT_FOUND,
            message=f"Transaction '{transaction_id}' not found.",
            policy_name="transaction_status_policy",
        )
    if tx.status != STATUS_PENDING:
        return RejectionReason(
            code=ReasonCode.INVALID_TRANSITION,
            message=f"Transaction is {tx.status}; only pending entries change status.",
            policy_name="transaction_status_policy",
        )
    return None


def sufficient_balance_policy(
    command,
    balance_lookup=None,
) -> Optional[RejectionReason]:
    """Withdrawals cannot exceed the available (completed) balance."""
    if balance_lookup is None:
        return None
    if command.command_type != "wallet.withdrawal.request.request":
        return None

    amount = to_money(command.payload["amount"])
    balance = balance_lookup(command.restaurant_id)
    if amount > balance:
        return RejectionReason(
            code=ReasonCode.INSUFFICIENT_BALANCE,
            message=f"Available balance {balance:.2f}, requested {amount:.2f}.",
            policy_name="sufficient_balance_policy",
        )
    return None
