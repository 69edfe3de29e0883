"""Shared expenses: registration and distribution across players and the rake"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Union

from poker_ledger.domain.allocation import distribute_equally
from poker_ledger.domain.exceptions import (
    ExpenseDistributionError,
    ExpenseNotDistributedError,
    InvalidAmountError,
    RakeOvercommittedError,
)
from poker_ledger.domain.models import Expense, ExpenseDistribution, Session, utcnow
from poker_ledger.domain.reservations import available_rake_for_expenses


class RakePool(Enum):
    """Marker participant: the share is covered by the rake reservation"""

    RAKE = "rake"


RAKE_POOL = RakePool.RAKE

Participant = Union[uuid.UUID, RakePool]


def add_expense(
    session: Session,
    note: str,
    amount: int,
    payer_id: Optional[uuid.UUID] = None,
    created_at: Optional[datetime] = None,
) -> Expense:
    """Register an expense; a payer means that player fronted the cash"""
    if amount <= 0:
        raise InvalidAmountError(f"Expense amount must be positive, got {amount}")
    if payer_id is not None:
        session.player(payer_id)

    expense = Expense(
        amount=amount,
        note=note.strip(),
        created_at=created_at or utcnow(),
        payer_id=payer_id,
    )
    session.expenses.append(expense)
    return expense


def remove_expense(session: Session, expense_id: uuid.UUID) -> None:
    """
    Delete an expense together with its distributions.

    Bank payments that referenced it stay in the bank (the cash really left)
    but lose their link, so they count as uncovered organizational spending.
    """
    expense = session.expense(expense_id)
    if session.bank is not None:
        for txn in session.bank.transactions:
            if txn.linked_expense_id == expense.id:
                txn.linked_expense_id = None
    session.expenses.remove(expense)


def rake_cap(session: Session, expense: Expense) -> int:
    """Most rake this expense may claim; its own previous claim is being re-split"""
    return available_rake_for_expenses(session) + expense.paid_from_rake


def _apply_shares(session: Session, expense: Expense, shares: Dict[Participant, int]) -> None:
    rake_share = shares.get(RAKE_POOL, 0)
    total = sum(shares.values())

    if total != expense.amount:
        raise ExpenseDistributionError(
            f"Distributed {total} of expense amount {expense.amount}"
        )
    cap = rake_cap(session, expense)
    if rake_share > cap:
        raise RakeOvercommittedError(
            f"Rake share {rake_share} exceeds available rake {cap}"
        )

    expense.distributions = [
        ExpenseDistribution(player_id=participant, amount=amount)
        for participant, amount in shares.items()
        if participant is not RAKE_POOL and amount > 0
    ]
    expense.paid_from_rake = rake_share


def distribute_expense_equally(
    session: Session,
    expense_id: uuid.UUID,
    participants: Sequence[Participant],
) -> Expense:
    """
    Split an expense evenly across participants.

    Integer division with the remainder handed one unit at a time to the first
    participants in the given order, so shares always add up exactly.
    """
    expense = session.expense(expense_id)
    if not participants:
        raise ExpenseDistributionError("At least one participant is required")
    if len(set(participants)) != len(participants):
        raise ExpenseDistributionError("Participants must be unique")
    for participant in participants:
        if participant is not RAKE_POOL:
            session.player(participant)

    amounts = distribute_equally(expense.amount, len(participants))
    _apply_shares(session, expense, dict(zip(participants, amounts)))
    return expense


def distribute_expense_manually(
    session: Session,
    expense_id: uuid.UUID,
    shares: Mapping[Participant, int],
) -> Expense:
    """Apply caller-chosen shares after checking they cover the expense exactly"""
    expense = session.expense(expense_id)
    for participant, amount in shares.items():
        if amount < 0:
            raise InvalidAmountError(f"Share for {participant} must not be negative, got {amount}")
        if participant is not RAKE_POOL:
            session.player(participant)

    _apply_shares(session, expense, dict(shares))
    return expense


def expense_share(session: Session, player_id: uuid.UUID) -> int:
    """Total the player owes toward session expenses"""
    return sum(
        d.amount
        for e in session.expenses
        for d in e.distributions
        if d.player_id == player_id
    )


def expense_paid(session: Session, player_id: uuid.UUID) -> int:
    """Total of expenses the player fronted"""
    return sum(e.amount for e in session.expenses if e.payer_id == player_id)


def undistributed_expenses(session: Session) -> List[Expense]:
    return [e for e in session.expenses if not e.is_fully_distributed]


def require_fronted_expenses_distributed(session: Session) -> None:
    """
    Reject settling while a player-fronted expense is not fully split.

    The payer is credited the whole amount as soon as the expense is recorded;
    until the split is complete part of that credit is charged to nobody.
    """
    pending = [e for e in undistributed_expenses(session) if e.payer_id is not None]
    if pending:
        notes = ", ".join(e.note for e in pending)
        raise ExpenseNotDistributedError(f"Split these expenses before settling: {notes}")
