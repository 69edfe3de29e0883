"""Rake and tips reservations - cash the bank holds back for the house"""

from dataclasses import dataclass

from poker_ledger.domain.models import Session


@dataclass(frozen=True)
class Reservations:
    """Snapshot of rake/tip reservations and what is left of them"""

    reserved_for_rake: int
    reserved_for_tips: int
    distributed_rakeback: int
    expenses_paid_from_rake: int
    available_rake_for_expenses: int
    unpaid_tips: int
    organizational_fee: int

    @property
    def total_reserved(self) -> int:
        return self.reserved_for_rake + self.reserved_for_tips


def reserved_for_rake(session: Session) -> int:
    return session.rake_amount * session.chips_to_cash_ratio


def reserved_for_tips(session: Session) -> int:
    return session.tips_amount * session.chips_to_cash_ratio


def distributed_rakeback(session: Session) -> int:
    return sum(p.rakeback for p in session.players if p.gets_rakeback)


def total_expenses_paid_from_rake(session: Session) -> int:
    return sum(e.paid_from_rake for e in session.expenses)


def available_rake_for_expenses(session: Session) -> int:
    """
    Rake cash still free to cover expenses.

    reserved rake - rakeback handed to players - expenses already charged to
    the rake, floored at zero. Always recomputed: rakeback and expenses change
    independently.
    """
    remaining = reserved_for_rake(session) - distributed_rakeback(session) - total_expenses_paid_from_rake(session)
    return max(remaining, 0)


def unpaid_tips(session: Session) -> int:
    return max(reserved_for_tips(session) - session.tips_paid_from_bank, 0)


def organizational_fee(session: Session) -> int:
    """Rake the organizer keeps once rakeback and rake-funded expenses are served"""
    return available_rake_for_expenses(session)


def calculate_reservations(session: Session) -> Reservations:
    return Reservations(
        reserved_for_rake=reserved_for_rake(session),
        reserved_for_tips=reserved_for_tips(session),
        distributed_rakeback=distributed_rakeback(session),
        expenses_paid_from_rake=total_expenses_paid_from_rake(session),
        available_rake_for_expenses=available_rake_for_expenses(session),
        unpaid_tips=unpaid_tips(session),
        organizational_fee=organizational_fee(session),
    )
