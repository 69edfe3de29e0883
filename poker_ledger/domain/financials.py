"""Financial result calculator - one signed cash number per finished player"""

import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Tuple

from poker_ledger.domain.allocation import allocate_proportionally
from poker_ledger.domain.expenses import expense_paid, expense_share
from poker_ledger.domain.models import BankTransactionType, Player, Session
from poker_ledger.domain.reservations import reserved_for_tips


@dataclass(frozen=True)
class FinancialBreakdown:
    """Every component of a player's financial result"""

    player_id: uuid.UUID
    name: str
    profit_in_cash: int
    rakeback_adjustment: int
    deposited: int
    withdrawn: int
    expense_paid: int
    expense_share: int

    @property
    def net_contribution(self) -> int:
        return self.deposited - self.withdrawn

    @property
    def expense_adjustment(self) -> int:
        return self.expense_paid - self.expense_share

    @property
    def financial_result(self) -> int:
        return self.profit_in_cash + self.rakeback_adjustment + self.net_contribution + self.expense_adjustment


def covered_organizational_withdrawals(session: Session) -> int:
    """
    Organizational bank spending the ledger already charges to someone.

    - tip payments are covered by the tip reservation
    - a linked expense payment is covered by what the expense charges to the
      rake and to players (paid_from_rake + distributions)
    """
    bank = session.bank
    if bank is None:
        return 0

    tips_paid = 0
    paid_per_expense: Dict[uuid.UUID, int] = defaultdict(int)
    for txn in bank.transactions:
        if txn.type == BankTransactionType.TIP_PAYMENT:
            tips_paid += txn.amount
        elif txn.type == BankTransactionType.EXPENSE_PAYMENT and txn.linked_expense_id is not None:
            paid_per_expense[txn.linked_expense_id] += txn.amount

    covered = min(tips_paid, reserved_for_tips(session))
    for expense in session.expenses:
        paid = paid_per_expense.get(expense.id, 0)
        covered += min(paid, expense.paid_from_rake + expense.total_distributed)
    return covered


def uncovered_organizational_withdrawals(session: Session) -> int:
    if session.bank is None:
        return 0
    return max(session.bank.total_organizational_withdrawals - covered_organizational_withdrawals(session), 0)


def allocate_uncovered_withdrawals(session: Session) -> Dict[uuid.UUID, int]:
    """
    Spread uncovered organizational spending over depositors.

    Weighted by each player's share of total deposits; the truncation residual
    goes to the largest depositor (ties: name, then session order).
    """
    uncovered = uncovered_organizational_withdrawals(session)
    if uncovered == 0 or session.bank is None:
        return {}

    depositors: List[Tuple[Player, int]] = []
    for player in session.players:
        deposited, _ = session.bank.contributions(player.id)
        if deposited > 0:
            depositors.append((player, deposited))
    if not depositors:
        return {}

    largest = min(
        range(len(depositors)),
        key=lambda i: (-depositors[i][1], depositors[i][0].name.casefold(), i),
    )
    shares = allocate_proportionally(uncovered, [amount for _, amount in depositors], largest)
    return {player.id: share for (player, _), share in zip(depositors, shares)}


def bank_contributions(session: Session, player: Player) -> Tuple[int, int]:
    """(deposited, withdrawn) including the player's share of uncovered organizational spending"""
    if session.bank is None:
        return 0, 0

    deposited, withdrawn = session.bank.contributions(player.id)
    if deposited > 0:
        withdrawn += allocate_uncovered_withdrawals(session).get(player.id, 0)
    return deposited, withdrawn


def financial_breakdown(session: Session, player: Player) -> FinancialBreakdown:
    deposited, withdrawn = bank_contributions(session, player)
    return FinancialBreakdown(
        player_id=player.id,
        name=player.name,
        profit_in_cash=player.chip_profit * session.chips_to_cash_ratio,
        rakeback_adjustment=player.rakeback if player.gets_rakeback else 0,
        deposited=deposited,
        withdrawn=withdrawn,
        expense_paid=expense_paid(session, player.id),
        expense_share=expense_share(session, player.id),
    )


def financial_result(session: Session, player: Player) -> int:
    """
    Signed cash result: positive - the bank owes the player, negative - the player owes.

    Formula:
        (cash_out - buy_in) * ratio + rakeback + (deposited - withdrawn)
        + (expenses paid - expense share)

    Active players have no settleable result and get 0.
    """
    if player.in_game:
        return 0
    return financial_breakdown(session, player).financial_result


def financial_results(session: Session) -> Dict[uuid.UUID, int]:
    return {p.id: financial_result(session, p) for p in session.finished_players}


def _by_name(players: List[Player]) -> List[Player]:
    return sorted(players, key=lambda p: p.name.casefold())


def players_owing_bank(session: Session) -> List[Player]:
    return _by_name([p for p in session.players if financial_result(session, p) < 0])


def players_owed_by_bank(session: Session) -> List[Player]:
    return _by_name([p for p in session.players if financial_result(session, p) > 0])


def expected_bank_total(session: Session) -> int:
    """Cash the bank is due from finished players who ended with a chip deficit"""
    return sum(
        -p.chip_profit * session.chips_to_cash_ratio
        for p in session.finished_players
        if p.chip_profit < 0
    )
