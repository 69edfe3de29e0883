"""Settlement engine - turns financial results into a transfer plan"""

import logging
from dataclasses import dataclass
from typing import Iterator, List, Tuple

from poker_ledger.domain.exceptions import ReconciliationError
from poker_ledger.domain.expenses import require_fronted_expenses_distributed
from poker_ledger.domain.financials import bank_contributions, financial_breakdown
from poker_ledger.domain.models import (
    BANK,
    PlayerBalance,
    PlayerParty,
    Session,
    SettlementResult,
    SettlementTransfer,
    TransferType,
)

logger = logging.getLogger(__name__)


@dataclass
class _Position:
    """Mutable running amount for one side of the greedy match"""

    party: PlayerParty
    remaining: int


def _largest_first(positions: List[_Position]) -> List[_Position]:
    # Stable sort: equal amounts and names keep session order
    return sorted(
        (p for p in positions if p.remaining > 0),
        key=lambda p: (-p.remaining, p.party.name.casefold()),
    )


def _match_greedy(payers: List[_Position], payees: List[_Position]) -> Iterator[Tuple[_Position, _Position, int]]:
    """
    Largest-first greedy matching.

    Pays min(payer, payee) from the head payer to the head payee and advances
    whichever side reached zero. Terminates in at most len(payers) + len(payees) - 1
    steps; zero matches are skipped.
    """
    i = 0
    j = 0
    while i < len(payers) and j < len(payees):
        payer = payers[i]
        payee = payees[j]
        amount = min(payer.remaining, payee.remaining)

        if amount > 0:
            yield payer, payee, amount

        payer.remaining -= amount
        payee.remaining -= amount

        if payer.remaining == 0:
            i += 1
        if payee.remaining == 0:
            j += 1


def _deposit_pool(session: Session) -> List[_Position]:
    """
    Cash finished players left in the bank, largest first.

    Capped at the bank's net balance: the bank can only hand out cash it holds.
    """
    if session.bank is None:
        return []

    positions = []
    for player in session.finished_players:
        deposited, withdrawn = bank_contributions(session, player)
        positions.append(_Position(PlayerParty(player.id, player.name), deposited - withdrawn))

    cash_on_hand = max(session.bank.net_balance, 0)
    pool = []
    for position in _largest_first(positions):
        if cash_on_hand == 0:
            break
        position.remaining = min(position.remaining, cash_on_hand)
        cash_on_hand -= position.remaining
        pool.append(position)
    return pool


def calculate_settlement(session: Session) -> SettlementResult:
    """
    Build the transfer plan for a session snapshot.

    Phases:
    1. Bank-mediated: deposits the bank holds pay creditors (bankToPlayer)
    2. Peer-to-peer: remaining debtors pay remaining creditors (playerToPlayer)
    3. House: debt left over is owed to the bank (playerToBank): rake and tips
       the house keeps, or split expenses the bank has not paid

    Credit left over means the ledger does not balance. For a finished
    session that is a defect and raises ReconciliationError; while players are
    still active it is reported as unsettled credit on a provisional result.
    A finished session with a player-fronted expense that is not fully split
    raises ExpenseNotDistributedError before any transfer is computed.
    """
    if session.is_finished:
        require_fronted_expenses_distributed(session)

    balances: List[PlayerBalance] = []
    creditors: List[_Position] = []
    debtors: List[_Position] = []

    for player in session.finished_players:
        breakdown = financial_breakdown(session, player)
        buy_in, cash_out = player.chip_totals()
        result = breakdown.financial_result
        balances.append(
            PlayerBalance(
                player_id=player.id,
                name=player.name,
                chip_buy_in=buy_in,
                chip_cash_out=cash_out,
                net_chips=cash_out - buy_in,
                net_cash=breakdown.profit_in_cash,
                financial_result=result,
            )
        )
        party = PlayerParty(player.id, player.name)
        if result > 0:
            creditors.append(_Position(party, result))
        elif result < 0:
            debtors.append(_Position(party, -result))

    transfers: List[SettlementTransfer] = []

    creditors = _largest_first(creditors)
    for deposit, creditor, amount in _match_greedy(_deposit_pool(session), creditors):
        transfers.append(
            SettlementTransfer(
                source=BANK,
                target=creditor.party,
                amount=amount,
                transfer_type=TransferType.BANK_TO_PLAYER,
                note=f"From {deposit.party.name}'s deposit",
            )
        )

    creditors = _largest_first(creditors)
    debtors = _largest_first(debtors)
    for debtor, creditor, amount in _match_greedy(debtors, creditors):
        transfers.append(
            SettlementTransfer(
                source=debtor.party,
                target=creditor.party,
                amount=amount,
                transfer_type=TransferType.PLAYER_TO_PLAYER,
            )
        )

    for debtor in _largest_first(debtors):
        transfers.append(
            SettlementTransfer(
                source=debtor.party,
                target=BANK,
                amount=debtor.remaining,
                transfer_type=TransferType.PLAYER_TO_BANK,
                note="Owed to the bank",
            )
        )
        debtor.remaining = 0

    unsettled_credit = sum(c.remaining for c in creditors)
    is_final = session.is_finished
    if unsettled_credit > 0:
        if is_final:
            logger.error(
                "Settlement does not reconcile",
                extra={"session_id": str(session.id), "unsettled_credit": unsettled_credit},
            )
            raise ReconciliationError(
                f"Session {session.id}: {unsettled_credit} of credit has no source of cash"
            )
        logger.info(
            "Provisional settlement with unsettled credit",
            extra={"session_id": str(session.id), "unsettled_credit": unsettled_credit},
        )

    return SettlementResult(
        session_id=session.id,
        balances=tuple(balances),
        transfers=tuple(transfers),
        is_final=is_final,
        unsettled_credit=unsettled_credit,
    )
