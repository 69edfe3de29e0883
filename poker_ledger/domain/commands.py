"""
Ledger mutation commands.

Every command validates completely before touching the session: it either
applies in full or raises a typed error and leaves the session unchanged.
"""

import uuid
from typing import List, Optional, Sequence

from poker_ledger.domain.allocation import distribute_by_percentage, distribute_equally
from poker_ledger.domain.exceptions import (
    BankClosedError,
    BankNotOpenedError,
    ChipTransactionNotFoundError,
    EmptyPlayerNameError,
    ExpenseFrontedByPlayerError,
    ExpenseOverpaidError,
    InsufficientBankFundsError,
    InsufficientChipsError,
    InvalidAmountError,
    InvalidBlindsError,
    LedgerValidationError,
    OutstandingBankBalanceError,
    PlayerLimitExceededError,
    PlayerNotInGameError,
    PlayerStillInGameError,
    RakeOvercommittedError,
)
from poker_ledger.domain.financials import expected_bank_total
from poker_ledger.domain.models import (
    BankTransactionType,
    ChipTransactionType,
    Player,
    PlayerChipTransaction,
    Session,
    SessionBank,
    SessionBankTransaction,
    SessionStatus,
    utcnow,
)
from poker_ledger.domain.reservations import (
    available_rake_for_expenses,
    distributed_rakeback,
    reserved_for_rake,
    total_expenses_paid_from_rake,
)
from poker_ledger.domain.settlement import calculate_settlement


def _require_positive(amount: int, what: str) -> None:
    if amount <= 0:
        raise InvalidAmountError(f"{what} must be positive, got {amount}")


def _require_non_negative(amount: int, what: str) -> None:
    if amount < 0:
        raise InvalidAmountError(f"{what} must not be negative, got {amount}")


def refresh_session_state(session: Session) -> None:
    """Recompute bank expectations and session status after chip movements"""
    if session.bank is not None:
        session.bank.expected_total = expected_bank_total(session)
    if session.status != SessionStatus.FINISHED or not session.is_finished:
        session.status = SessionStatus.AWAITING_SETTLEMENT if session.is_finished else SessionStatus.ACTIVE


# Players and chips


def add_player(session: Session, name: str, buy_in: int, max_players: Optional[int] = None) -> Player:
    clean_name = name.strip()
    if not clean_name:
        raise EmptyPlayerNameError("Player name must not be empty")
    _require_positive(buy_in, "Buy-in")
    if max_players is not None and len(session.players) >= max_players:
        raise PlayerLimitExceededError(f"Session already has {max_players} players")

    player = Player(name=clean_name)
    player.transactions.append(PlayerChipTransaction(type=ChipTransactionType.BUY_IN, chip_amount=buy_in))
    session.players.append(player)
    refresh_session_state(session)
    return player


def add_on(session: Session, player_id: uuid.UUID, amount: int) -> PlayerChipTransaction:
    _require_positive(amount, "Add-on")
    player = session.player(player_id)
    if not player.in_game:
        raise PlayerNotInGameError(f"{player.name} has finished; use a rebuy to return")

    txn = PlayerChipTransaction(type=ChipTransactionType.ADD_ON, chip_amount=amount)
    player.transactions.append(txn)
    return txn


def cash_out(session: Session, player_id: uuid.UUID, amount: int) -> PlayerChipTransaction:
    """Convert a player's chips back and mark them finished; zero is a valid bust-out"""
    _require_non_negative(amount, "Cash-out")
    player = session.player(player_id)
    if not player.in_game:
        raise PlayerNotInGameError(f"{player.name} has already cashed out")
    if amount > session.chips_in_game:
        raise InsufficientChipsError(
            f"Cannot cash out {amount} chips, only {session.chips_in_game} left in play"
        )

    txn = PlayerChipTransaction(type=ChipTransactionType.CASH_OUT, chip_amount=amount)
    player.transactions.append(txn)
    player.in_game = False
    refresh_session_state(session)
    return txn


def rebuy(session: Session, player_id: uuid.UUID, amount: int) -> PlayerChipTransaction:
    """Return a finished player to the table; every return needs a fresh buy-in"""
    _require_positive(amount, "Rebuy")
    player = session.player(player_id)
    if player.in_game:
        raise PlayerStillInGameError(f"{player.name} is still in the game; use an add-on")

    txn = PlayerChipTransaction(type=ChipTransactionType.BUY_IN, chip_amount=amount)
    player.transactions.append(txn)
    player.in_game = True
    refresh_session_state(session)
    return txn


def remove_chip_transaction(session: Session, player_id: uuid.UUID, transaction_id: uuid.UUID) -> None:
    player = session.player(player_id)
    txn = next((t for t in player.transactions if t.id == transaction_id), None)
    if txn is None:
        raise ChipTransactionNotFoundError(f"Chip transaction {transaction_id} not found for {player.name}")

    if txn.type in (ChipTransactionType.BUY_IN, ChipTransactionType.ADD_ON):
        if session.chips_in_game - txn.chip_amount < 0:
            raise InsufficientChipsError(
                f"Removing {txn.chip_amount} chips would leave a negative stack on the table"
            )
    player.transactions.remove(txn)
    if txn.type == ChipTransactionType.CASH_OUT:
        # Undoing a cash-out puts the player back at the table
        player.in_game = True
    refresh_session_state(session)


def remove_player(session: Session, player_id: uuid.UUID) -> None:
    """
    Delete a player and clean up everything that referenced them:

    - expenses they fronted lose their payer
    - their expense distributions are dropped (the expense becomes undistributed)
    - their personal bank transactions are deleted
    - they stop being the bank manager
    """
    player = session.player(player_id)
    bank = session.bank
    owns_bank_entries = bank is not None and any(t.player_id == player.id for t in bank.transactions)
    if owns_bank_entries and bank.is_closed:
        raise BankClosedError("Reopen the bank before removing a player with bank transactions")
    if owns_bank_entries:
        cash_after = bank.net_balance - sum(
            t.amount if t.type == BankTransactionType.DEPOSIT else -t.amount
            for t in bank.transactions
            if t.player_id == player.id
        )
        if cash_after < 0:
            raise InsufficientBankFundsError(
                f"Removing {player.name}'s bank transactions would overdraw the bank"
            )

    for expense in session.expenses:
        if expense.payer_id == player.id:
            expense.payer_id = None
        expense.distributions = [d for d in expense.distributions if d.player_id != player.id]

    if bank is not None:
        bank.transactions = [t for t in bank.transactions if t.player_id != player.id]
        if bank.manager_id == player.id:
            bank.manager_id = None

    session.players.remove(player)
    refresh_session_state(session)


# Session settings


def set_rake_and_tips(session: Session, rake_amount: int, tips_amount: int) -> None:
    """Record rake and tips (in chips) taken off the table"""
    _require_non_negative(rake_amount, "Rake")
    _require_non_negative(tips_amount, "Tips")

    chips_left = session.total_chips - session.total_cash_out - rake_amount - tips_amount
    if chips_left < 0:
        raise InsufficientChipsError(f"Only {chips_left + rake_amount + tips_amount} chips are left in play")

    committed = distributed_rakeback(session) + total_expenses_paid_from_rake(session)
    if rake_amount * session.chips_to_cash_ratio < committed:
        raise RakeOvercommittedError(
            f"Rakeback and expenses already claim {committed} of the rake"
        )

    session.rake_amount = rake_amount
    session.tips_amount = tips_amount


def update_blinds(session: Session, small: int, big: int, ante: int = 0) -> None:
    if small <= 0 or big <= 0:
        raise InvalidBlindsError("Blinds must be positive")
    if small > big:
        raise InvalidBlindsError(f"Small blind {small} is larger than big blind {big}")
    _require_non_negative(ante, "Ante")

    session.small_blind = small
    session.big_blind = big
    session.ante = ante


def finish_session(session: Session) -> None:
    """
    Close the session once every player has cashed out.

    The ledger must settle: player-fronted expenses have to be fully split and
    the plan has to reconcile. A later rebuy or an undone cash-out puts the
    session back to active.
    """
    if not session.is_finished:
        raise PlayerStillInGameError("Every player must cash out before the session is finished")
    calculate_settlement(session)
    session.status = SessionStatus.FINISHED


# Rakeback


def set_rakeback(session: Session, player_id: uuid.UUID, amount: int) -> None:
    """Assign a cash rakeback to one player; zero switches rakeback off"""
    _require_non_negative(amount, "Rakeback")
    player = session.player(player_id)

    current = player.rakeback if player.gets_rakeback else 0
    available = available_rake_for_expenses(session) + current
    if amount > available:
        raise RakeOvercommittedError(f"Rakeback {amount} exceeds available rake {available}")

    player.rakeback = amount
    player.gets_rakeback = amount > 0


def distribute_rakeback(
    session: Session,
    player_ids: Sequence[uuid.UUID],
    total_amount: int,
    mode: str = "equal",
    amounts: Optional[Sequence[int]] = None,
) -> List[int]:
    """
    Split a rakeback total across players, replacing previous assignments.

    Modes:
    - "equal": remainder goes to the first players
    - "percentage": `amounts` are whole percentages, last player absorbs rounding
    - "manual": `amounts` are the cash values and must add up to the total
    """
    _require_non_negative(total_amount, "Rakeback total")
    if len(set(player_ids)) != len(player_ids):
        raise LedgerValidationError("Players must be unique")
    for player_id in player_ids:
        session.player(player_id)

    if mode == "equal":
        shares = distribute_equally(total_amount, len(player_ids))
    elif mode == "percentage":
        if amounts is None or len(amounts) != len(player_ids) or sum(amounts) != 100:
            raise LedgerValidationError("Percentages must cover every player and add up to 100")
        shares = distribute_by_percentage(total_amount, amounts)
    elif mode == "manual":
        if amounts is None or len(amounts) != len(player_ids) or sum(amounts) != total_amount:
            raise LedgerValidationError("Manual amounts must cover every player and add up to the total")
        shares = list(amounts)
    else:
        raise LedgerValidationError(f"Unknown rakeback distribution mode: {mode}")
    for share in shares:
        _require_non_negative(share, "Rakeback share")

    capacity = max(reserved_for_rake(session) - total_expenses_paid_from_rake(session), 0)
    if total_amount > capacity:
        raise RakeOvercommittedError(f"Rakeback {total_amount} exceeds available rake {capacity}")

    by_id = dict(zip(player_ids, shares))
    for player in session.players:
        share = by_id.get(player.id, 0)
        player.rakeback = share
        player.gets_rakeback = share > 0
    return shares


# Session bank


def ensure_bank(session: Session) -> SessionBank:
    """Return the session bank, creating it on first use"""
    if session.bank is None:
        session.bank = SessionBank()
        refresh_session_state(session)
    return session.bank


def _open_bank(session: Session) -> SessionBank:
    bank = session.bank
    if bank is None:
        raise BankNotOpenedError(f"Session {session.id} has no bank")
    if bank.is_closed:
        raise BankClosedError("Bank is closed")
    return bank


def set_bank_manager(session: Session, player_id: Optional[uuid.UUID]) -> None:
    if player_id is not None:
        session.player(player_id)
    ensure_bank(session).manager_id = player_id


def record_deposit(session: Session, player_id: uuid.UUID, amount: int, note: str = "") -> SessionBankTransaction:
    _require_positive(amount, "Deposit")
    session.player(player_id)
    bank = ensure_bank(session)
    if bank.is_closed:
        raise BankClosedError("Bank is closed")

    txn = SessionBankTransaction(amount=amount, type=BankTransactionType.DEPOSIT, player_id=player_id, note=note.strip())
    bank.transactions.append(txn)
    return txn


def _require_cash(bank: SessionBank, amount: int) -> None:
    if amount > bank.net_balance:
        raise InsufficientBankFundsError(f"Bank holds {bank.net_balance}, cannot pay out {amount}")


def record_withdrawal(session: Session, player_id: uuid.UUID, amount: int, note: str = "") -> SessionBankTransaction:
    _require_positive(amount, "Withdrawal")
    session.player(player_id)
    bank = _open_bank(session)
    _require_cash(bank, amount)

    txn = SessionBankTransaction(amount=amount, type=BankTransactionType.WITHDRAWAL, player_id=player_id, note=note.strip())
    bank.transactions.append(txn)
    return txn


def record_expense_payment(session: Session, expense_id: uuid.UUID, amount: int, note: str = "") -> SessionBankTransaction:
    """Pay (part of) an expense out of the bank; the transaction has no player"""
    _require_positive(amount, "Expense payment")
    expense = session.expense(expense_id)
    bank = _open_bank(session)
    if expense.payer_id is not None:
        raise ExpenseFrontedByPlayerError(f"Expense '{expense.note}' was already paid by a player")
    if amount > expense.outstanding:
        raise ExpenseOverpaidError(f"Only {expense.outstanding} is outstanding on '{expense.note}'")
    _require_cash(bank, amount)

    txn = SessionBankTransaction(
        amount=amount,
        type=BankTransactionType.EXPENSE_PAYMENT,
        note=note.strip() or expense.note,
        linked_expense_id=expense.id,
    )
    bank.transactions.append(txn)
    expense.paid_from_bank += amount
    return txn


def record_tip_payment(session: Session, amount: int, note: str = "") -> SessionBankTransaction:
    _require_positive(amount, "Tip payment")
    bank = _open_bank(session)
    _require_cash(bank, amount)

    txn = SessionBankTransaction(amount=amount, type=BankTransactionType.TIP_PAYMENT, note=note.strip())
    bank.transactions.append(txn)
    session.tips_paid_from_bank += amount
    return txn


def remove_bank_transaction(session: Session, transaction_id: uuid.UUID) -> None:
    """Delete a bank entry and revert what recording it changed"""
    txn = session.bank_transaction(transaction_id)
    bank = _open_bank(session)
    if txn.type == BankTransactionType.DEPOSIT and bank.net_balance - txn.amount < 0:
        raise InsufficientBankFundsError("Removing this deposit would overdraw the bank")

    if txn.type == BankTransactionType.EXPENSE_PAYMENT and txn.linked_expense_id is not None:
        linked = next((e for e in session.expenses if e.id == txn.linked_expense_id), None)
        if linked is not None:
            linked.paid_from_bank = max(linked.paid_from_bank - txn.amount, 0)
    elif txn.type == BankTransactionType.TIP_PAYMENT:
        session.tips_paid_from_bank = max(session.tips_paid_from_bank - txn.amount, 0)

    bank.transactions.remove(txn)


def close_bank(session: Session) -> None:
    bank = session.bank
    if bank is None:
        raise BankNotOpenedError(f"Session {session.id} has no bank")
    refresh_session_state(session)
    if bank.remaining_to_collect > 0:
        raise OutstandingBankBalanceError(f"{bank.remaining_to_collect} still to collect")
    if not bank.is_closed:
        bank.is_closed = True
        bank.closed_at = utcnow()


def reopen_bank(session: Session) -> None:
    bank = session.bank
    if bank is None:
        raise BankNotOpenedError(f"Session {session.id} has no bank")
    bank.is_closed = False
    bank.closed_at = None
