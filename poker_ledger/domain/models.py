"""Domain models - pure Python dataclasses representing the session ledger"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple, Union

from poker_ledger.domain.exceptions import (
    BankTransactionNotFoundError,
    ExpenseNotFoundError,
    PlayerNotInSessionError,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChipTransactionType(str, Enum):
    """Kind of chip movement for a player"""

    BUY_IN = "chipBuyIn"
    ADD_ON = "chipAddOn"
    CASH_OUT = "chipCashOut"

    @classmethod
    def _missing_(cls, value):
        # Older exports wrote "ChipCashOut"
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.lower():
                    return member
        return None


class BankTransactionType(str, Enum):
    """Kind of cash movement through the session bank"""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    EXPENSE_PAYMENT = "expensePayment"
    TIP_PAYMENT = "tipPayment"


class TransferType(str, Enum):
    """Direction of a proposed settlement transfer"""

    BANK_TO_PLAYER = "bankToPlayer"
    PLAYER_TO_BANK = "playerToBank"
    PLAYER_TO_PLAYER = "playerToPlayer"


class GameType(str, Enum):
    NL_HOLDEM = "NL Hold'em"
    PLO4 = "PLO4"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    AWAITING_SETTLEMENT = "awaitingSettlement"
    FINISHED = "finished"


@dataclass
class PlayerChipTransaction:
    """Single chip purchase or cash-out"""

    type: ChipTransactionType
    chip_amount: int
    timestamp: datetime = field(default_factory=utcnow)
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass
class Player:
    """Participant of a session with their chip history"""

    name: str
    in_game: bool = True
    transactions: List[PlayerChipTransaction] = field(default_factory=list)
    gets_rakeback: bool = False
    rakeback: int = 0
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def chip_totals(self) -> Tuple[int, int]:
        """Return (buy_in, cash_out) in chips from a single pass over transactions"""
        buy_in = 0
        cash_out = 0
        for txn in self.transactions:
            if txn.type in (ChipTransactionType.BUY_IN, ChipTransactionType.ADD_ON):
                buy_in += txn.chip_amount
            elif txn.type == ChipTransactionType.CASH_OUT:
                cash_out += txn.chip_amount
            else:
                raise ValueError(f"Unknown chip transaction type: {txn.type}")
        return buy_in, cash_out

    @property
    def chip_buy_in(self) -> int:
        return self.chip_totals()[0]

    @property
    def chip_cash_out(self) -> int:
        return self.chip_totals()[1]

    @property
    def chip_profit(self) -> int:
        buy_in, cash_out = self.chip_totals()
        return cash_out - buy_in

    @property
    def initial_buy_in(self) -> int:
        """First buy-in amount, used to suggest add-on sizes"""
        for txn in self.transactions:
            if txn.type == ChipTransactionType.BUY_IN:
                return txn.chip_amount
        return 0


@dataclass
class ExpenseDistribution:
    """Share of an expense owed by one player"""

    player_id: uuid.UUID
    amount: int
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass
class Expense:
    """Shared cost of the session (room rent, food, ...)"""

    amount: int
    note: str
    created_at: datetime = field(default_factory=utcnow)
    payer_id: Optional[uuid.UUID] = None
    paid_from_rake: int = 0
    paid_from_bank: int = 0
    distributions: List[ExpenseDistribution] = field(default_factory=list)
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def total_distributed(self) -> int:
        return sum(d.amount for d in self.distributions)

    @property
    def is_fully_distributed(self) -> bool:
        return self.total_distributed + self.paid_from_rake == self.amount

    @property
    def is_fully_paid(self) -> bool:
        return self.paid_from_bank >= self.amount

    @property
    def outstanding(self) -> int:
        """Cash still to be paid out for this expense"""
        return max(self.amount - self.paid_from_bank, 0)


@dataclass
class SessionBankTransaction:
    """Cash movement into or out of the session bank"""

    amount: int
    type: BankTransactionType
    player_id: Optional[uuid.UUID] = None
    note: str = ""
    created_at: datetime = field(default_factory=utcnow)
    linked_expense_id: Optional[uuid.UUID] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def is_organizational(self) -> bool:
        return self.type in (BankTransactionType.EXPENSE_PAYMENT, BankTransactionType.TIP_PAYMENT)


def _split_bank_totals(transactions: List[SessionBankTransaction]) -> Tuple[int, int]:
    deposited = 0
    withdrawn = 0
    for txn in transactions:
        if txn.type == BankTransactionType.DEPOSIT:
            deposited += txn.amount
        elif txn.type in (
            BankTransactionType.WITHDRAWAL,
            BankTransactionType.EXPENSE_PAYMENT,
            BankTransactionType.TIP_PAYMENT,
        ):
            withdrawn += txn.amount
        else:
            raise ValueError(f"Unknown bank transaction type: {txn.type}")
    return deposited, withdrawn


@dataclass
class SessionBank:
    """Physical cash pool held by the table operator"""

    manager_id: Optional[uuid.UUID] = None
    transactions: List[SessionBankTransaction] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    is_closed: bool = False
    closed_at: Optional[datetime] = None
    expected_total: int = 0
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def total_deposited(self) -> int:
        return _split_bank_totals(self.transactions)[0]

    @property
    def total_withdrawn(self) -> int:
        return _split_bank_totals(self.transactions)[1]

    @property
    def net_balance(self) -> int:
        deposited, withdrawn = _split_bank_totals(self.transactions)
        return deposited - withdrawn

    @property
    def remaining_to_collect(self) -> int:
        return max(self.expected_total - self.total_deposited, 0)

    @property
    def total_organizational_withdrawals(self) -> int:
        return sum(t.amount for t in self.transactions if t.is_organizational)

    def contributions(self, player_id: uuid.UUID) -> Tuple[int, int]:
        """Personal (deposited, withdrawn) for one player; organizational entries are excluded"""
        return _split_bank_totals([t for t in self.transactions if t.player_id == player_id])


@dataclass
class Session:
    """Aggregate root: one poker session and everything it owns"""

    title: str
    location: str = ""
    start_time: datetime = field(default_factory=utcnow)
    game_type: GameType = GameType.NL_HOLDEM
    status: SessionStatus = SessionStatus.ACTIVE
    chips_to_cash_ratio: int = 1
    small_blind: int = 0
    big_blind: int = 0
    ante: int = 0
    rake_amount: int = 0
    tips_amount: int = 0
    tips_paid_from_bank: int = 0
    players: List[Player] = field(default_factory=list)
    expenses: List[Expense] = field(default_factory=list)
    bank: Optional[SessionBank] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def total_chips(self) -> int:
        return sum(p.chip_buy_in for p in self.players)

    @property
    def total_cash_out(self) -> int:
        return sum(p.chip_cash_out for p in self.players)

    @property
    def chips_in_game(self) -> int:
        """Chips physically on the table; rake and tips count as already removed"""
        return self.total_chips - self.total_cash_out - self.rake_amount - self.tips_amount

    @property
    def active_players(self) -> List[Player]:
        return [p for p in self.players if p.in_game]

    @property
    def finished_players(self) -> List[Player]:
        return [p for p in self.players if not p.in_game]

    @property
    def is_finished(self) -> bool:
        return bool(self.players) and not self.active_players

    def player(self, player_id: uuid.UUID) -> Player:
        for p in self.players:
            if p.id == player_id:
                return p
        raise PlayerNotInSessionError(f"Player {player_id} is not part of session {self.id}")

    def expense(self, expense_id: uuid.UUID) -> Expense:
        for e in self.expenses:
            if e.id == expense_id:
                return e
        raise ExpenseNotFoundError(f"Expense {expense_id} is not part of session {self.id}")

    def bank_transaction(self, transaction_id: uuid.UUID) -> SessionBankTransaction:
        if self.bank is not None:
            for t in self.bank.transactions:
                if t.id == transaction_id:
                    return t
        raise BankTransactionNotFoundError(f"Bank transaction {transaction_id} not found")


@dataclass(frozen=True)
class PlayerParty:
    """A player as a transfer endpoint"""

    player_id: uuid.UUID
    name: str


@dataclass(frozen=True)
class BankParty:
    """The session bank as a transfer endpoint"""

    name: str = "Bank"


BANK = BankParty()

Party = Union[PlayerParty, BankParty]


@dataclass(frozen=True)
class SettlementTransfer:
    """Proposed cash handoff produced by the settlement engine"""

    source: Party
    target: Party
    amount: int
    transfer_type: TransferType
    note: str = ""

    @property
    def from_player_id(self) -> Optional[uuid.UUID]:
        return self.source.player_id if isinstance(self.source, PlayerParty) else None

    @property
    def to_player_id(self) -> Optional[uuid.UUID]:
        return self.target.player_id if isinstance(self.target, PlayerParty) else None

    @property
    def description(self) -> str:
        return f"{self.source.name} -> {self.target.name}"


@dataclass(frozen=True)
class PlayerBalance:
    """Aggregated result of one finished player"""

    player_id: uuid.UUID
    name: str
    chip_buy_in: int
    chip_cash_out: int
    net_chips: int
    net_cash: int
    financial_result: int


@dataclass(frozen=True)
class SettlementResult:
    """Output of the settlement engine: balances plus the ordered transfer plan"""

    session_id: uuid.UUID
    balances: Tuple[PlayerBalance, ...]
    transfers: Tuple[SettlementTransfer, ...]
    is_final: bool
    unsettled_credit: int = 0

    def _of_type(self, transfer_type: TransferType) -> List[SettlementTransfer]:
        return [t for t in self.transfers if t.transfer_type == transfer_type]

    @property
    def bank_transfers(self) -> List[SettlementTransfer]:
        return self._of_type(TransferType.BANK_TO_PLAYER)

    @property
    def player_transfers(self) -> List[SettlementTransfer]:
        return self._of_type(TransferType.PLAYER_TO_PLAYER)

    @property
    def house_transfers(self) -> List[SettlementTransfer]:
        return self._of_type(TransferType.PLAYER_TO_BANK)

    @property
    def total_credits(self) -> int:
        return sum(b.financial_result for b in self.balances if b.financial_result > 0)

    @property
    def total_debits(self) -> int:
        return sum(-b.financial_result for b in self.balances if b.financial_result < 0)

    def balance(self, player_id: uuid.UUID) -> PlayerBalance:
        for b in self.balances:
            if b.player_id == player_id:
                return b
        raise PlayerNotInSessionError(f"Player {player_id} has no settled balance")

    def residual_balance(self, player_id: uuid.UUID) -> int:
        """Financial result left after every proposed transfer is carried out"""
        residual = self.balance(player_id).financial_result
        for t in self.transfers:
            if t.to_player_id == player_id:
                residual -= t.amount
            if t.from_player_id == player_id:
                residual += t.amount
        return residual
