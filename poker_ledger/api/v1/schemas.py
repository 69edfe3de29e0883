"""Pydantic schemas for API request/response validation"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from poker_ledger.domain.financials import financial_result
from poker_ledger.domain.models import GameType, Session, SessionStatus, SettlementResult
from poker_ledger.domain.reservations import calculate_reservations
from poker_ledger.infrastructure.database.models import SettlementTransferRecord


# Requests


class CreateSessionRequest(BaseModel):
    """Request body for POST /v1/sessions"""

    title: str = Field(..., min_length=1, description="Session title")
    location: str = ""
    start_time: Optional[datetime] = None
    game_type: GameType = GameType.NL_HOLDEM
    chips_to_cash_ratio: int = Field(1, ge=1, description="Cash units per chip")
    small_blind: int = Field(0, ge=0)
    big_blind: int = Field(0, ge=0)
    ante: int = Field(0, ge=0)


class AddPlayerRequest(BaseModel):
    name: str = Field(..., description="Player name")
    buy_in: int = Field(..., description="Initial buy-in in chips")


class ChipAmountRequest(BaseModel):
    """Add-on, rebuy or cash-out amount in chips"""

    amount: int


class RakeAndTipsRequest(BaseModel):
    rake_amount: int = Field(..., description="Rake in chips")
    tips_amount: int = Field(..., description="Tips in chips")


class BlindsRequest(BaseModel):
    small_blind: int
    big_blind: int
    ante: int = 0


class RakebackRequest(BaseModel):
    amount: int = Field(..., description="Rakeback in cash units; 0 switches it off")


class RakebackDistributionRequest(BaseModel):
    player_ids: List[uuid.UUID] = Field(..., min_length=1)
    total_amount: int
    mode: Literal["equal", "percentage", "manual"] = "equal"
    amounts: Optional[List[int]] = Field(None, description="Percentages or cash amounts, aligned with player_ids")


class BankManagerRequest(BaseModel):
    player_id: Optional[uuid.UUID] = None


class BankTransactionRequest(BaseModel):
    """Deposit or withdrawal by a player"""

    player_id: uuid.UUID
    amount: int
    note: str = ""


class ExpensePaymentRequest(BaseModel):
    expense_id: uuid.UUID
    amount: int
    note: str = ""


class TipPaymentRequest(BaseModel):
    amount: int
    note: str = ""


class CreateExpenseRequest(BaseModel):
    note: str = ""
    amount: int
    payer_id: Optional[uuid.UUID] = Field(None, description="Player who fronted the cash")


class EqualDistributionRequest(BaseModel):
    player_ids: List[uuid.UUID] = Field(default_factory=list)
    include_rake: bool = Field(False, description="Add the rake pool as the last participant")


class ShareSchema(BaseModel):
    player_id: uuid.UUID
    amount: int = Field(..., ge=0)


class ManualDistributionRequest(BaseModel):
    shares: List[ShareSchema] = Field(default_factory=list)
    rake_share: int = Field(0, ge=0)

    @field_validator("shares")
    @classmethod
    def unique_players(cls, shares: List[ShareSchema]) -> List[ShareSchema]:
        player_ids = [s.player_id for s in shares]
        if len(set(player_ids)) != len(player_ids):
            raise ValueError("Each player may appear only once")
        return shares


class PersistPlanRequest(BaseModel):
    """Request body for POST /v1/sessions/{id}/settlement/transfers"""

    expected_version: int = Field(..., ge=1, description="Session version the plan was computed from")


class TransferCompletionRequest(BaseModel):
    is_completed: Optional[bool] = Field(None, description="Omit to toggle")


# Responses


class ChipTransactionSchema(BaseModel):
    id: uuid.UUID
    type: str
    chip_amount: int
    timestamp: datetime


class PlayerSchema(BaseModel):
    id: uuid.UUID
    name: str
    in_game: bool
    chip_buy_in: int
    chip_cash_out: int
    chip_profit: int
    gets_rakeback: bool
    rakeback: int
    financial_result: int
    transactions: List[ChipTransactionSchema]


class ExpenseDistributionSchema(BaseModel):
    player_id: uuid.UUID
    amount: int


class ExpenseSchema(BaseModel):
    id: uuid.UUID
    note: str
    amount: int
    payer_id: Optional[uuid.UUID]
    paid_from_rake: int
    paid_from_bank: int
    is_fully_distributed: bool
    distributions: List[ExpenseDistributionSchema]


class BankTransactionSchema(BaseModel):
    id: uuid.UUID
    type: str
    amount: int
    player_id: Optional[uuid.UUID]
    linked_expense_id: Optional[uuid.UUID]
    note: str
    created_at: datetime


class BankSchema(BaseModel):
    manager_id: Optional[uuid.UUID]
    is_closed: bool
    closed_at: Optional[datetime]
    expected_total: int
    total_deposited: int
    total_withdrawn: int
    net_balance: int
    remaining_to_collect: int
    transactions: List[BankTransactionSchema]


class ReservationsSchema(BaseModel):
    reserved_for_rake: int
    reserved_for_tips: int
    distributed_rakeback: int
    expenses_paid_from_rake: int
    available_rake_for_expenses: int
    unpaid_tips: int
    organizational_fee: int


class SessionResponse(BaseModel):
    """Full ledger view of a session at a version"""

    id: uuid.UUID
    version: int
    title: str
    location: str
    start_time: datetime
    game_type: GameType
    status: SessionStatus
    chips_to_cash_ratio: int
    small_blind: int
    big_blind: int
    ante: int
    rake_amount: int
    tips_amount: int
    tips_paid_from_bank: int
    chips_in_game: int
    players: List[PlayerSchema]
    expenses: List[ExpenseSchema]
    bank: Optional[BankSchema]
    reservations: ReservationsSchema


class SessionSummary(BaseModel):
    id: uuid.UUID
    title: str
    status: str
    version: int
    created_at: datetime


class PlayerBalanceSchema(BaseModel):
    player_id: uuid.UUID
    name: str
    chip_buy_in: int
    chip_cash_out: int
    net_chips: int
    net_cash: int
    financial_result: int


class ProposedTransferSchema(BaseModel):
    from_player_id: Optional[uuid.UUID]
    to_player_id: Optional[uuid.UUID]
    description: str
    amount: int
    transfer_type: str
    note: str


class SettlementResponse(BaseModel):
    """Response for GET /v1/sessions/{id}/settlement"""

    session_id: uuid.UUID
    session_version: int
    is_final: bool
    unsettled_credit: int
    total_credits: int
    total_debits: int
    balances: List[PlayerBalanceSchema]
    transfers: List[ProposedTransferSchema]


class PersistedTransferSchema(BaseModel):
    id: uuid.UUID
    session_id: uuid.UUID
    session_version: int
    from_player_id: Optional[uuid.UUID]
    to_player_id: Optional[uuid.UUID]
    amount: int
    transfer_type: str
    note: str
    is_completed: bool
    completed_at: Optional[datetime]


class PersistedPlanResponse(BaseModel):
    session_id: uuid.UUID
    transfers: List[PersistedTransferSchema]


# Builders


def session_response(session: Session, version: int) -> SessionResponse:
    """Project a session aggregate into its API view"""
    bank = None
    if session.bank is not None:
        b = session.bank
        bank = BankSchema(
            manager_id=b.manager_id,
            is_closed=b.is_closed,
            closed_at=b.closed_at,
            expected_total=b.expected_total,
            total_deposited=b.total_deposited,
            total_withdrawn=b.total_withdrawn,
            net_balance=b.net_balance,
            remaining_to_collect=b.remaining_to_collect,
            transactions=[
                BankTransactionSchema(
                    id=t.id,
                    type=t.type.value,
                    amount=t.amount,
                    player_id=t.player_id,
                    linked_expense_id=t.linked_expense_id,
                    note=t.note,
                    created_at=t.created_at,
                )
                for t in b.transactions
            ],
        )

    reservations = calculate_reservations(session)
    return SessionResponse(
        id=session.id,
        version=version,
        title=session.title,
        location=session.location,
        start_time=session.start_time,
        game_type=session.game_type,
        status=session.status,
        chips_to_cash_ratio=session.chips_to_cash_ratio,
        small_blind=session.small_blind,
        big_blind=session.big_blind,
        ante=session.ante,
        rake_amount=session.rake_amount,
        tips_amount=session.tips_amount,
        tips_paid_from_bank=session.tips_paid_from_bank,
        chips_in_game=session.chips_in_game,
        players=[
            PlayerSchema(
                id=p.id,
                name=p.name,
                in_game=p.in_game,
                chip_buy_in=p.chip_buy_in,
                chip_cash_out=p.chip_cash_out,
                chip_profit=p.chip_profit,
                gets_rakeback=p.gets_rakeback,
                rakeback=p.rakeback,
                financial_result=financial_result(session, p),
                transactions=[
                    ChipTransactionSchema(id=t.id, type=t.type.value, chip_amount=t.chip_amount, timestamp=t.timestamp)
                    for t in p.transactions
                ],
            )
            for p in session.players
        ],
        expenses=[
            ExpenseSchema(
                id=e.id,
                note=e.note,
                amount=e.amount,
                payer_id=e.payer_id,
                paid_from_rake=e.paid_from_rake,
                paid_from_bank=e.paid_from_bank,
                is_fully_distributed=e.is_fully_distributed,
                distributions=[ExpenseDistributionSchema(player_id=d.player_id, amount=d.amount) for d in e.distributions],
            )
            for e in session.expenses
        ],
        bank=bank,
        reservations=ReservationsSchema(
            reserved_for_rake=reservations.reserved_for_rake,
            reserved_for_tips=reservations.reserved_for_tips,
            distributed_rakeback=reservations.distributed_rakeback,
            expenses_paid_from_rake=reservations.expenses_paid_from_rake,
            available_rake_for_expenses=reservations.available_rake_for_expenses,
            unpaid_tips=reservations.unpaid_tips,
            organizational_fee=reservations.organizational_fee,
        ),
    )


def settlement_response(result: SettlementResult, version: int) -> SettlementResponse:
    return SettlementResponse(
        session_id=result.session_id,
        session_version=version,
        is_final=result.is_final,
        unsettled_credit=result.unsettled_credit,
        total_credits=result.total_credits,
        total_debits=result.total_debits,
        balances=[
            PlayerBalanceSchema(
                player_id=b.player_id,
                name=b.name,
                chip_buy_in=b.chip_buy_in,
                chip_cash_out=b.chip_cash_out,
                net_chips=b.net_chips,
                net_cash=b.net_cash,
                financial_result=b.financial_result,
            )
            for b in result.balances
        ],
        transfers=[
            ProposedTransferSchema(
                from_player_id=t.from_player_id,
                to_player_id=t.to_player_id,
                description=t.description,
                amount=t.amount,
                transfer_type=t.transfer_type.value,
                note=t.note,
            )
            for t in result.transfers
        ],
    )


def persisted_transfer(record: SettlementTransferRecord) -> PersistedTransferSchema:
    return PersistedTransferSchema(
        id=record.id,
        session_id=record.session_id,
        session_version=record.session_version,
        from_player_id=record.from_player_id,
        to_player_id=record.to_player_id,
        amount=record.amount,
        transfer_type=record.transfer_type,
        note=record.note,
        is_completed=record.is_completed,
        completed_at=record.completed_at,
    )
