"""Pydantic models of the session transfer file (camelCase JSON, ISO-8601 dates)"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from poker_ledger.domain.models import (
    BankTransactionType,
    ChipTransactionType,
    GameType,
    SessionStatus,
)


class TransferModel(BaseModel):
    """Base for every document node: camelCase on the wire, snake_case in Python"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TransferMetadata(TransferModel):
    format_version: str
    export_date: datetime
    app_version: str


class PlayerChipTransactionDocument(TransferModel):
    id: uuid.UUID
    timestamp: datetime
    type: ChipTransactionType
    chip_amount: int = Field(ge=0)


class PlayerDocument(TransferModel):
    id: uuid.UUID
    name: str
    in_game: bool
    gets_rakeback: bool = False
    rakeback: int = Field(default=0, ge=0)
    transactions: List[PlayerChipTransactionDocument] = Field(default_factory=list)


class BankTransactionDocument(TransferModel):
    id: uuid.UUID
    created_at: datetime
    amount: int = Field(gt=0)
    type: BankTransactionType
    note: str = ""
    player_id: Optional[uuid.UUID] = Field(default=None, alias="playerID")
    linked_expense_id: Optional[uuid.UUID] = Field(default=None, alias="linkedExpenseID")


class SessionBankDocument(TransferModel):
    id: uuid.UUID
    created_at: datetime
    is_closed: bool
    closed_at: Optional[datetime] = None
    expected_total: int = 0
    manager_player_id: Optional[uuid.UUID] = Field(default=None, alias="managerPlayerID")
    transactions: List[BankTransactionDocument] = Field(default_factory=list)


class ExpenseDistributionDocument(TransferModel):
    id: uuid.UUID
    player_id: uuid.UUID = Field(alias="playerID")
    amount: int = Field(ge=0)


class ExpenseDocument(TransferModel):
    id: uuid.UUID
    amount: int = Field(gt=0)
    note: str = ""
    created_at: datetime
    paid_from_rake: int = Field(default=0, ge=0)
    paid_from_bank: int = Field(default=0, ge=0)
    payer_player_id: Optional[uuid.UUID] = Field(default=None, alias="payerPlayerID")
    distributions: List[ExpenseDistributionDocument] = Field(default_factory=list)


class SessionDocument(TransferModel):
    """Root of a .pokersession file"""

    id: uuid.UUID
    session_title: str
    start_time: datetime
    location: str = ""
    game_type: GameType = GameType.NL_HOLDEM
    chips_to_cash_ratio: int = Field(default=1, ge=1)
    small_blind: int = Field(default=0, ge=0)
    big_blind: int = Field(default=0, ge=0)
    ante: int = Field(default=0, ge=0)
    status: SessionStatus = SessionStatus.ACTIVE
    rake_amount: int = Field(default=0, ge=0)
    tips_amount: int = Field(default=0, ge=0)
    tips_paid_from_bank: int = Field(default=0, ge=0)
    players: List[PlayerDocument] = Field(default_factory=list)
    bank: Optional[SessionBankDocument] = None
    expenses: List[ExpenseDocument] = Field(default_factory=list)
    metadata: TransferMetadata
