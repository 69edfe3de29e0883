"""Pytest fixtures for testing"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from typing import Dict, Generator, Optional
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from poker_ledger.api.main import create_app
from poker_ledger.infrastructure.database.models import Base
from poker_ledger.infrastructure.database.session import get_db
from poker_ledger.domain.models import (
    BankTransactionType,
    ChipTransactionType,
    Player,
    PlayerChipTransaction,
    Session as PokerSession,
    SessionBank,
    SessionBankTransaction,
)


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


class SessionBuilder:
    """
    Fluent builder for ledger snapshots.

    Writes entities directly, so tests can reach states the commands would
    refuse (an overdrawn bank, for instance).
    """

    def __init__(self, ratio: int = 1, title: str = "Friday game"):
        self.session = PokerSession(title=title, chips_to_cash_ratio=ratio)
        self.players: Dict[str, Player] = {}

    def player(self, name: str, buy_in: int, cash_out: Optional[int] = None, add_on: int = 0) -> "SessionBuilder":
        player = Player(name=name, in_game=cash_out is None)
        player.transactions.append(PlayerChipTransaction(type=ChipTransactionType.BUY_IN, chip_amount=buy_in))
        if add_on:
            player.transactions.append(PlayerChipTransaction(type=ChipTransactionType.ADD_ON, chip_amount=add_on))
        if cash_out is not None:
            player.transactions.append(PlayerChipTransaction(type=ChipTransactionType.CASH_OUT, chip_amount=cash_out))
        self.session.players.append(player)
        self.players[name] = player
        return self

    def result(self, name: str, chips: int, buy_in: int = 10000) -> "SessionBuilder":
        """Finished player whose chip result is `chips` on a fixed buy-in"""
        return self.player(name, buy_in, cash_out=buy_in + chips)

    def rake(self, rake_amount: int, tips_amount: int = 0) -> "SessionBuilder":
        self.session.rake_amount = rake_amount
        self.session.tips_amount = tips_amount
        return self

    def _bank(self) -> SessionBank:
        if self.session.bank is None:
            self.session.bank = SessionBank()
        return self.session.bank

    def deposit(self, name: str, amount: int) -> "SessionBuilder":
        self._bank().transactions.append(
            SessionBankTransaction(amount=amount, type=BankTransactionType.DEPOSIT, player_id=self.players[name].id)
        )
        return self

    def withdraw(self, name: str, amount: int) -> "SessionBuilder":
        self._bank().transactions.append(
            SessionBankTransaction(amount=amount, type=BankTransactionType.WITHDRAWAL, player_id=self.players[name].id)
        )
        return self

    def tip_payment(self, amount: int) -> "SessionBuilder":
        self._bank().transactions.append(SessionBankTransaction(amount=amount, type=BankTransactionType.TIP_PAYMENT))
        self.session.tips_paid_from_bank += amount
        return self

    def id(self, name: str):
        return self.players[name].id

    def build(self) -> PokerSession:
        return self.session


@pytest.fixture
def builder() -> SessionBuilder:
    return SessionBuilder()


@pytest.fixture
def nine_player_session() -> SessionBuilder:
    """Nine finished players, ratio 1, three losers left cash in the bank"""
    b = SessionBuilder()
    for name, chips in [
        ("Alex", 13000),
        ("Boris", 7000),
        ("Gregory", 3000),
        ("Victor", 3000),
        ("Dmitry", -2000),
        ("Eugene", -5000),
        ("Zhanna", -4000),
        ("Igor", -7000),
        ("Kirill", -8000),
    ]:
        b.result(name, chips)
    b.deposit("Igor", 5000).deposit("Dmitry", 2000).deposit("Kirill", 5000)
    return b
