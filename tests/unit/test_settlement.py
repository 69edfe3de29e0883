"""Unit tests for the settlement engine"""

import pytest

from poker_ledger.domain import commands
from poker_ledger.domain.exceptions import ExpenseNotDistributedError, ReconciliationError
from poker_ledger.domain.expenses import RAKE_POOL, add_expense, distribute_expense_equally
from poker_ledger.domain.models import BANK, TransferType
from poker_ledger.domain.settlement import calculate_settlement


def _pairs(transfers):
    return [(t.source.name, t.target.name, t.amount) for t in transfers]


def _assert_fully_settled(result):
    for balance in result.balances:
        assert result.residual_balance(balance.player_id) == 0, balance.name


def test_nine_player_session_with_deposits(nine_player_session):
    """Test bank cash goes to the top creditor first, then peers settle the rest"""
    result = calculate_settlement(nine_player_session.build())

    assert _pairs(result.bank_transfers) == [
        ("Bank", "Alex", 5000),
        ("Bank", "Alex", 5000),
        ("Bank", "Alex", 2000),
    ]
    assert [t.note for t in result.bank_transfers] == [
        "From Igor's deposit",
        "From Kirill's deposit",
        "From Dmitry's deposit",
    ]
    assert _pairs(result.player_transfers) == [
        ("Eugene", "Boris", 5000),
        ("Zhanna", "Boris", 2000),
        ("Zhanna", "Gregory", 2000),
        ("Kirill", "Gregory", 1000),
        ("Kirill", "Victor", 2000),
        ("Igor", "Victor", 1000),
        ("Igor", "Alex", 1000),
    ]
    assert result.house_transfers == []
    assert result.is_final
    _assert_fully_settled(result)


def test_settlement_is_deterministic(nine_player_session):
    """Test two runs over the same snapshot produce identical plans"""
    session = nine_player_session.build()

    assert calculate_settlement(session).transfers == calculate_settlement(session).transfers


def test_zero_sum_without_bank(builder):
    """Test plain peer-to-peer settlement balances exactly"""
    session = builder.result("Ann", 500).result("Ben", 200).result("Cat", -300).result("Dan", -400).build()

    result = calculate_settlement(session)

    assert result.bank_transfers == []
    assert result.total_credits == result.total_debits == 700
    assert _pairs(result.transfers) == [
        ("Dan", "Ann", 400),
        ("Cat", "Ann", 100),
        ("Cat", "Ben", 200),
    ]
    _assert_fully_settled(result)


def test_rake_is_collected_by_the_bank(builder):
    """Test rake withheld from the table is never paid out to a player"""
    for name, chips in [
        ("Alex", 8000),
        ("Boris", 7000),
        ("Gregory", 3000),
        ("Victor", 3000),
        ("Dmitry", -2000),
        ("Eugene", -5000),
        ("Zhanna", -4000),
        ("Igor", -7000),
        ("Kirill", -8000),
    ]:
        builder.result(name, chips)
    session = builder.rake(5000).build()
    assert session.chips_in_game == 0

    result = calculate_settlement(session)

    assert sum(b.financial_result for b in result.balances) == -5000
    assert sum(t.amount for t in result.house_transfers) == 5000
    assert all(t.target == BANK for t in result.house_transfers)
    received = {}
    for t in result.transfers:
        if t.to_player_id is not None:
            received[t.to_player_id] = received.get(t.to_player_id, 0) + t.amount
    for balance in result.balances:
        assert received.get(balance.player_id, 0) == max(balance.financial_result, 0)
    _assert_fully_settled(result)


def test_withdrawal_reduces_winner_claim(builder):
    """Test cash a winner already took from the bank is not paid twice"""
    session = builder.result("Alice", 80, buy_in=100).result("Bob", -80, buy_in=100).withdraw("Alice", 50).build()

    result = calculate_settlement(session)

    assert result.bank_transfers == []
    assert _pairs(result.player_transfers) == [("Bob", "Alice", 30)]
    assert _pairs(result.house_transfers) == [("Bob", "Bank", 50)]
    _assert_fully_settled(result)


def test_partial_deposit(builder):
    """Test loser's deposit covers part of the debt, the rest is paid directly"""
    session = builder.result("Alice", 100, buy_in=100).result("Bob", -100, buy_in=100).deposit("Bob", 60).build()

    result = calculate_settlement(session)

    assert _pairs(result.bank_transfers) == [("Bank", "Alice", 60)]
    assert _pairs(result.player_transfers) == [("Bob", "Alice", 40)]
    _assert_fully_settled(result)


def test_overpaid_deposit_is_returned(builder):
    """Test a loser who deposited more than they lost gets the change from the bank"""
    session = builder.result("Alice", 50, buy_in=100).result("Bob", -50, buy_in=100).deposit("Bob", 100).build()

    result = calculate_settlement(session)

    assert _pairs(result.bank_transfers) == [("Bank", "Alice", 50), ("Bank", "Bob", 50)]
    assert result.player_transfers == []
    _assert_fully_settled(result)


def test_winner_deposit_is_paid_back(builder):
    """Test a winner's own deposit is part of the bank pool"""
    session = (
        builder.result("Alice", 100, buy_in=100)
        .result("Bob", -100, buy_in=100)
        .deposit("Alice", 20)
        .deposit("Bob", 50)
        .build()
    )

    result = calculate_settlement(session)

    assert sum(t.amount for t in result.bank_transfers) == 70
    assert all(t.to_player_id == builder.id("Alice") for t in result.bank_transfers)
    assert _pairs(result.player_transfers) == [("Bob", "Alice", 50)]
    _assert_fully_settled(result)


def test_bank_pool_capped_at_cash_on_hand(builder):
    """Test the bank never pays out more than it holds"""
    session = (
        builder.result("Ann", 1000)
        .result("Ben", -1000)
        .deposit("Ben", 1000)
        .withdraw("Ann", 400)
        .build()
    )

    result = calculate_settlement(session)

    assert sum(t.amount for t in result.bank_transfers) == 600
    _assert_fully_settled(result)


def test_zero_results_take_no_part(builder):
    """Test break-even players appear in balances but not in transfers"""
    session = builder.result("Ann", 0).result("Ben", 100).result("Cat", -100).build()

    result = calculate_settlement(session)

    assert len(result.balances) == 3
    assert all(builder.id("Ann") not in (t.from_player_id, t.to_player_id) for t in result.transfers)


def test_provisional_settlement_while_players_active(builder):
    """Test unmatched credit is reported, not raised, while play continues"""
    session = builder.result("Ann", 500).player("Ben", 10000).build()

    result = calculate_settlement(session)

    assert not result.is_final
    assert result.unsettled_credit == 500
    assert result.transfers == ()


def test_unbalanced_finished_session_raises(builder):
    """Test credit with no source of cash is a reconciliation defect"""
    session = builder.result("Ann", 500).result("Ben", 0).build()

    with pytest.raises(ReconciliationError):
        calculate_settlement(session)


def test_transfer_types_and_parties(nine_player_session):
    """Test exactly one side is the bank for bank transfers"""
    result = calculate_settlement(nine_player_session.build())

    for t in result.transfers:
        if t.transfer_type == TransferType.PLAYER_TO_PLAYER:
            assert t.from_player_id is not None and t.to_player_id is not None
        else:
            assert (t.from_player_id is None) != (t.to_player_id is None)
        assert t.amount > 0


def test_player_fronted_expense_split_among_players(builder):
    """Test the payer is repaid through the plan and everyone ends at zero"""
    session = builder.result("Ann", 500).result("Ben", -300).result("Cat", -200).build()
    pizza = add_expense(session, "Pizza", 300, payer_id=builder.id("Ann"))
    distribute_expense_equally(session, pizza.id, [builder.id("Ann"), builder.id("Ben"), builder.id("Cat")])

    result = calculate_settlement(session)

    assert {b.name: b.financial_result for b in result.balances} == {"Ann": 700, "Ben": -400, "Cat": -300}
    assert _pairs(result.transfers) == [("Ben", "Ann", 400), ("Cat", "Ann", 300)]
    assert result.house_transfers == []
    _assert_fully_settled(result)


def test_expense_partly_covered_by_rake(builder):
    """Test the rake share of an expense reduces what the house collects"""
    session = builder.result("Ann", 600).result("Ben", -400).result("Cat", -400).rake(200).build()
    room = add_expense(session, "Room", 300, payer_id=builder.id("Ann"))
    distribute_expense_equally(session, room.id, [builder.id("Ann"), builder.id("Ben"), RAKE_POOL])
    assert room.paid_from_rake == 100

    result = calculate_settlement(session)

    assert _pairs(result.transfers) == [
        ("Ben", "Ann", 500),
        ("Cat", "Ann", 300),
        ("Cat", "Bank", 100),
    ]
    assert sum(t.amount for t in result.house_transfers) == 200 - room.paid_from_rake
    _assert_fully_settled(result)


def test_expense_paid_from_bank_and_split(builder):
    """Test a bank-paid expense is charged to its participants, not to depositors"""
    session = builder.result("Ann", 300).result("Ben", -300).deposit("Ben", 300).build()
    pizza = add_expense(session, "Pizza", 100)
    distribute_expense_equally(session, pizza.id, [builder.id("Ann"), builder.id("Ben")])
    commands.record_expense_payment(session, pizza.id, 100)

    result = calculate_settlement(session)

    assert _pairs(result.bank_transfers) == [("Bank", "Ann", 200)]
    assert _pairs(result.player_transfers) == [("Ben", "Ann", 50)]
    assert result.house_transfers == []
    _assert_fully_settled(result)


def test_rakeback_is_paid_out_of_the_house_share(builder):
    """Test rakeback goes to its player and the house keeps the rest of the rake"""
    session = builder.result("Ann", 400).result("Ben", -300).result("Cat", -300).rake(200).build()
    commands.set_rakeback(session, builder.id("Ann"), 50)

    result = calculate_settlement(session)

    assert result.balance(builder.id("Ann")).financial_result == 450
    assert _pairs(result.transfers) == [
        ("Ben", "Ann", 300),
        ("Cat", "Ann", 150),
        ("Cat", "Bank", 150),
    ]
    assert sum(t.amount for t in result.house_transfers) == 200 - 50
    assert all(t.note == "Owed to the bank" for t in result.house_transfers)
    _assert_fully_settled(result)


def test_unsplit_fronted_expense_blocks_final_settlement(builder):
    """Test a fronted expense without a split is a state error, then settles once split"""
    session = builder.result("Ann", 500).result("Ben", -500).build()
    pizza = add_expense(session, "Pizza", 300, payer_id=builder.id("Ann"))

    with pytest.raises(ExpenseNotDistributedError):
        calculate_settlement(session)

    distribute_expense_equally(session, pizza.id, [builder.id("Ann"), builder.id("Ben")])
    result = calculate_settlement(session)
    assert result.is_final
    _assert_fully_settled(result)


def test_unsplit_fronted_expense_is_provisional_while_playing(builder):
    """Test the payer's unmatched credit is reported while players are active"""
    session = builder.result("Ann", 0).player("Ben", 1000).build()
    add_expense(session, "Pizza", 300, payer_id=builder.id("Ann"))

    result = calculate_settlement(session)

    assert not result.is_final
    assert result.unsettled_credit == 300
