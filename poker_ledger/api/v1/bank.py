"""/v1/sessions/{id}/bank - session bank cash movements"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends

from poker_ledger.api.dependencies import CommandRunner, get_command_runner, get_expected_version
from poker_ledger.api.v1.schemas import (
    BankManagerRequest,
    BankTransactionRequest,
    ExpensePaymentRequest,
    SessionResponse,
    TipPaymentRequest,
    session_response,
)
from poker_ledger.domain import commands

router = APIRouter()


def _run(runner: CommandRunner, session_id: uuid.UUID, command: str, mutate, expected_version: Optional[int]):
    session, version, _ = runner.run(session_id, command, mutate, expected_version)
    return session_response(session, version)


@router.post("/sessions/{session_id}/bank", response_model=SessionResponse)
def open_bank(
    session_id: uuid.UUID,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    """Create the session bank; a no-op when it already exists"""
    return _run(runner, session_id, "ensure_bank", commands.ensure_bank, expected_version)


@router.put("/sessions/{session_id}/bank/manager", response_model=SessionResponse)
def set_bank_manager(
    session_id: uuid.UUID,
    request_body: BankManagerRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _run(
        runner,
        session_id,
        "set_bank_manager",
        lambda s: commands.set_bank_manager(s, request_body.player_id),
        expected_version,
    )


@router.post("/sessions/{session_id}/bank/deposits", response_model=SessionResponse, status_code=201)
def record_deposit(
    session_id: uuid.UUID,
    request_body: BankTransactionRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _run(
        runner,
        session_id,
        "record_deposit",
        lambda s: commands.record_deposit(s, request_body.player_id, request_body.amount, request_body.note),
        expected_version,
    )


@router.post("/sessions/{session_id}/bank/withdrawals", response_model=SessionResponse, status_code=201)
def record_withdrawal(
    session_id: uuid.UUID,
    request_body: BankTransactionRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _run(
        runner,
        session_id,
        "record_withdrawal",
        lambda s: commands.record_withdrawal(s, request_body.player_id, request_body.amount, request_body.note),
        expected_version,
    )


@router.post("/sessions/{session_id}/bank/expense-payments", response_model=SessionResponse, status_code=201)
def record_expense_payment(
    session_id: uuid.UUID,
    request_body: ExpensePaymentRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _run(
        runner,
        session_id,
        "record_expense_payment",
        lambda s: commands.record_expense_payment(s, request_body.expense_id, request_body.amount, request_body.note),
        expected_version,
    )


@router.post("/sessions/{session_id}/bank/tip-payments", response_model=SessionResponse, status_code=201)
def record_tip_payment(
    session_id: uuid.UUID,
    request_body: TipPaymentRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _run(
        runner,
        session_id,
        "record_tip_payment",
        lambda s: commands.record_tip_payment(s, request_body.amount, request_body.note),
        expected_version,
    )


@router.delete("/sessions/{session_id}/bank/transactions/{transaction_id}", response_model=SessionResponse)
def remove_bank_transaction(
    session_id: uuid.UUID,
    transaction_id: uuid.UUID,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _run(
        runner,
        session_id,
        "remove_bank_transaction",
        lambda s: commands.remove_bank_transaction(s, transaction_id),
        expected_version,
    )


@router.post("/sessions/{session_id}/bank/close", response_model=SessionResponse)
def close_bank(
    session_id: uuid.UUID,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _run(runner, session_id, "close_bank", commands.close_bank, expected_version)


@router.post("/sessions/{session_id}/bank/reopen", response_model=SessionResponse)
def reopen_bank(
    session_id: uuid.UUID,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _run(runner, session_id, "reopen_bank", commands.reopen_bank, expected_version)
