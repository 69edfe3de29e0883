"""/v1/sessions/{id}/expenses - shared expenses and their distribution"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends

from poker_ledger.api.dependencies import CommandRunner, get_command_runner, get_expected_version
from poker_ledger.api.v1.schemas import (
    CreateExpenseRequest,
    EqualDistributionRequest,
    ManualDistributionRequest,
    SessionResponse,
    session_response,
)
from poker_ledger.domain import expenses
from poker_ledger.domain.expenses import RAKE_POOL

router = APIRouter()


@router.post("/sessions/{session_id}/expenses", response_model=SessionResponse, status_code=201)
def add_expense(
    session_id: uuid.UUID,
    request_body: CreateExpenseRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    session, version, _ = runner.run(
        session_id,
        "add_expense",
        lambda s: expenses.add_expense(s, request_body.note, request_body.amount, payer_id=request_body.payer_id),
        expected_version,
    )
    return session_response(session, version)


@router.delete("/sessions/{session_id}/expenses/{expense_id}", response_model=SessionResponse)
def remove_expense(
    session_id: uuid.UUID,
    expense_id: uuid.UUID,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    session, version, _ = runner.run(
        session_id, "remove_expense", lambda s: expenses.remove_expense(s, expense_id), expected_version
    )
    return session_response(session, version)


@router.put("/sessions/{session_id}/expenses/{expense_id}/distribution/equal", response_model=SessionResponse)
def distribute_equally(
    session_id: uuid.UUID,
    expense_id: uuid.UUID,
    request_body: EqualDistributionRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    """
    Split an expense evenly.

    Remainder units go to the first listed players; the rake pool, when
    included, comes last.
    """
    participants = list(request_body.player_ids)
    if request_body.include_rake:
        participants.append(RAKE_POOL)

    session, version, _ = runner.run(
        session_id,
        "distribute_expense_equally",
        lambda s: expenses.distribute_expense_equally(s, expense_id, participants),
        expected_version,
    )
    return session_response(session, version)


@router.put("/sessions/{session_id}/expenses/{expense_id}/distribution/manual", response_model=SessionResponse)
def distribute_manually(
    session_id: uuid.UUID,
    expense_id: uuid.UUID,
    request_body: ManualDistributionRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    shares = {share.player_id: share.amount for share in request_body.shares}
    if request_body.rake_share:
        shares[RAKE_POOL] = request_body.rake_share

    session, version, _ = runner.run(
        session_id,
        "distribute_expense_manually",
        lambda s: expenses.distribute_expense_manually(s, expense_id, shares),
        expected_version,
    )
    return session_response(session, version)
