"""/v1/sessions - session lifecycle, players, chips, rake and rakeback"""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from poker_ledger.api.dependencies import (
    CommandRunner,
    get_command_runner,
    get_expected_version,
    get_request_id,
    get_session_repository,
)
from poker_ledger.api.v1.schemas import (
    AddPlayerRequest,
    BlindsRequest,
    ChipAmountRequest,
    CreateSessionRequest,
    RakeAndTipsRequest,
    RakebackDistributionRequest,
    RakebackRequest,
    SessionResponse,
    SessionSummary,
    session_response,
)
from poker_ledger.config import settings
from poker_ledger.domain import commands
from poker_ledger.domain.exceptions import InvalidBlindsError
from poker_ledger.domain.models import Session as PokerSession
from poker_ledger.domain.models import utcnow
from poker_ledger.infrastructure.database.repositories import SessionRepository
from poker_ledger.infrastructure.database.session import get_db

router = APIRouter()


@router.post("/sessions", response_model=SessionResponse, status_code=201)
def create_session(
    request_body: CreateSessionRequest,
    request: Request,
    db: Session = Depends(get_db),
    sessions: SessionRepository = Depends(get_session_repository),
):
    """Open a new, empty session"""
    if request_body.small_blind > request_body.big_blind:
        raise InvalidBlindsError("Small blind is larger than big blind")

    session = PokerSession(
        title=request_body.title.strip(),
        location=request_body.location.strip(),
        start_time=request_body.start_time or utcnow(),
        game_type=request_body.game_type,
        chips_to_cash_ratio=request_body.chips_to_cash_ratio,
        small_blind=request_body.small_blind,
        big_blind=request_body.big_blind,
        ante=request_body.ante,
    )
    version = sessions.create(session)
    db.commit()

    logging.info(
        "Session created",
        extra={"request_id": get_request_id(request), "session_id": str(session.id)},
    )
    return session_response(session, version)


@router.get("/sessions", response_model=List[SessionSummary])
def list_sessions(sessions: SessionRepository = Depends(get_session_repository)):
    return [
        SessionSummary(id=r.id, title=r.title, status=r.status, version=r.version, created_at=r.created_at)
        for r in sessions.list_sessions()
    ]


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(
    session_id: uuid.UUID,
    response: Response,
    sessions: SessionRepository = Depends(get_session_repository),
):
    session, version = sessions.get(session_id)
    response.headers["ETag"] = str(version)
    return session_response(session, version)


@router.delete("/sessions/{session_id}", status_code=204)
def delete_session(
    session_id: uuid.UUID,
    db: Session = Depends(get_db),
    sessions: SessionRepository = Depends(get_session_repository),
):
    sessions.delete(session_id)
    db.commit()
    return Response(status_code=204)


def _respond(runner_result) -> SessionResponse:
    session, version, _ = runner_result
    return session_response(session, version)


# Players and chips


@router.post("/sessions/{session_id}/players", response_model=SessionResponse, status_code=201)
def add_player(
    session_id: uuid.UUID,
    request_body: AddPlayerRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _respond(
        runner.run(
            session_id,
            "add_player",
            lambda s: commands.add_player(
                s, request_body.name, request_body.buy_in, max_players=settings.max_players_per_session
            ),
            expected_version,
        )
    )


@router.delete("/sessions/{session_id}/players/{player_id}", response_model=SessionResponse)
def remove_player(
    session_id: uuid.UUID,
    player_id: uuid.UUID,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _respond(
        runner.run(session_id, "remove_player", lambda s: commands.remove_player(s, player_id), expected_version)
    )


@router.post("/sessions/{session_id}/players/{player_id}/add-on", response_model=SessionResponse)
def add_on(
    session_id: uuid.UUID,
    player_id: uuid.UUID,
    request_body: ChipAmountRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _respond(
        runner.run(
            session_id, "add_on", lambda s: commands.add_on(s, player_id, request_body.amount), expected_version
        )
    )


@router.post("/sessions/{session_id}/players/{player_id}/cash-out", response_model=SessionResponse)
def cash_out(
    session_id: uuid.UUID,
    player_id: uuid.UUID,
    request_body: ChipAmountRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _respond(
        runner.run(
            session_id, "cash_out", lambda s: commands.cash_out(s, player_id, request_body.amount), expected_version
        )
    )


@router.post("/sessions/{session_id}/players/{player_id}/rebuy", response_model=SessionResponse)
def rebuy(
    session_id: uuid.UUID,
    player_id: uuid.UUID,
    request_body: ChipAmountRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _respond(
        runner.run(
            session_id, "rebuy", lambda s: commands.rebuy(s, player_id, request_body.amount), expected_version
        )
    )


@router.delete(
    "/sessions/{session_id}/players/{player_id}/transactions/{transaction_id}",
    response_model=SessionResponse,
)
def remove_chip_transaction(
    session_id: uuid.UUID,
    player_id: uuid.UUID,
    transaction_id: uuid.UUID,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _respond(
        runner.run(
            session_id,
            "remove_chip_transaction",
            lambda s: commands.remove_chip_transaction(s, player_id, transaction_id),
            expected_version,
        )
    )


# Session settings


@router.put("/sessions/{session_id}/rake-tips", response_model=SessionResponse)
def set_rake_and_tips(
    session_id: uuid.UUID,
    request_body: RakeAndTipsRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _respond(
        runner.run(
            session_id,
            "set_rake_and_tips",
            lambda s: commands.set_rake_and_tips(s, request_body.rake_amount, request_body.tips_amount),
            expected_version,
        )
    )


@router.put("/sessions/{session_id}/blinds", response_model=SessionResponse)
def update_blinds(
    session_id: uuid.UUID,
    request_body: BlindsRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _respond(
        runner.run(
            session_id,
            "update_blinds",
            lambda s: commands.update_blinds(s, request_body.small_blind, request_body.big_blind, request_body.ante),
            expected_version,
        )
    )


@router.post("/sessions/{session_id}/finish", response_model=SessionResponse)
def finish_session(
    session_id: uuid.UUID,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    """Mark a fully cashed-out session whose ledger settles as finished"""
    return _respond(runner.run(session_id, "finish_session", commands.finish_session, expected_version))


# Rakeback


@router.put("/sessions/{session_id}/players/{player_id}/rakeback", response_model=SessionResponse)
def set_rakeback(
    session_id: uuid.UUID,
    player_id: uuid.UUID,
    request_body: RakebackRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    return _respond(
        runner.run(
            session_id,
            "set_rakeback",
            lambda s: commands.set_rakeback(s, player_id, request_body.amount),
            expected_version,
        )
    )


@router.post("/sessions/{session_id}/rakeback/distribution", response_model=SessionResponse)
def distribute_rakeback(
    session_id: uuid.UUID,
    request_body: RakebackDistributionRequest,
    runner: CommandRunner = Depends(get_command_runner),
    expected_version: Optional[int] = Depends(get_expected_version),
):
    """
    Split a rakeback total across players.

    Players not listed lose any rakeback they had.
    """
    return _respond(
        runner.run(
            session_id,
            "distribute_rakeback",
            lambda s: commands.distribute_rakeback(
                s,
                request_body.player_ids,
                request_body.total_amount,
                mode=request_body.mode,
                amounts=request_body.amounts,
            ),
            expected_version,
        )
    )
