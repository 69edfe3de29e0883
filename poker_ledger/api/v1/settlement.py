"""Settlement query and persisted settlement transfers"""

import logging
import time
import uuid

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from poker_ledger.api.dependencies import (
    get_request_id,
    get_session_repository,
    get_transfer_repository,
)
from poker_ledger.api.v1.schemas import (
    PersistedPlanResponse,
    PersistedTransferSchema,
    PersistPlanRequest,
    SettlementResponse,
    TransferCompletionRequest,
    persisted_transfer,
    settlement_response,
)
from poker_ledger.domain.exceptions import DomainException, ReconciliationError, StaleSessionError
from poker_ledger.domain.models import Session as PokerSession
from poker_ledger.domain.models import SettlementResult
from poker_ledger.domain.settlement import calculate_settlement
from poker_ledger.infrastructure.database.repositories import SessionRepository, SettlementTransferRepository
from poker_ledger.infrastructure.database.session import get_db
from poker_ledger.infrastructure.observability.logging import log_settlement
from poker_ledger.infrastructure.observability.metrics import record_reconciliation_failure, record_settlement

router = APIRouter()


def _settle(session: PokerSession, version: int, request_id: str) -> SettlementResult:
    """Run the engine with metrics and structured logging around it"""
    start_time = time.time()
    try:
        result = calculate_settlement(session)
    except ReconciliationError:
        record_reconciliation_failure()
        raise

    duration_ms = (time.time() - start_time) * 1000
    record_settlement(result.is_final, result.transfers)
    log_settlement(request_id, str(session.id), version, len(result.transfers), result.is_final, duration_ms)
    return result


@router.get("/sessions/{session_id}/settlement", response_model=SettlementResponse)
def get_settlement(
    session_id: uuid.UUID,
    request: Request,
    sessions: SessionRepository = Depends(get_session_repository),
):
    """
    Compute the transfer plan for the current session snapshot.

    Returns:
        Balances and ordered transfers (bank-mediated, peer-to-peer, house)
        together with the session version they were computed from
    """
    session, version = sessions.get(session_id)
    result = _settle(session, version, get_request_id(request))
    return settlement_response(result, version)


@router.post("/sessions/{session_id}/settlement/transfers", response_model=PersistedPlanResponse, status_code=201)
def persist_settlement(
    session_id: uuid.UUID,
    request_body: PersistPlanRequest,
    request: Request,
    db: Session = Depends(get_db),
    sessions: SessionRepository = Depends(get_session_repository),
    transfers: SettlementTransferRepository = Depends(get_transfer_repository),
):
    """
    Store the plan for the session version the caller reviewed.

    The version is re-checked inside the write transaction; a plan computed
    from an older snapshot is rejected with 409.
    """
    request_id = get_request_id(request)
    try:
        session, version = sessions.get(session_id, for_update=True)
        if version != request_body.expected_version:
            raise StaleSessionError(
                f"Session {session_id} is at version {version}, plan was computed at {request_body.expected_version}"
            )
        result = _settle(session, version, request_id)
        records = transfers.replace_plan(session_id, version, result.transfers)
        db.commit()

    except DomainException:
        db.rollback()
        raise

    logging.info(
        "Settlement plan stored",
        extra={"request_id": request_id, "session_id": str(session_id), "session_version": version},
    )
    return PersistedPlanResponse(session_id=session_id, transfers=[persisted_transfer(r) for r in records])


@router.get("/sessions/{session_id}/settlement/transfers", response_model=PersistedPlanResponse)
def list_settlement_transfers(
    session_id: uuid.UUID,
    sessions: SessionRepository = Depends(get_session_repository),
    transfers: SettlementTransferRepository = Depends(get_transfer_repository),
):
    sessions.current_version(session_id)
    records = transfers.list_for_session(session_id)
    return PersistedPlanResponse(session_id=session_id, transfers=[persisted_transfer(r) for r in records])


@router.patch("/settlement-transfers/{transfer_id}", response_model=PersistedTransferSchema)
def update_settlement_transfer(
    transfer_id: uuid.UUID,
    request_body: TransferCompletionRequest,
    request: Request,
    db: Session = Depends(get_db),
    transfers: SettlementTransferRepository = Depends(get_transfer_repository),
):
    """Mark a transfer as paid (or not); ledger balances are never touched"""
    record = transfers.set_completed(transfer_id, request_body.is_completed)
    db.commit()

    logging.info(
        "Settlement transfer updated",
        extra={
            "request_id": get_request_id(request),
            "transfer_id": str(transfer_id),
            "is_completed": record.is_completed,
        },
    )
    return persisted_transfer(record)
