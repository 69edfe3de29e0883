"""Session file export and import (.pokersession)"""

import logging
import re
import uuid

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from starlette.responses import Response

from poker_ledger.api.dependencies import get_request_id, get_session_repository
from poker_ledger.api.v1.schemas import SessionResponse, session_response
from poker_ledger.domain.exceptions import TransferIntegrityError
from poker_ledger.infrastructure.database.repositories import SessionRepository
from poker_ledger.infrastructure.database.session import get_db
from poker_ledger.infrastructure.observability.metrics import session_import_counter
from poker_ledger.infrastructure.transfer.codec import export_session, import_session

router = APIRouter()

SESSION_FILE_MEDIA_TYPE = "application/json"


def _file_name(title: str) -> str:
    slug = re.sub(r"[^\w\-]+", "_", title, flags=re.UNICODE).strip("_") or "session"
    return f"{slug}.pokersession"


@router.get("/sessions/{session_id}/export")
def export_session_file(
    session_id: uuid.UUID,
    request: Request,
    sessions: SessionRepository = Depends(get_session_repository),
):
    """Download the session as a .pokersession document"""
    session, version = sessions.get(session_id)
    content = export_session(session)

    logging.info(
        "Session exported",
        extra={"request_id": get_request_id(request), "session_id": str(session_id), "session_version": version},
    )
    return Response(
        content=content,
        media_type=SESSION_FILE_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{_file_name(session.title)}"'},
    )


@router.post("/sessions/import", response_model=SessionResponse, status_code=201)
async def import_session_file(
    request: Request,
    db: Session = Depends(get_db),
    sessions: SessionRepository = Depends(get_session_repository),
):
    """
    Create a new session from an uploaded .pokersession body.

    Every identifier is re-mapped, so the same file can be imported repeatedly.
    Nothing is stored when the file is rejected.
    """
    request_id = get_request_id(request)
    body = await request.body()

    try:
        session = import_session(body)
    except TransferIntegrityError as e:
        session_import_counter.labels(outcome="rejected").inc()
        logging.warning(f"Session import rejected: {e}", extra={"request_id": request_id})
        raise

    version = sessions.create(session)
    db.commit()

    session_import_counter.labels(outcome="imported").inc()
    logging.info("Session import stored", extra={"request_id": request_id, "session_id": str(session.id)})
    return session_response(session, version)
