"""Dependency injection for FastAPI endpoints"""

import uuid
from typing import Any, Callable, Optional, Tuple

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from poker_ledger.domain.exceptions import DomainException, StaleSessionError
from poker_ledger.domain.models import Session as PokerSession
from poker_ledger.infrastructure.database.repositories import SessionRepository, SettlementTransferRepository
from poker_ledger.infrastructure.database.session import get_db
from poker_ledger.infrastructure.observability.logging import log_command
from poker_ledger.infrastructure.observability.metrics import record_command


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_expected_version(if_match: Optional[str] = Header(None)) -> Optional[int]:
    """Optional `If-Match: <version>` precondition for mutations"""
    if if_match is None:
        return None
    try:
        return int(if_match.strip().strip('"'))
    except ValueError:
        raise HTTPException(status_code=400, detail="If-Match must be a session version number")


def get_session_repository(db: Session = Depends(get_db)) -> SessionRepository:
    return SessionRepository(db)


def get_transfer_repository(db: Session = Depends(get_db)) -> SettlementTransferRepository:
    return SettlementTransferRepository(db)


class CommandRunner:
    """
    Applies one ledger command to a stored session.

    Flow:
    1. Load the snapshot and its version
    2. Check the caller's expected version, if any
    3. Run the command against the snapshot
    4. Save with a version check and commit

    Any domain error rolls back and propagates to the API error handlers.
    """

    def __init__(self, db: Session, request_id: str):
        self.db = db
        self.request_id = request_id
        self.sessions = SessionRepository(db)

    def run(
        self,
        session_id: uuid.UUID,
        command: str,
        mutate: Callable[[PokerSession], Any],
        expected_version: Optional[int] = None,
    ) -> Tuple[PokerSession, int, Any]:
        try:
            session, version = self.sessions.get(session_id)
            if expected_version is not None and expected_version != version:
                raise StaleSessionError(
                    f"Session {session_id} is at version {version}, expected {expected_version}"
                )

            result = mutate(session)
            new_version = self.sessions.save(session, version)
            self.db.commit()

        except StaleSessionError as e:
            self.db.rollback()
            record_command(command, "conflict")
            log_command(self.request_id, str(session_id), command, "conflict", error=str(e))
            raise

        except DomainException as e:
            self.db.rollback()
            record_command(command, "rejected")
            log_command(self.request_id, str(session_id), command, "rejected", error=str(e))
            raise

        record_command(command, "applied")
        log_command(self.request_id, str(session_id), command, "applied", session_version=new_version)
        return session, new_version, result


def get_command_runner(request: Request, db: Session = Depends(get_db)) -> CommandRunner:
    """Provide a command runner bound to the request's database session"""
    return CommandRunner(db, get_request_id(request))
