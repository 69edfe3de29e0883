"""Data access layer for sessions and settlement transfers"""

import uuid
from typing import List, Optional, Sequence, Tuple
from sqlalchemy import update
from sqlalchemy.orm import Session
from poker_ledger.infrastructure.database.models import PokerSessionRecord, SettlementTransferRecord
from poker_ledger.infrastructure.transfer.codec import session_from_dict, session_to_dict
from poker_ledger.domain.exceptions import (
    SessionNotFoundError,
    SettlementTransferNotFoundError,
    StaleSessionError,
)
from poker_ledger.domain.models import Session as PokerSession
from poker_ledger.domain.models import SettlementTransfer, utcnow


class SessionRepository:
    """Repository for session aggregates stored as versioned documents"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, session: PokerSession) -> int:
        """Persist a new session, returns its version"""
        record = PokerSessionRecord(
            id=session.id,
            title=session.title,
            status=session.status.value,
            document=session_to_dict(session),
            version=1,
        )
        self.db.add(record)
        self.db.flush()  # Surface PK conflicts before commit
        return record.version

    def _record(self, session_id: uuid.UUID, for_update: bool = False) -> PokerSessionRecord:
        query = self.db.query(PokerSessionRecord).filter(PokerSessionRecord.id == session_id)
        if for_update:
            query = query.with_for_update()
        record = query.first()
        if record is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return record

    def get(self, session_id: uuid.UUID, for_update: bool = False) -> Tuple[PokerSession, int]:
        """Load a session snapshot together with the version it was read at"""
        record = self._record(session_id, for_update=for_update)
        return session_from_dict(record.document), record.version

    def current_version(self, session_id: uuid.UUID) -> int:
        return self._record(session_id).version

    def list_sessions(self, limit: int = 50) -> List[PokerSessionRecord]:
        """Fetch most recent sessions"""
        return (
            self.db.query(PokerSessionRecord)
            .order_by(PokerSessionRecord.created_at.desc())
            .limit(limit)
            .all()
        )

    def save(self, session: PokerSession, expected_version: int) -> int:
        """
        Write a mutated snapshot back if nobody else changed it meanwhile.

        Raises:
            StaleSessionError: stored version differs from expected_version
        """
        result = self.db.execute(
            update(PokerSessionRecord)
            .where(PokerSessionRecord.id == session.id)
            .where(PokerSessionRecord.version == expected_version)
            .values(
                title=session.title,
                status=session.status.value,
                document=session_to_dict(session),
                version=expected_version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self._record(session.id)
            raise StaleSessionError(
                f"Session {session.id} changed since version {expected_version}"
            )
        self.db.expire_all()
        return expected_version + 1

    def delete(self, session_id: uuid.UUID) -> None:
        self.db.delete(self._record(session_id))


class SettlementTransferRepository:
    """Repository for persisted settlement plans"""

    def __init__(self, db: Session):
        self.db = db

    def replace_plan(
        self,
        session_id: uuid.UUID,
        session_version: int,
        transfers: Sequence[SettlementTransfer],
    ) -> List[SettlementTransferRecord]:
        """Store a freshly computed plan, discarding the previous one"""
        (
            self.db.query(SettlementTransferRecord)
            .filter(SettlementTransferRecord.session_id == session_id)
            .delete(synchronize_session=False)
        )

        records = [
            SettlementTransferRecord(
                session_id=session_id,
                session_version=session_version,
                position=position,
                from_player_id=t.from_player_id,
                to_player_id=t.to_player_id,
                amount=t.amount,
                transfer_type=t.transfer_type.value,
                note=t.note,
            )
            for position, t in enumerate(transfers)
        ]
        self.db.add_all(records)
        self.db.flush()
        return records

    def list_for_session(self, session_id: uuid.UUID) -> List[SettlementTransferRecord]:
        return (
            self.db.query(SettlementTransferRecord)
            .filter(SettlementTransferRecord.session_id == session_id)
            .order_by(SettlementTransferRecord.position)
            .all()
        )

    def get(self, transfer_id: uuid.UUID) -> SettlementTransferRecord:
        record = self.db.get(SettlementTransferRecord, transfer_id)
        if record is None:
            raise SettlementTransferNotFoundError(f"Settlement transfer {transfer_id} not found")
        return record

    def set_completed(self, transfer_id: uuid.UUID, completed: Optional[bool] = None) -> SettlementTransferRecord:
        """Mark a transfer done (or undone); None toggles the current state"""
        record = self.get(transfer_id)
        record.is_completed = (not record.is_completed) if completed is None else completed
        record.completed_at = utcnow() if record.is_completed else None
        self.db.flush()
        return record
