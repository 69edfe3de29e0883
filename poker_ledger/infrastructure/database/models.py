"""SQLAlchemy ORM models: versioned session documents and settlement transfer records"""

import uuid
from sqlalchemy import Column, BigInteger, Boolean, DateTime, Integer, ForeignKey, Text, JSON, Uuid
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class PokerSessionRecord(Base):
    """Session aggregate stored as its transfer document, guarded by an optimistic version"""

    __tablename__ = "poker_session"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="active")
    document = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    transfers = relationship(
        "SettlementTransferRecord",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SettlementTransferRecord.position",
    )


class SettlementTransferRecord(Base):
    """Persisted settlement instruction; NULL player on one side means the bank"""

    __tablename__ = "settlement_transfer"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("poker_session.id", ondelete="CASCADE"), nullable=False, index=True)
    session_version = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False)
    from_player_id = Column(Uuid(as_uuid=True), nullable=True)
    to_player_id = Column(Uuid(as_uuid=True), nullable=True)
    amount = Column(BigInteger, nullable=False)
    transfer_type = Column(Text, nullable=False)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    note = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    session = relationship("PokerSessionRecord", back_populates="transfers")
