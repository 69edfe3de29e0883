"""Session transfer codec - export/import of .pokersession JSON documents"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from poker_ledger.config import settings
from poker_ledger.domain.exceptions import (
    InvalidReferenceError,
    MalformedPayloadError,
    UnsupportedFormatVersionError,
)
from poker_ledger.domain.models import (
    Expense,
    ExpenseDistribution,
    Player,
    PlayerChipTransaction,
    Session,
    SessionBank,
    SessionBankTransaction,
    utcnow,
)
from poker_ledger.infrastructure.transfer.schemas import (
    BankTransactionDocument,
    ExpenseDistributionDocument,
    ExpenseDocument,
    PlayerChipTransactionDocument,
    PlayerDocument,
    SessionBankDocument,
    SessionDocument,
    TransferMetadata,
)

logger = logging.getLogger(__name__)


def session_to_document(session: Session, export_date: Optional[datetime] = None) -> SessionDocument:
    """Convert a session aggregate into its transfer document"""
    bank = None
    if session.bank is not None:
        bank = SessionBankDocument(
            id=session.bank.id,
            created_at=session.bank.created_at,
            is_closed=session.bank.is_closed,
            closed_at=session.bank.closed_at,
            expected_total=session.bank.expected_total,
            manager_player_id=session.bank.manager_id,
            transactions=[
                BankTransactionDocument(
                    id=t.id,
                    created_at=t.created_at,
                    amount=t.amount,
                    type=t.type,
                    note=t.note,
                    player_id=t.player_id,
                    linked_expense_id=t.linked_expense_id,
                )
                for t in session.bank.transactions
            ],
        )

    return SessionDocument(
        id=session.id,
        session_title=session.title,
        start_time=session.start_time,
        location=session.location,
        game_type=session.game_type,
        chips_to_cash_ratio=session.chips_to_cash_ratio,
        small_blind=session.small_blind,
        big_blind=session.big_blind,
        ante=session.ante,
        status=session.status,
        rake_amount=session.rake_amount,
        tips_amount=session.tips_amount,
        tips_paid_from_bank=session.tips_paid_from_bank,
        players=[
            PlayerDocument(
                id=p.id,
                name=p.name,
                in_game=p.in_game,
                gets_rakeback=p.gets_rakeback,
                rakeback=p.rakeback,
                transactions=[
                    PlayerChipTransactionDocument(
                        id=t.id, timestamp=t.timestamp, type=t.type, chip_amount=t.chip_amount
                    )
                    for t in p.transactions
                ],
            )
            for p in session.players
        ],
        bank=bank,
        expenses=[
            ExpenseDocument(
                id=e.id,
                amount=e.amount,
                note=e.note,
                created_at=e.created_at,
                paid_from_rake=e.paid_from_rake,
                paid_from_bank=e.paid_from_bank,
                payer_player_id=e.payer_id,
                distributions=[
                    ExpenseDistributionDocument(id=d.id, player_id=d.player_id, amount=d.amount)
                    for d in e.distributions
                ],
            )
            for e in session.expenses
        ],
        metadata=TransferMetadata(
            format_version=settings.transfer_format_version,
            export_date=export_date or utcnow(),
            app_version=settings.app_version,
        ),
    )


def validate_references(doc: SessionDocument) -> None:
    """
    Check every cross-reference resolves inside the document.

    Raises:
        InvalidReferenceError: duplicate ids or a dangling manager, bank
            transaction player, payer, distribution player or linked expense
    """
    player_ids = {p.id for p in doc.players}
    if len(player_ids) != len(doc.players):
        raise InvalidReferenceError("Duplicate player id")
    expense_ids = {e.id for e in doc.expenses}
    if len(expense_ids) != len(doc.expenses):
        raise InvalidReferenceError("Duplicate expense id")

    if doc.bank is not None:
        if doc.bank.manager_player_id is not None and doc.bank.manager_player_id not in player_ids:
            raise InvalidReferenceError("Bank manager is not one of the players")
        for txn in doc.bank.transactions:
            if txn.player_id is not None and txn.player_id not in player_ids:
                raise InvalidReferenceError(f"Bank transaction {txn.id} references an unknown player")
            if txn.linked_expense_id is not None and txn.linked_expense_id not in expense_ids:
                raise InvalidReferenceError(f"Bank transaction {txn.id} references an unknown expense")

    for expense in doc.expenses:
        if expense.payer_player_id is not None and expense.payer_player_id not in player_ids:
            raise InvalidReferenceError(f"Expense {expense.id} payer is not one of the players")
        for dist in expense.distributions:
            if dist.player_id not in player_ids:
                raise InvalidReferenceError(f"Expense {expense.id} is distributed to an unknown player")


def _id_mapper(remap_ids: bool) -> Callable[[Optional[uuid.UUID]], Optional[uuid.UUID]]:
    """Return a function translating document ids; each id maps to one fresh UUID when remapping"""
    mapping: Dict[uuid.UUID, uuid.UUID] = {}

    def translate(old: Optional[uuid.UUID]) -> Optional[uuid.UUID]:
        if old is None or not remap_ids:
            return old
        if old not in mapping:
            mapping[old] = uuid.uuid4()
        return mapping[old]

    return translate


def session_from_document(doc: SessionDocument, remap_ids: bool = True) -> Session:
    """Build a session aggregate from a validated document"""
    validate_references(doc)
    new_id = _id_mapper(remap_ids)

    players = [
        Player(
            id=new_id(p.id),
            name=p.name,
            in_game=p.in_game,
            gets_rakeback=p.gets_rakeback,
            rakeback=p.rakeback,
            transactions=[
                PlayerChipTransaction(
                    id=new_id(t.id), type=t.type, chip_amount=t.chip_amount, timestamp=t.timestamp
                )
                for t in p.transactions
            ],
        )
        for p in doc.players
    ]

    expenses = [
        Expense(
            id=new_id(e.id),
            amount=e.amount,
            note=e.note,
            created_at=e.created_at,
            payer_id=new_id(e.payer_player_id),
            paid_from_rake=e.paid_from_rake,
            paid_from_bank=e.paid_from_bank,
            distributions=[
                ExpenseDistribution(id=new_id(d.id), player_id=new_id(d.player_id), amount=d.amount)
                for d in e.distributions
            ],
        )
        for e in doc.expenses
    ]

    bank = None
    if doc.bank is not None:
        bank = SessionBank(
            id=new_id(doc.bank.id),
            manager_id=new_id(doc.bank.manager_player_id),
            created_at=doc.bank.created_at,
            is_closed=doc.bank.is_closed,
            closed_at=doc.bank.closed_at,
            expected_total=doc.bank.expected_total,
            transactions=[
                SessionBankTransaction(
                    id=new_id(t.id),
                    amount=t.amount,
                    type=t.type,
                    player_id=new_id(t.player_id),
                    note=t.note,
                    created_at=t.created_at,
                    linked_expense_id=new_id(t.linked_expense_id),
                )
                for t in doc.bank.transactions
            ],
        )

    return Session(
        id=new_id(doc.id),
        title=doc.session_title,
        location=doc.location,
        start_time=doc.start_time,
        game_type=doc.game_type,
        status=doc.status,
        chips_to_cash_ratio=doc.chips_to_cash_ratio,
        small_blind=doc.small_blind,
        big_blind=doc.big_blind,
        ante=doc.ante,
        rake_amount=doc.rake_amount,
        tips_amount=doc.tips_amount,
        tips_paid_from_bank=doc.tips_paid_from_bank,
        players=players,
        expenses=expenses,
        bank=bank,
    )


def session_to_dict(session: Session) -> Dict[str, Any]:
    """JSON-ready document used for storage"""
    return session_to_document(session).model_dump(mode="json", by_alias=True)


def session_from_dict(payload: Dict[str, Any], remap_ids: bool = False) -> Session:
    """Load a stored document; stored ids are kept unless remapping is requested"""
    return session_from_document(parse_document(payload), remap_ids=remap_ids)


def parse_document(payload: Any) -> SessionDocument:
    """
    Validate a decoded JSON payload.

    The format version is checked before the schema so that files from a newer
    format are reported as such rather than as malformed.
    """
    if not isinstance(payload, dict):
        raise MalformedPayloadError("Session document must be a JSON object")

    metadata = payload.get("metadata")
    version = metadata.get("formatVersion") if isinstance(metadata, dict) else None
    if version is not None and version != settings.transfer_format_version:
        raise UnsupportedFormatVersionError(f"Unsupported format version: {version}")

    try:
        return SessionDocument.model_validate(payload)
    except ValidationError as e:
        raise MalformedPayloadError(f"Invalid session document: {e.error_count()} error(s)") from e


def export_session(session: Session) -> bytes:
    """Serialize a session into .pokersession bytes (pretty-printed, sorted keys)"""
    document = session_to_dict(session)
    return json.dumps(document, indent=2, sort_keys=True, ensure_ascii=False).encode("utf-8")


def import_session(data: bytes) -> Session:
    """
    Decode a .pokersession file into a new session.

    Every identifier is replaced with a fresh UUID, so importing the same file
    twice yields two independent sessions.

    Raises:
        UnsupportedFormatVersionError: unknown metadata.formatVersion
        MalformedPayloadError: not JSON or not matching the document schema
        InvalidReferenceError: a reference does not resolve inside the file
    """
    try:
        payload = json.loads(data)
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedPayloadError(f"Session file is not valid JSON: {e}") from e

    session = session_from_document(parse_document(payload), remap_ids=True)
    logger.info(
        "Session imported",
        extra={"session_id": str(session.id), "players": len(session.players), "expenses": len(session.expenses)},
    )
    return session
