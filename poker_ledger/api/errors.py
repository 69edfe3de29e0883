"""Mapping of domain errors to HTTP responses"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from poker_ledger.api.dependencies import get_request_id
from poker_ledger.domain.exceptions import (
    BankTransactionNotFoundError,
    ChipTransactionNotFoundError,
    DomainException,
    ExpenseNotFoundError,
    LedgerStateError,
    LedgerValidationError,
    PlayerNotInSessionError,
    ReconciliationError,
    SessionNotFoundError,
    SettlementTransferNotFoundError,
    StaleSessionError,
    TransferIntegrityError,
)

# First match wins: specific not-found errors before their LedgerStateError base
STATUS_BY_ERROR = (
    (SessionNotFoundError, 404),
    (SettlementTransferNotFoundError, 404),
    (PlayerNotInSessionError, 404),
    (ExpenseNotFoundError, 404),
    (BankTransactionNotFoundError, 404),
    (ChipTransactionNotFoundError, 404),
    (StaleSessionError, 409),
    (LedgerValidationError, 422),
    (LedgerStateError, 409),
    (TransferIntegrityError, 400),
    (ReconciliationError, 500),
)


def status_for(exc: DomainException) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status_code = status_for(exc)
    extra = {"request_id": get_request_id(request), "error": type(exc).__name__, "path": request.url.path}
    if status_code >= 500:
        logging.error(f"Domain error: {exc}", extra=extra)
        detail = "Settlement could not be reconciled" if isinstance(exc, ReconciliationError) else "Internal server error"
    else:
        logging.warning(f"Request rejected: {exc}", extra=extra)
        detail = str(exc)

    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "error": type(exc).__name__},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainException, domain_exception_handler)
