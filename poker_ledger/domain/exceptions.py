"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


# Validation errors: malformed input, detected before any mutation


class LedgerValidationError(DomainException):
    """Command input is invalid on its own"""

    pass


class InvalidAmountError(LedgerValidationError):
    """Amount is zero/negative where a positive (or non-negative) value is required"""

    pass


class EmptyPlayerNameError(LedgerValidationError):
    """Player name is blank"""

    pass


class InvalidBlindsError(LedgerValidationError):
    """Blind configuration is inconsistent (small > big or non-positive values)"""

    pass


class ExpenseDistributionError(LedgerValidationError):
    """Expense shares do not add up to the expense amount"""

    pass


class PlayerLimitExceededError(LedgerValidationError):
    """Session already holds the maximum number of players"""

    pass


# State errors: input is well-formed but conflicts with the current ledger


class LedgerStateError(DomainException):
    """Command conflicts with the current session state"""

    pass


class InsufficientChipsError(LedgerStateError):
    """Cash-out exceeds the chips left on the table"""

    pass


class InsufficientBankFundsError(LedgerStateError):
    """Bank does not hold enough cash for the withdrawal"""

    pass


class BankClosedError(LedgerStateError):
    """Bank operation attempted while the bank is closed"""

    pass


class BankNotOpenedError(LedgerStateError):
    """Session has no bank yet"""

    pass


class OutstandingBankBalanceError(LedgerStateError):
    """Bank cannot be closed while players still owe it cash"""

    pass


class PlayerStillInGameError(LedgerStateError):
    """Operation requires a finished player"""

    pass


class PlayerNotInGameError(LedgerStateError):
    """Operation requires an active player"""

    pass


class PlayerNotInSessionError(LedgerStateError):
    """Referenced player is not part of the session"""

    pass


class ExpenseNotFoundError(LedgerStateError):
    """Referenced expense is not part of the session"""

    pass


class ChipTransactionNotFoundError(LedgerStateError):
    """Referenced chip transaction does not belong to the player"""

    pass


class BankTransactionNotFoundError(LedgerStateError):
    """Referenced bank transaction does not exist"""

    pass


class RakeOvercommittedError(LedgerStateError):
    """Rakeback or rake-funded expenses exceed the rake reservation"""

    pass


class ExpenseOverpaidError(LedgerStateError):
    """Bank payment exceeds what is still outstanding on the expense"""

    pass


class ExpenseNotDistributedError(LedgerStateError):
    """Player-fronted expense is not fully split, so its payer's credit has no counterpart"""

    pass


class ExpenseFrontedByPlayerError(LedgerStateError):
    """Expense was already paid by a player and is settled through their result"""

    pass


# Integrity errors: session transfer files


class TransferIntegrityError(DomainException):
    """Session transfer document cannot be imported"""

    pass


class UnsupportedFormatVersionError(TransferIntegrityError):
    """Transfer document declares an unknown format version"""

    pass


class InvalidReferenceError(TransferIntegrityError):
    """Transfer document references an entity it does not contain"""

    pass


class MalformedPayloadError(TransferIntegrityError):
    """Transfer document is not valid JSON or does not match the schema"""

    pass


# Persistence


class SessionNotFoundError(DomainException):
    """No stored session with this id"""

    pass


class SettlementTransferNotFoundError(DomainException):
    """No stored settlement transfer with this id"""

    pass


class StaleSessionError(DomainException):
    """Session changed since the snapshot the caller worked from"""

    pass


class ReconciliationError(DomainException, AssertionError):
    """Credits and debits of a finished session do not balance (upstream ledger defect)"""

    pass
