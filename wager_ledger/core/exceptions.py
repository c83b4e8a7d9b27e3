"""
Typed failures raised by the ledger services.

Every failure is scoped to the single requested operation: the unit of work
is rolled back before the exception leaves the service, so balances, seats
and parlays are exactly as they were before the call.

The HTTP layer maps the base classes onto status codes:

    NotFoundError      -> 404
    InvalidInputError  -> 400
    InsufficientFunds  -> 400
    CapacityExceeded   -> 409
    ConflictError      -> 409
    StorageFailure     -> 503
"""


class LedgerError(Exception):
    """Base class for every failure the ledger reports to its caller."""

    code = "ledger_error"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, **self.context}


# Not found

class NotFoundError(LedgerError):
    code = "not_found"


class TableNotFound(NotFoundError):
    code = "table_not_found"


class HandNotFound(NotFoundError):
    code = "hand_not_found"


class EventNotFound(NotFoundError):
    code = "event_not_found"


class ParlayNotFound(NotFoundError):
    code = "parlay_not_found"


class PlayerNotFound(NotFoundError):
    code = "player_not_found"


class UserNotFound(NotFoundError):
    code = "user_not_found"


# Invalid input

class InvalidInputError(LedgerError):
    code = "invalid_input"


class InvalidAmount(InvalidInputError):
    code = "invalid_amount"


class InvalidBuyIn(InvalidInputError):
    code = "invalid_buy_in"


class InvalidWager(InvalidInputError):
    code = "invalid_wager"


class InvalidLegs(InvalidInputError):
    code = "invalid_legs"


class TableClosed(InvalidInputError):
    code = "table_closed"


# Funds and capacity

class InsufficientFunds(LedgerError):
    code = "insufficient_funds"


class CapacityExceeded(LedgerError):
    code = "capacity_exceeded"


TableFull = CapacityExceeded


# Conflicts (prevented by idempotent design, raised only on misuse)

class ConflictError(LedgerError):
    code = "conflict"


class HandAlreadyFinished(ConflictError):
    code = "hand_already_finished"


class LegAlreadyGraded(ConflictError):
    code = "leg_already_graded"


class AlreadySeated(ConflictError):
    code = "already_seated"


# Persistence

class StorageFailure(LedgerError):
    """A persistence error (connectivity, constraint violation). Never retried here."""

    code = "storage_failure"
