"""Custom exceptions for Swiss Ledger."""


class SwissLedgerError(Exception):
    """Base exception for all Swiss Ledger errors."""

    pass


class ConfigurationError(SwissLedgerError):
    """Raised when configuration is invalid or missing."""

    pass


class InvalidRecordError(SwissLedgerError):
    """Raised when a record is rejected at the point it is built."""

    pass


class InvalidSplitError(InvalidRecordError):
    """Raised when split input does not add up to the transaction amount."""

    pass


class RecordNotFoundError(SwissLedgerError):
    """Raised when a group, subscription or transaction id is unknown."""

    pass


class PersonNotFoundError(RecordNotFoundError):
    """Raised when a person id is not part of the ledger."""

    def __init__(self, person_id: str, message: str | None = None):
        self.person_id = person_id
        super().__init__(message or f"Person {person_id} is not in the ledger")


class NothingToSettleError(SwissLedgerError):
    """Raised when a settlement is requested against a settled balance."""

    def __init__(self, person_id: str, message: str | None = None):
        self.person_id = person_id
        super().__init__(
            message or f"Nothing outstanding with {person_id}, no settlement recorded"
        )


class SnapshotError(SwissLedgerError):
    """Raised when a ledger snapshot cannot be read or written."""

    pass
