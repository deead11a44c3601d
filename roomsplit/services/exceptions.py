class LedgerError(Exception):
    """Base class for errors raised by the ledger services"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ExpenseValidationError(LedgerError):
    """Rejected before any network call"""


class RemoteOperationError(LedgerError):
    """A write against the backend failed; message is safe to show to the user"""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


class NothingToSettle(LedgerError):
    """The viewer has no pending share on the expense"""


class ReminderNotAllowed(LedgerError):
    """Only the payer can remind, and only about pending shares"""
