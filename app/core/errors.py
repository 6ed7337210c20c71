"""
Error taxonomy of the ledger core.

Services raise these instead of HTTP exceptions; the HTTP layer maps each kind
to a status code in app.main. Messages of InputError, ValidationError,
NotFoundError and ConflictError are safe to show to the caller verbatim.
AuthorizationError and InternalError are always reported generically.
"""


class LedgerError(Exception):
    """Base class for every error the ledger core reports to its callers"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputError(LedgerError):
    """Malformed identifier or missing required field"""


class ValidationError(LedgerError):
    """Semantically invalid payload (conservation, split type, amount)"""


class AuthorizationError(LedgerError):
    """Caller is not a member, creator or participant where required"""


class NotFoundError(LedgerError):
    """Referenced group, transaction or user does not exist or is inactive"""


class ConflictError(LedgerError):
    """Operation forbidden by the current state of the record"""


class InvalidStateError(ConflictError):
    """Operation does not apply to this kind of transaction"""


class InternalError(LedgerError):
    """Storage failure or aborted atomic unit"""

    def __init__(self, message: str = "internal error", retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable
