"""Typed failures for registry and ledger operations.

Each error names the precondition that did not hold. Raising any of them
aborts the whole operation; nothing it touched is committed.
"""


class LedgerError(Exception):
    kind = "ledger_error"
    status_code = 400

    def __init__(self, precondition: str):
        self.precondition = precondition
        super().__init__(f"[{self.kind}] {precondition}")


class InvalidArgument(LedgerError):
    kind = "invalid_argument"
    status_code = 422


class NotFound(LedgerError):
    kind = "not_found"
    status_code = 404


class AlreadyExists(LedgerError):
    kind = "already_exists"
    status_code = 409


class Forbidden(LedgerError):
    kind = "forbidden"
    status_code = 403


class InvalidState(LedgerError):
    kind = "invalid_state"
    status_code = 409


class AlreadyVerified(LedgerError):
    kind = "already_verified"
    status_code = 409


class HashCollision(LedgerError):
    """Two different submissions produced the same digest. Integrity failure."""

    kind = "hash_collision"
    status_code = 500
