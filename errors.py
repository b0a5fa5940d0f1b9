"""
Error kinds surfaced by the pet engine.

Each carries the wire code the API returns, the HTTP status, and whether the
caller may retry once its situation changes.
"""


class PetError(Exception):
    error = "pet_error"
    status = 400
    retryable = False

    def __init__(self, message: str | None = None, **detail):
        super().__init__(message or self.error)
        self.detail = detail

    def to_dict(self) -> dict:
        out = {"ok": False, "error": self.error, "retryable": self.retryable}
        if self.detail:
            out.update(self.detail)
        return out


class CapExceeded(PetError):
    error = "cap_exceeded"
    status = 409


class NotFound(PetError):
    error = "not_found"
    status = 404


class NotOwner(PetError):
    error = "not_owner"
    status = 403


class InsufficientFunds(PetError):
    error = "insufficient_funds"
    status = 402
    retryable = True


class MaxLevel(PetError):
    error = "max_level"
    status = 409


class NotAdministrator(PetError):
    error = "not_administrator"
    status = 403


class BadRequest(PetError):
    error = "bad_request"

    def __init__(self, error: str = "bad_request", message: str | None = None, **detail):
        self.error = error
        super().__init__(message or error, **detail)


class PaymentFailed(PetError):
    """The token payment reached the network and was rejected."""
    error = "payment_failed"
    status = 502


class PaymentPending(PetError):
    """The payment was sent but its outcome is unknown; look up `hash` before retrying."""
    error = "payment_pending"
    status = 504
