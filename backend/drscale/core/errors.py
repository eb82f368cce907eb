"""
Error taxonomy for the billing and team subsystems.

Every error carries a short machine code (safe to show to end users) and the
HTTP status the API answers with when the error reaches a route.
"""


class DrScaleError(Exception):
    code = "internal_error"
    status_code = 500

    def __init__(self, message: str = None):
        super().__init__(message or self.code)
        self.message = message or self.code


class InvalidInput(DrScaleError):
    code = "invalid_input"
    status_code = 400


class NotFound(DrScaleError):
    code = "not_found"
    status_code = 404


class InvalidOrExpired(DrScaleError):
    code = "invalid_or_expired"
    status_code = 400


class SeatLimitReached(DrScaleError):
    code = "seat_limit_reached"
    status_code = 402


class InsufficientFunds(DrScaleError):
    code = "insufficient_balance"
    status_code = 402


class AccountBlocked(DrScaleError):
    code = "account_blocked"
    status_code = 402


class AuthorizationError(DrScaleError):
    code = "access_denied"
    status_code = 403


class TransientNetworkError(DrScaleError):
    code = "transient_network_error"
    status_code = 503


class UnknownBalance(DrScaleError):
    code = "unknown_balance"
    status_code = 503


class TransactionFailed(DrScaleError):
    code = "transaction_failed"
    status_code = 500
