"""
errors.py — Error kinds raised by client reference allocation.

Everything a caller can see derives from AllocationError (or is a
FormatError). ConflictRetryable stays inside the allocator's retry loop.
"""


class AllocationError(Exception):
    """Base for caller-facing allocation failures."""

    http_status = 500

    def __init__(self, message, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self):
        payload = {"kind": type(self).__name__}
        payload.update(self.context)
        return payload


class InvalidPortfolioError(AllocationError):
    """Portfolio code is not an integer inside the configured range."""

    http_status = 400


class ConcurrencyExhaustedError(AllocationError):
    """Retry budget used up under sustained contention. Safe to retry later."""

    http_status = 503


class AllocationSpaceExhaustedError(AllocationError):
    """Every letter A–Z of a portfolio has been used. Needs an operator."""

    http_status = 409


class FormatError(AllocationError, ValueError):
    """A string does not match the client reference grammar."""

    http_status = 400


class ConflictRetryable(Exception):
    """
    Lost race on claim_and_advance: the bucket moved past the expected state
    (or a concurrent insert won). Nothing was claimed by this attempt.
    """

    def __init__(self, portfolio_code, alpha, expected_index, reason="stale"):
        super().__init__(
            f"bucket {portfolio_code}{alpha} no longer at index {expected_index} ({reason})"
        )
        self.portfolio_code = portfolio_code
        self.alpha = alpha
        self.expected_index = expected_index
        self.reason = reason
