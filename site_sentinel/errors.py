# site_sentinel/errors.py
class SentinelError(Exception):
    """Base class for errors raised by the dashboard services."""


class SiteValidationError(SentinelError):
    pass


class SiteNotFoundError(SentinelError):
    pass


class SiteLimitError(SentinelError):
    pass


class AuthenticationError(SentinelError):
    pass


class RecoveryError(SentinelError):
    pass


class PlanError(SentinelError):
    pass


class InsufficientFundsError(SentinelError):
    def __init__(self, balance: float, price: float):
        self.balance = balance
        self.price = price
        super().__init__(
            f"Insufficient wallet balance: ${balance:.2f} available, ${price:.2f} required.")


class AnalysisError(SentinelError):
    """The AI service could not be reached or returned an unusable payload."""


class InvalidTransitionError(SentinelError):
    pass


class StoreError(SentinelError):
    pass
