"""Custom exception hierarchy for the sale.

Every error aborts the operation that raised it; the transaction boundary
discards all writes made during that operation before re-raising.
"""


class SaleError(Exception):
    """Base exception for all sale errors."""


# --- Configuration ---
class ConfigError(SaleError):
    """Invalid or missing configuration."""


class ConstructionError(SaleError):
    """Invalid sale construction parameters."""


class InvalidArgumentError(SaleError):
    """An operation argument is out of range or malformed."""


class InvalidBatchSize(InvalidArgumentError):
    """Whitelist batch size outside the accepted range."""

    def __init__(self, size: int, maximum: int):
        self.size = size
        self.maximum = maximum
        super().__init__(
            f"Whitelist batch must hold 1..{maximum} addresses, got {size}"
        )


# --- Access ---
class AuthorizationError(SaleError):
    """Caller lacks the role required for the action."""


# --- Time ---
class PhaseError(SaleError):
    """Action attempted outside the time window that allows it."""


# --- Purchase ---
class ReentryError(SaleError):
    """Purchase attempted while the participant's record is locked."""


class CapOrEligibilityError(SaleError):
    """Purchase rejected by an eligibility rule or a contribution cap."""


class IneligibleParticipant(CapOrEligibilityError):
    """Participant address is the null address."""


class FeePriceTooHigh(CapOrEligibilityError):
    """Submitted fee price is above the configured ceiling."""


class BelowMinimumContribution(CapOrEligibilityError):
    """Submitted value is below the minimum contribution."""


class NotWhitelisted(CapOrEligibilityError):
    """Participant is not whitelisted."""


class CapReached(CapOrEligibilityError):
    """A cap is already exhausted before any value is admitted."""


class ZeroNetAmount(CapOrEligibilityError):
    """Nothing is left to credit once the excess is refunded."""


class ParticipantCapUnavailable(CapOrEligibilityError):
    """Participant cap is not set and cannot be derived yet."""


# --- Collaborators ---
class DelegateFailure(SaleError):
    """Asset ledger transfer, refund or beneficiary forwarding failed."""

    def __init__(self, delegate: str, reason: str):
        self.delegate = delegate
        self.reason = reason
        super().__init__(f"Delegate [{delegate}] failed: {reason}")
