"""Custom exceptions for the P2P portfolio tracker."""

from typing import Optional


class TrackerError(Exception):
    """Base exception for all tracker errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ValidationError(TrackerError, ValueError):
    """Raised when a loan or platform input is missing or invalid.

    ``field`` names the offending input (e.g. ``"paymentAmount"``) so that
    presentation layers can highlight it.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, details)
        self.field = field


class DuplicatePlatformError(ValidationError):
    """Raised when adding a platform whose name is already taken."""

    def __init__(self, name: str):
        super().__init__(f"Platform '{name}' already exists", field="name")
        self.name = name


class PlatformNotFoundError(TrackerError, LookupError):
    """Raised when a platform cannot be found."""

    def __init__(self, name: str):
        super().__init__(f"Platform '{name}' not found", {"platform": name})
        self.name = name


class LoanNotFoundError(TrackerError, LookupError):
    """Raised when a loan id does not exist on a platform."""

    def __init__(self, loan_id: int, platform: Optional[str] = None):
        details = {"loan_id": loan_id}
        if platform:
            details["platform"] = platform
        super().__init__(f"Loan {loan_id} not found", details)
        self.loan_id = loan_id


class StoreError(TrackerError):
    """Raised when the portfolio cannot be loaded or saved."""
    pass
