"""Exceptions raised by the taste tracker relay."""

from typing import Optional


class TasteTrackerError(Exception):
    """Base exception for the taste tracker."""

    pass


class ValidationError(TasteTrackerError):
    """Raised when a request is missing required fields."""

    pass


class RemoteTransportError(TasteTrackerError):
    """Raised when Shopify cannot be reached or answers with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteApiError(TasteTrackerError):
    """Raised when Shopify reports GraphQL errors or user errors."""

    pass


class StoreUnavailableError(TasteTrackerError):
    """Raised when the passport store has no live connection."""

    pass


class MalformedDataError(TasteTrackerError):
    """Raised when a stored legacy passport is not valid JSON."""

    pass
