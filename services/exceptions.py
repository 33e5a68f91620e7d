"""Domain exceptions raised by the TripLink services.

Each carries the HTTP status the API answers with; the handlers in
``main.py`` turn them into ``{"detail": ...}`` responses.
"""


class TripLinkError(Exception):
    """Base class for errors surfaced to the user."""
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(TripLinkError):
    """Raised when input is rejected before touching the store."""
    status_code = 400


class AuthenticationError(TripLinkError):
    """Raised when no valid session can be resolved."""
    status_code = 401


class NotTripOwnerError(TripLinkError):
    """Raised when a user mutates a trip or request of a trip they do not own."""
    status_code = 403


class TripNotFoundError(TripLinkError):
    """Raised when a trip cannot be found."""
    status_code = 404


class RequestNotFoundError(TripLinkError):
    """Raised when a join request cannot be found."""
    status_code = 404


class ProfileNotFoundError(TripLinkError):
    """Raised when a profile cannot be found."""
    status_code = 404


class OwnRequestError(TripLinkError):
    """Raised when a trip owner asks to join their own trip."""
    status_code = 400


class DuplicateRequestError(TripLinkError):
    """Raised when the user already has a request for the trip."""
    status_code = 409


class RequestNotPendingError(TripLinkError):
    """Raised when approving or rejecting a request that was already answered."""
    status_code = 409


class TripFullError(TripLinkError):
    """Raised when approving a request would exceed max_travelers."""
    status_code = 409


class MessageValidationError(ValidationError):
    """Raised when a message has no content."""
    pass


class StoredFileNotFoundError(TripLinkError):
    """Raised when an uploaded file does not exist."""
    status_code = 404
