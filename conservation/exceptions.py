"""
Domain errors raised by the conservation workflow.
The API layer maps these to HTTP status codes.
"""


class ConservationError(Exception):
    """Base class for conservation workflow errors."""
    pass


class AuthenticationError(ConservationError):
    """Raised when an identity token or cron secret cannot be verified."""
    pass


class RecordNotFoundError(ConservationError):
    """Raised when an alert, client or agent document does not exist."""
    pass


class AlertStateError(ConservationError):
    """Raised when an alert is not in a state that allows the action."""
    pass
