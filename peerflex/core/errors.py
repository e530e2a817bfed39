"""Error taxonomy shared by the services, the view-state hooks and the HTTP layer."""


class PeerflexError(Exception):
    """Base class for every error raised by peerflex."""

    status_code = 400

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__ or self.__class__.__name__)
        self.message = str(self)


class RemoteServiceError(PeerflexError):
    """The data service failed or returned a malformed row."""

    status_code = 502


class NotAuthenticatedError(PeerflexError):
    """Not authenticated"""

    status_code = 401


class AuthenticationError(PeerflexError):
    """Invalid credentials"""

    status_code = 401


class NotAuthorizedError(PeerflexError):
    """Not authorized"""

    status_code = 403


class NotFoundError(PeerflexError):
    """Not found"""

    status_code = 404


class ValidationError(PeerflexError):
    """Invalid request"""

    status_code = 422


class AlreadyRegisteredError(ValidationError):
    """Already registered for this event"""

    status_code = 409


class EventFullError(ValidationError):
    """Event is at full capacity"""

    status_code = 409


class DuplicateRequestError(ValidationError):
    """Connection request already sent"""

    status_code = 409


class InvalidTransitionError(ValidationError):
    """Transition not allowed from the current connection state"""

    status_code = 409
