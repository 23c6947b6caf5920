"""
Domain exceptions.

Services raise these instead of HTTPException so the same rules can run
outside a request (background jobs, WebSocket handlers). The API layer maps
each class to a status code and a single human-readable message.
"""

from fastapi import status


class DomainError(Exception):
    """Base class for all errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(DomainError):
    """Malformed or missing input, or a business rule the input violates."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(DomainError):
    """Slot already taken, duplicate review, or an already-terminal state."""

    status_code = status.HTTP_409_CONFLICT


class SlotConflictError(ConflictError):
    def __init__(self, target_kind: str):
        self.target_kind = target_kind
        label = "Facility" if target_kind == "facility" else "Trainer"
        super().__init__(f"{label} is not available at the selected date and time slot.")


class AuthenticationError(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN


class DependencyFailure(DomainError):
    """An external collaborator (SMTP, push channel, Redis) failed."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
