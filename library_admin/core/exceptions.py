"""Error taxonomy shared by the invitation and login flows.

Every error carries the HTTP status it maps to and a message that is safe to
show to the caller. The application installs a handler that renders them as
``{"error": message}``.
"""

from typing import Optional


class ServiceError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(ServiceError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(ServiceError):
    status_code = 403
    default_message = "Only admins can invite users"


class InvalidInput(ServiceError):
    status_code = 400
    default_message = "Invalid input"


class Conflict(ServiceError):
    status_code = 400
    default_message = "Conflict"


class ProvisioningError(ServiceError):
    status_code = 500
    default_message = "Failed to create the invited account"


class IdentityError(Exception):
    """Raised by the identity provider when an account operation fails."""


class InvalidCredentials(IdentityError):
    pass


class LoginFailed(ServiceError):
    status_code = 401
    default_message = "Invalid email or password."


class AccountLocked(ServiceError):
    status_code = 429
    default_message = "Too many failed attempts. Please try again in 5 minutes."

    def __init__(self, message: Optional[str] = None, remaining_minutes: int = 0):
        super().__init__(message)
        self.remaining_minutes = remaining_minutes
