"""
Error taxonomy for the auth flows.

Each error carries the HTTP status and the machine-readable code used by the
error envelope in api/errors.py. Input validation failures are raised as
marshmallow.ValidationError instead.
"""


class AuthError(Exception):
    status_code = 500
    error = "INTERNAL_ERROR"
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Conflict(AuthError):
    status_code = 409
    error = "CONFLICT"
    default_message = "Conflict"


class Unauthorized(AuthError):
    status_code = 401
    error = "UNAUTHORIZED"
    default_message = "Unauthorized"


class Forbidden(AuthError):
    status_code = 403
    error = "FORBIDDEN"
    default_message = "Insufficient role"


class NotFound(AuthError):
    status_code = 404
    error = "NOT_FOUND"
    default_message = "Resource not found"


class DependencyFailure(AuthError):
    status_code = 500
    error = "DEPENDENCY_FAILURE"
    default_message = "A backing service is unavailable. Try again later."
