"""
Error taxonomy for Idea Platform services.

Each error carries the HTTP status the web layer responds with:

| Error               | Status | Raised when                              |
|---------------------|--------|------------------------------------------|
| ValidationError     | 400    | missing or invalid input                 |
| AuthenticationError | 401    | missing, invalid or expired token        |
| AuthorizationError  | 403    | wrong owner or role                      |
| NotFoundError       | 404    | unknown or deleted idea/user             |

Anything else reaching the web layer is answered with 500.
"""


class ServiceError(Exception):
    """Base class for expected service failures."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    status_code = 400


class AuthenticationError(ServiceError):
    status_code = 401


class AuthorizationError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404
