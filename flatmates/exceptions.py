"""Error types raised by the store, services and route handlers.

Each error carries the HTTP status it maps to; the handlers registered in
``flatmates.main`` turn them into JSON responses. Internal detail stays in
the exception message and the logs, never in the response body.
"""


class FlatmatesError(Exception):
    """Base class for application errors."""

    status_code = 500

    def __init__(self, message: str = "Server error"):
        super().__init__(message)
        self.message = message


class ValidationError(FlatmatesError):
    """Malformed or missing input, or a violated schema constraint."""

    status_code = 400

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [{"msg": errors}]
        super().__init__("; ".join(e.get("msg", "") for e in errors))
        self.errors = list(errors)


class AuthError(FlatmatesError):
    """Missing, invalid or expired credentials, or a forbidden action."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class NotFoundError(FlatmatesError):
    """No matching document, or an id that cannot name one."""

    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class DeliveryError(FlatmatesError):
    """The mail transport refused or failed to send a message."""

    status_code = 502

    def __init__(self, message: str = "Failed to send email"):
        super().__init__(message)


class StoreError(FlatmatesError):
    """Unexpected database failure."""

    status_code = 500
