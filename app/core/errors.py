"""Application error taxonomy mapped to HTTP status codes by the API layer."""


class AppError(Exception):
    """Base class for errors that carry a client-safe message and HTTP status."""

    status_code: int = 500
    code: str = "server_error"

    def __init__(
        self,
        message: str = "Internal server error",
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        super().__init__(message)


class ValidationError(AppError):
    """Malformed input that passed schema validation but is still unusable."""

    status_code = 400
    code = "validation_error"

    def __init__(self, message: str = "Validation failed", code: str | None = None) -> None:
        super().__init__(message, code=code)


class InvalidInputError(ValidationError):
    """Raised by low-level helpers when given an argument they cannot work with."""

    code = "invalid_input"


class UnauthorizedError(AppError):
    """Authentication failed: bad credentials, bad token, or inactive account."""

    status_code = 401
    code = "unauthorized"

    def __init__(self, message: str = "Unauthorized", code: str | None = None) -> None:
        super().__init__(message, code=code)


class TokenExpiredError(UnauthorizedError):
    """Token signature is valid but its exp claim is in the past."""

    code = "token_expired"


class TokenInvalidError(UnauthorizedError):
    """Token signature, issuer, audience, type or required claims are wrong."""

    code = "invalid_token"


class ForbiddenError(AppError):
    """Authenticated caller lacks the role or permission for the operation."""

    status_code = 403
    code = "forbidden"

    def __init__(self, message: str = "Forbidden", code: str | None = None) -> None:
        super().__init__(message, code=code)


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"

    def __init__(self, resource: str = "Resource") -> None:
        super().__init__(f"{resource} not found")


class ConflictError(AppError):
    """Unique constraint would be violated (duplicate email or username)."""

    status_code = 409
    code = "conflict"

    def __init__(self, message: str = "Resource already exists", code: str | None = None) -> None:
        super().__init__(message, code=code)


class ConfigurationError(AppError):
    """Invalid deployment configuration; raised at startup, never per request."""

    code = "configuration_error"
