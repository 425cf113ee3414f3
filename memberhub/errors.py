"""Service-layer exceptions mapped to HTTP responses.

Services raise these; ``main.py`` turns them into ``{"detail", "code"}`` JSON.
Authentication failures use deliberately generic messages so a caller cannot
tell which factor was wrong.
"""

import secrets


def new_trace_id(prefix: str) -> str:
    """Short support reference such as ``LOGIN-7KQ2X``."""
    return f"{prefix}-{secrets.token_hex(3).upper()[:5]}"


class AppError(Exception):
    """Base class for errors that carry an HTTP status and a stable code."""

    status_code: int = 400
    error_code: str = "bad_request"

    def __init__(self, message: str, *, trace_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.trace_id = trace_id


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class AuthError(AppError):
    status_code = 401
    error_code = "unauthorized"


class InvalidCredentials(AuthError):
    error_code = "invalid_credentials"

    def __init__(self, message: str = "Invalid credentials", **kwargs) -> None:
        super().__init__(message, **kwargs)


class InvalidOrExpiredOtp(AuthError):
    error_code = "invalid_otp"

    def __init__(self, message: str = "Invalid or expired OTP", **kwargs) -> None:
        super().__init__(message, **kwargs)


class SessionInvalid(AuthError):
    error_code = "session_invalid"

    def __init__(self, message: str = "Invalid or expired token", **kwargs) -> None:
        super().__init__(message, **kwargs)


class InvalidToken(AuthError):
    """Activation token missing or unknown."""

    status_code = 400
    error_code = "invalid_token"

    def __init__(self, message: str = "Invalid activation link.", **kwargs) -> None:
        super().__init__(message, **kwargs)


class TokenAlreadyUsed(InvalidToken):
    error_code = "token_used"

    def __init__(self, message: str = "Activation link already used.", **kwargs) -> None:
        super().__init__(message, **kwargs)


class TokenExpired(InvalidToken):
    error_code = "token_expired"

    def __init__(self, message: str = "Activation link expired.", **kwargs) -> None:
        super().__init__(message, **kwargs)


class InvalidResetToken(AuthError):
    status_code = 400
    error_code = "invalid_reset_token"

    def __init__(self, message: str = "Invalid or expired token.", **kwargs) -> None:
        super().__init__(message, **kwargs)


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class AccountLocked(ForbiddenError):
    error_code = "account_locked"

    def __init__(self, message: str = "Account locked. Please contact an administrator.", **kwargs) -> None:
        super().__init__(message, **kwargs)


class AccountNotPermitted(ForbiddenError):
    error_code = "account_not_permitted"

    def __init__(self, message: str = "Your account is not permitted to log in.", **kwargs) -> None:
        super().__init__(message, **kwargs)


class RateLimited(AppError):
    status_code = 429
    error_code = "rate_limited"

    def __init__(self, message: str = "Too many OTP attempts. Please wait and try again.", **kwargs) -> None:
        super().__init__(message, **kwargs)


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    # Completes the public taxonomy; nothing raises it, since a replaced session is evicted silently.
    status_code = 409
    error_code = "conflict"


class InternalError(AppError):
    status_code = 500
    error_code = "server_error"

    def __init__(self, message: str = "Internal error", **kwargs) -> None:
        super().__init__(message, **kwargs)
