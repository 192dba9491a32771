# lpg_api/errors.py
"""
Error taxonomy for the LPG Center API.

Handlers raise these; the exception handlers in main.py render every one of
them as ``{"error": message}`` with the matching status code.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(eq=False)
class ApiError(Exception):
    message: str
    status_code: int = 400

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(ApiError):
    def __init__(self, message: str = "Invalid request"):
        super().__init__(message=message, status_code=400)


class ConflictError(ApiError):
    def __init__(self, message: str = "Username already exists"):
        super().__init__(message=message, status_code=400)


class SelfDeleteError(ApiError):
    def __init__(self, message: str = "Cannot delete your own account"):
        super().__init__(message=message, status_code=400)


class Unauthorized(ApiError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message=message, status_code=401)


class InvalidCredentials(Unauthorized):
    # same message for an unknown user and a wrong password
    def __init__(self):
        super().__init__("Invalid username or password")


class Forbidden(ApiError):
    def __init__(self, message: str = "Admin access required"):
        super().__init__(message=message, status_code=403)


class NotFound(ApiError):
    def __init__(self, what: str = "Resource"):
        super().__init__(message=f"{what} not found", status_code=404)


class AuthProviderError(ApiError):
    """
    Failure reported by the auth provider. ``provider_status`` keeps the
    provider's own HTTP status (if any) so call sites can tell "not found"
    and "already registered" apart from real outages.
    """

    def __init__(self, message: str, status_code: int = 400, provider_status: Optional[int] = None):
        super().__init__(message=message, status_code=status_code)
        self.provider_status = provider_status

    @property
    def already_registered(self) -> bool:
        # GoTrue: "A user with this email address has already been registered"
        message = self.message.lower()
        return "already been registered" in message or "already registered" in message


class InternalError(ApiError):
    def __init__(self, message: str = "Internal server error"):
        super().__init__(message=message, status_code=500)


__all__ = [
    "ApiError",
    "ValidationError",
    "ConflictError",
    "SelfDeleteError",
    "Unauthorized",
    "InvalidCredentials",
    "Forbidden",
    "NotFound",
    "AuthProviderError",
    "InternalError",
]
