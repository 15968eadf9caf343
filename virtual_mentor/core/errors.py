"""Application error taxonomy.

Every error the service deliberately raises derives from ``AppError``. The
exception handler registered in ``virtual_mentor.main`` turns them into
``{"error": ..., "details": ...}`` JSON bodies, so callers never see raw
provider text in ``error``.
"""
from typing import Iterable, Optional


class AppError(Exception):
    """Base error carrying an HTTP status and an optional detail string."""

    status_code = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[str] = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class InvalidRequest(AppError):
    """Caller input failed a required-field or format check."""

    status_code = 400


class AuthenticationError(AppError):
    """Webhook signature or admin key missing or invalid."""

    status_code = 401


class NotFound(AppError):
    status_code = 404


class ConflictError(AppError):
    """A write would break a uniqueness constraint (room names)."""

    status_code = 409


class ConfigurationError(AppError):
    """Required deployment configuration is absent.

    Only variable names are reported, never their values.
    """

    status_code = 500

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(
            "Server configuration error",
            details=f"Missing environment variables: {', '.join(self.missing)}",
        )


class ProviderError(AppError):
    """The telephony provider rejected an operation."""

    status_code = 500
