"""
Error taxonomy shared by services and routes.

Services raise these; the app factory registers one handler that renders
any AppError as ``{"error": message}`` with the matching status code.
"""
from __future__ import annotations


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Client-fixable input problem. Not retryable without payload changes."""

    status_code = 400

    @classmethod
    def from_messages(cls, messages: list[str]) -> "ValidationError":
        return cls("; ".join(messages) or "Invalid request")


class Unauthorized(AppError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class NotFound(AppError):
    status_code = 404


class ConflictError(AppError):
    """Storage-level uniqueness violation. Retryable with a different name."""

    status_code = 409

    def __init__(self, fields: list[str] | None = None) -> None:
        self.fields = list(fields or [])
        key_str = f" ({', '.join(self.fields)})" if self.fields else ""
        super().__init__(f"Duplicate value{key_str}. Try a different name.")


class InternalError(AppError):
    status_code = 500


class SlugExhausted(InternalError):
    def __init__(self, base: str, attempts: int) -> None:
        self.base = base
        self.attempts = attempts
        super().__init__(f"Could not allocate a unique slug for '{base}' after {attempts} attempts")
