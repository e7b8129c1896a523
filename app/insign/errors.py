"""
Application error taxonomy.

Services raise these; the JSON API turns them into structured error responses
and the admin views turn them into redirects carrying ``?error=``.
"""
from __future__ import annotations


class InsignError(Exception):
    status_code = 500
    kind = "internal_error"
    default_message = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class NotFoundError(InsignError):
    status_code = 404
    kind = "not_found"
    default_message = "Resource not found."


class UnauthorizedError(InsignError):
    status_code = 401
    kind = "unauthorized"
    default_message = "Authentication is required."


class BadRequestError(InsignError):
    status_code = 400
    kind = "bad_request"
    default_message = "Bad request."


class ValidationError(BadRequestError):
    kind = "validation_error"
    default_message = "Invalid request payload."

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(self.errors[0] if self.errors else None)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["errors"] = self.errors
        return d


class ConflictError(InsignError):
    status_code = 409
    kind = "conflict"
    default_message = "The resource was modified concurrently."


class MailConfigurationError(InsignError):
    status_code = 500
    kind = "mail_configuration_error"
    default_message = "Mail server configuration is required."


class MailDeliveryError(InsignError):
    status_code = 502
    kind = "mail_delivery_failed"
    default_message = "Mail delivery failed."
