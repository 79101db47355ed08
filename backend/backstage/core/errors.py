from __future__ import annotations


class AccessCoreError(Exception):
    """Base for errors surfaced by the access & invitation services."""

    code = "error"
    http_status = 400

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationError(AccessCoreError):
    code = "validation_error"
    http_status = 400


class NotFoundError(AccessCoreError):
    code = "not_found"
    http_status = 404


class ExpiredError(AccessCoreError):
    code = "expired"
    http_status = 410


class AlreadyProcessedError(AccessCoreError):
    code = "already_processed"
    http_status = 409


class PermissionDenied(AccessCoreError):
    code = "permission_denied"
    http_status = 403


class ConflictError(AccessCoreError):
    code = "conflict"
    http_status = 409


class EmailNotVerified(PermissionDenied):
    code = "email_not_verified"
