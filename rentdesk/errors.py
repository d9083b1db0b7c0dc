"""
Domain errors raised by the booking services.

Each error carries a stable ``kind`` and the HTTP status the API layer maps
it to, so services never raise HTTPException directly.
"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    kind = "error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "kind": self.kind}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(DomainError):
    """Referenced property/unit/guest/booking/task/automation is absent"""
    kind = "not_found"
    status_code = 404


class ValidationFailure(DomainError):
    """Malformed input, checkout <= checkin, unknown action type, bad enum value"""
    kind = "validation_failure"
    status_code = 422


class ConflictError(DomainError):
    """Overlapping booking or duplicate unique key"""
    kind = "conflict"
    status_code = 409


class ForbiddenError(DomainError):
    kind = "forbidden"
    status_code = 403


class BusinessRuleError(DomainError):
    """Archive/check-in/check-out too early, delete with active bookings"""
    kind = "business_rule"
    status_code = 400


class ReferenceGenerationError(DomainError):
    kind = "internal_error"
    status_code = 500
