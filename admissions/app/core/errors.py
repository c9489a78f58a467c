"""Typed failures raised by the admissions services.

Each error carries a stable ``code`` and the HTTP status it maps to. Routers
never catch these; the handlers registered in ``main`` turn them into JSON
responses of the form ``{"detail": ..., "code": ..., "details": {...}}``.
"""

from typing import Any, Dict, Iterable, Optional


class AdmissionsError(Exception):
    """Base exception for admissions pipeline errors."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, "details": self.details}


class ValidationError(AdmissionsError):
    """Raised when required fields are missing or malformed."""

    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(AdmissionsError):
    """Raised when an entry or slot is missing or soft-deleted."""

    code = "NOT_FOUND"
    status_code = 404


class InactiveError(AdmissionsError):
    """Raised when a tour slot exists but is not bookable."""

    code = "INACTIVE"
    status_code = 409


class InvalidTransitionError(AdmissionsError):
    """Raised when a stage edge is not in the allowed graph."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current_stage, target_stage, allowed: Iterable, message: Optional[str] = None):
        allowed_values = sorted(_stage_value(stage) for stage in allowed)
        current = _stage_value(current_stage)
        target = _stage_value(target_stage)
        if message is None:
            message = (
                f"Cannot transition from '{current}' to '{target}'. "
                f"Allowed: {', '.join(allowed_values) or 'none'}"
            )
        super().__init__(
            message,
            details={"current_stage": current, "target_stage": target, "allowed": allowed_values},
        )
        self.current_stage = current
        self.allowed = allowed_values


class AlreadyExistsError(AdmissionsError):
    """Raised when an inquiry for the same child is already in the pipeline."""

    code = "ALREADY_EXISTS"
    status_code = 409


class CapacityExceededError(AdmissionsError):
    """Raised when a tour slot has no seats left."""

    code = "CAPACITY_EXCEEDED"
    status_code = 409


class OfferExpiredError(AdmissionsError):
    """Raised when an offer is accepted after offer_expires_at."""

    code = "EXPIRED"
    status_code = 410


class ConflictError(AdmissionsError):
    """Raised when a concurrent write won the race for the same row."""

    code = "CONFLICT"
    status_code = 409


class InternalError(AdmissionsError):
    """Raised when the store or a transaction fails."""

    code = "INTERNAL_ERROR"
    status_code = 500


class ApplicationCreationError(InternalError):
    """Raised when the enrollment-application collaborator rejects a conversion."""

    code = "CREATE_FAILED"
    status_code = 502


def _stage_value(stage) -> str:
    return getattr(stage, "value", stage)
