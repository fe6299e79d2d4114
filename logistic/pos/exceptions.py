"""
Custom exceptions for the POS transaction core.

Every exception carries a ``kind`` (what went wrong) and a ``retryable`` flag
so that clients can decide whether to retry or fix their input.
"""

from typing import Dict, Any


class ErrorKind:
    """Error kinds surfaced to POS clients."""
    VALIDATION = 'VALIDATION'
    NOT_FOUND = 'NOT_FOUND'
    PERMISSION = 'PERMISSION'
    CONFLICT = 'CONFLICT'
    COMPUTATION = 'COMPUTATION'
    PERSISTENCE = 'PERSISTENCE'


class BusinessException(Exception):
    """Base exception for business logic errors."""

    kind = ErrorKind.VALIDATION
    retryable = False

    def __init__(self, message: str, code: str = "BUSINESS_ERROR", details: Dict[str, Any] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'code': self.code,
            'message': self.message,
            'retryable': self.retryable,
            'details': self.details,
        }


class ValidationException(BusinessException):
    """Raised when data validation fails."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field_errors: Dict[str, Any] = None, code: str = "VALIDATION_ERROR"):
        super().__init__(message, code, field_errors or {})


class NotFoundException(BusinessException):
    """Raised when a referenced entity does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(f"{entity_type} {entity_id} not found", "NOT_FOUND", {
            "entity_type": entity_type,
            "entity_id": str(entity_id),
        })


class PermissionDeniedException(BusinessException):
    """Raised when the caller's role or credentials are insufficient."""

    kind = ErrorKind.PERMISSION

    def __init__(self, message: str, code: str = "PERMISSION_DENIED", details: Dict[str, Any] = None):
        super().__init__(message, code, details)


class ApprovalRequiredException(PermissionDeniedException):
    """Raised when a gated action has no approved supervisor override."""

    def __init__(self, action_type: str, shipment_id: Any = None):
        super().__init__(
            f"Action '{action_type}' requires supervisor approval",
            "REQUIRES_APPROVAL",
            {
                "action_type": action_type,
                "shipment_id": str(shipment_id) if shipment_id else None,
                "requires_approval": True,
            }
        )


class ConflictException(BusinessException):
    """Raised when the target entity is in a state that forbids the action."""

    kind = ErrorKind.CONFLICT


class InvalidTransitionException(ConflictException):
    """Raised when attempting an invalid workflow transition."""

    def __init__(self, current_status: str, attempted_status: str, entity_type: str = "SupervisorOverride"):
        message = f"Invalid transition for {entity_type}: cannot move from {current_status} to {attempted_status}"
        super().__init__(message, "INVALID_TRANSITION", {
            "current_status": current_status,
            "attempted_status": attempted_status,
            "entity_type": entity_type
        })


class QuoteException(BusinessException):
    """Raised when a quote cannot be computed for the route/service level."""

    kind = ErrorKind.COMPUTATION

    INVALID_ROUTE = 'INVALID_ROUTE'
    INVALID_SERVICE_LEVEL = 'INVALID_SERVICE_LEVEL'
    NEGATIVE_OR_ZERO_WEIGHT = 'NEGATIVE_OR_ZERO_WEIGHT'

    def __init__(self, reason: str, message: str, details: Dict[str, Any] = None):
        self.reason = reason
        super().__init__(message, reason, details)


class PersistenceException(BusinessException):
    """
    Raised when the durable store fails during commit.

    The transaction is rolled back and the idempotency key stays unconsumed,
    so the same request can be retried safely.
    """

    kind = ErrorKind.PERSISTENCE
    retryable = True

    def __init__(self, message: str, code: str = "PERSISTENCE_ERROR", details: Dict[str, Any] = None,
                 integrity_violation: bool = False):
        self.integrity_violation = integrity_violation
        super().__init__(message, code, details)


class ImmutableRateTableError(ConflictException):
    """Raised when something tries to modify a published rate table."""

    def __init__(self, version: str):
        super().__init__(
            f"Rate table {version} is published and cannot be modified",
            "RATE_TABLE_IMMUTABLE",
            {"version": version}
        )
