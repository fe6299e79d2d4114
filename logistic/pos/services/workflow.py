"""
Workflow rules for the POS transaction core.

Manages allowed state transitions and enforces business rules.
"""

from ..exceptions import InvalidTransitionException
from ..models import (
    SupervisorOverride, OverrideStatus, Shipment, ShipmentStatus,
)


class OverrideWorkflow:
    """Workflow rules for SupervisorOverride state transitions."""

    ALLOWED_TRANSITIONS = {
        OverrideStatus.PENDING: [OverrideStatus.APPROVED, OverrideStatus.REJECTED, OverrideStatus.EXPIRED],
        OverrideStatus.APPROVED: [],  # Final state
        OverrideStatus.REJECTED: [],  # Final state
        OverrideStatus.EXPIRED: [],   # Final state
    }

    @classmethod
    def validate_transition(cls, override: SupervisorOverride, new_status: str) -> None:
        """
        Validate if a status transition is allowed.

        Terminal states are write-once, so unlike other workflows a no-op
        transition is not allowed either.

        Raises:
            InvalidTransitionException: If transition is not allowed
        """
        allowed_transitions = cls.ALLOWED_TRANSITIONS.get(override.status, [])

        if new_status not in allowed_transitions:
            raise InvalidTransitionException(
                current_status=override.status,
                attempted_status=new_status,
                entity_type="SupervisorOverride"
            )


class ShipmentWorkflow:
    """Workflow rules for Shipment state transitions."""

    ALLOWED_TRANSITIONS = {
        ShipmentStatus.CREATED: [ShipmentStatus.CANCELLED],
        ShipmentStatus.CANCELLED: [],  # Final state
    }

    @classmethod
    def validate_transition(cls, shipment: Shipment, new_status: str) -> None:
        """
        Raises:
            InvalidTransitionException: If transition is not allowed
        """
        current_status = shipment.status

        if new_status not in cls.ALLOWED_TRANSITIONS.get(current_status, []):
            raise InvalidTransitionException(
                current_status=current_status,
                attempted_status=new_status,
                entity_type="Shipment"
            )


def validate_override_workflow(override: SupervisorOverride, new_status: str) -> None:
    """Validate supervisor override workflow transition."""
    OverrideWorkflow.validate_transition(override, new_status)


def validate_shipment_workflow(shipment: Shipment, new_status: str) -> None:
    """Validate shipment workflow transition."""
    ShipmentWorkflow.validate_transition(shipment, new_status)
