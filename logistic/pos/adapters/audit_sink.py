"""
Audit Sink adapter for the POS transaction core.

The core emits audit events through this interface. The default sink writes
``AuditLog`` rows in the caller's transaction, so an event is committed
together with the change it describes.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional

from ..models import AuditLog


class AuditSinkInterface(ABC):
    """Contract for recording audit events."""

    @abstractmethod
    def record(self, event_type: str, entity, actor_id=None, payload: Optional[Dict[str, Any]] = None,
               notes: str = "") -> None:
        """
        Record an audit event.

        Args:
            event_type: Event name (see ``AuditAction``)
            entity: Model instance the event is about
            actor_id: Id of the user who caused the event
            payload: Event data
            notes: Free-text notes
        """
        pass


class DatabaseAuditSink(AuditSinkInterface):
    """Writes audit events to the ``AuditLog`` table."""

    def record(self, event_type, entity, actor_id=None, payload=None, notes=""):
        payload = payload or {}
        AuditLog.log_change(
            entity=entity,
            action=event_type,
            user_id=actor_id,
            old_values=payload.get('old_values'),
            new_values=payload.get('new_values'),
            notes=notes,
            metadata=payload.get('metadata'),
        )


class InMemoryAuditSink(AuditSinkInterface):
    """Collects events in a list. Useful for tests."""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    def record(self, event_type, entity, actor_id=None, payload=None, notes=""):
        self.events.append({
            'event_type': event_type,
            'entity_type': entity.__class__.__name__,
            'entity_id': str(entity.id),
            'actor_id': actor_id,
            'payload': payload or {},
            'notes': notes,
        })


audit_sink = DatabaseAuditSink()


def get_audit_sink() -> AuditSinkInterface:
    """Return the configured audit sink."""
    return audit_sink


def switch_to_database_sink():
    """Switch back to the database-backed sink."""
    global audit_sink
    audit_sink = DatabaseAuditSink()


def switch_audit_sink(sink: AuditSinkInterface):
    """
    Switch to another audit sink implementation.

    Args:
        sink: Implementation of AuditSinkInterface
    """
    global audit_sink
    audit_sink = sink
