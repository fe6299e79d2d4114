"""
Shipping Service for the POS transaction core.

Handles label printing, cancellation and the audit history of shipments.
"""

import logging
from typing import Dict, Any
from django.db.models import F, Q
from django.utils import timezone

from ..adapters.audit_sink import get_audit_sink
from ..context import PRIVILEGED_ROLES, RequestContext
from ..exceptions import ConflictException, NotFoundException
from ..models import (
    AuditAction, AuditLog, OverrideActionType, Shipment, ShipmentStatus,
)
from ..results import OperationResult
from .override_service import OverrideService
from .unit_of_work import UnitOfWork
from .workflow import validate_shipment_workflow

logger = logging.getLogger(__name__)


def build_label(shipment: Shipment) -> Dict[str, Any]:
    """Label payload handed to the counter printer."""
    return {
        'tracking_number': shipment.tracking_number,
        'origin': shipment.origin_branch.code,
        'destination': shipment.destination_branch.code,
        'service_level': shipment.service_level,
        'parcel_count': shipment.parcel_count,
        'weight': str(shipment.weight),
        'billable_weight': str(shipment.billable_weight),
        'receiver_name': shipment.receiver_name,
        'receiver_phone': shipment.receiver_phone,
        'delivery_address': shipment.delivery_address,
        'cod_amount': str(shipment.cod_amount),
        'payment_status': shipment.payment_status,
        'copy_number': shipment.label_print_count,
    }


class ShippingService:
    """Service class for shipment operations after creation."""

    @staticmethod
    def print_label(shipment_id, ctx: RequestContext, override_id=None) -> OperationResult:
        """
        Print (or reprint) a shipment label.

        The first print is free. Reprints by users below branch admin need an
        approved ``reprint`` override, which is consumed.

        Returns:
            OperationResult wrapping ``{'shipment', 'label', 'reprint'}``
        """
        return UnitOfWork(name="print_label").execute(
            ShippingService._print_label, shipment_id, ctx, override_id
        )

    @staticmethod
    def _print_label(shipment_id, ctx, override_id):
        shipment = Shipment.objects.select_for_update().select_related(
            'origin_branch', 'destination_branch'
        ).filter(pk=shipment_id).first()
        if shipment is None:
            raise NotFoundException("Shipment", shipment_id)
        if shipment.is_cancelled:
            raise ConflictException(
                f"Shipment {shipment.tracking_number} is cancelled",
                "SHIPMENT_CANCELLED",
                {'shipment_id': str(shipment.id)}
            )

        reprint = shipment.label_print_count > 0
        override = None
        if reprint:
            override = OverrideService.require_approval(
                OverrideActionType.REPRINT, ctx, shipment=shipment,
                override_id=override_id, bypass_roles=PRIVILEGED_ROLES
            )

        now = timezone.now()
        Shipment.objects.filter(pk=shipment.pk).update(
            label_print_count=F('label_print_count') + 1,
            last_label_printed_at=now,
        )
        shipment.refresh_from_db()

        action = AuditAction.LABEL_REPRINTED if reprint else AuditAction.LABEL_PRINTED
        get_audit_sink().record(
            action, shipment, ctx.user_id,
            {'new_values': {'label_print_count': shipment.label_print_count},
             'metadata': {'override_id': str(override.id) if override else None}},
        )

        logger.info(f"Label for {shipment.tracking_number} printed (copy {shipment.label_print_count})")
        return {'shipment': shipment, 'label': build_label(shipment), 'reprint': reprint}

    @staticmethod
    def cancel_shipment(shipment_id, ctx: RequestContext, reason: str = "", override_id=None) -> OperationResult:
        """
        Cancel a shipment.

        Users below branch admin need an approved ``cancel`` override.
        Shipments with money on them must be refunded first.

        Returns:
            OperationResult wrapping the cancelled Shipment
        """
        return UnitOfWork(name="cancel_shipment").execute(
            ShippingService._cancel_shipment, shipment_id, ctx, reason, override_id
        )

    @staticmethod
    def _cancel_shipment(shipment_id, ctx, reason, override_id):
        shipment = Shipment.objects.select_for_update().filter(pk=shipment_id).first()
        if shipment is None:
            raise NotFoundException("Shipment", shipment_id)

        validate_shipment_workflow(shipment, ShipmentStatus.CANCELLED)

        if shipment.amount_paid > 0:
            raise ConflictException(
                f"Shipment {shipment.tracking_number} has {shipment.amount_paid} paid; refund it first",
                "SHIPMENT_HAS_PAYMENTS",
                {'shipment_id': str(shipment.id), 'amount_paid': str(shipment.amount_paid)}
            )

        override = OverrideService.require_approval(
            OverrideActionType.CANCEL, ctx, shipment=shipment,
            override_id=override_id, bypass_roles=PRIVILEGED_ROLES
        )

        old_status = shipment.status
        shipment.status = ShipmentStatus.CANCELLED
        shipment.cancelled_at = timezone.now()
        shipment.save(update_fields=['status', 'cancelled_at', 'updated_at'])

        get_audit_sink().record(
            AuditAction.SHIPMENT_CANCELLED, shipment, ctx.user_id,
            {'old_values': {'status': old_status},
             'new_values': {'status': shipment.status},
             'metadata': {'override_id': str(override.id) if override else None}},
            notes=reason,
        )

        logger.info(f"Shipment {shipment.tracking_number} cancelled by user {ctx.user_id}")
        return shipment

    @staticmethod
    def get_audit_history(shipment_id):
        """
        Audit events of a shipment, its payments and its overrides, oldest first.

        Raises:
            NotFoundException: If the shipment does not exist
        """
        shipment = Shipment.objects.filter(pk=shipment_id).first()
        if shipment is None:
            raise NotFoundException("Shipment", shipment_id)

        payment_ids = list(shipment.payments.values_list('id', flat=True))
        override_ids = list(shipment.overrides.values_list('id', flat=True))

        return AuditLog.objects.filter(
            Q(entity_type='Shipment', entity_id=shipment.id) |
            Q(entity_type='PaymentTransaction', entity_id__in=payment_ids) |
            Q(entity_type='SupervisorOverride', entity_id__in=override_ids)
        ).select_related('user').order_by('timestamp')
