"""
Supervisor Override Service for the POS transaction core.

Handles the request -> approve/reject/expire lifecycle of supervisor
overrides and the gate that privileged actions pass through.
"""

import logging
from datetime import timedelta
from typing import Dict, Any, Iterable, Optional
from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils import timezone

from ..adapters.audit_sink import get_audit_sink
from ..context import RequestContext
from ..exceptions import (
    ApprovalRequiredException, ConflictException, NotFoundException,
    PermissionDeniedException, ValidationException,
)
from ..models import (
    AuditAction, OverrideActionType, OverrideStatus, Shipment, SupervisorOverride,
)
from ..results import OperationResult
from .unit_of_work import UnitOfWork
from .workflow import validate_override_workflow

logger = logging.getLogger(__name__)

DEFAULT_OVERRIDE_TTL_MINUTES = 15


def override_ttl() -> timedelta:
    return timedelta(minutes=getattr(settings, 'POS_OVERRIDE_TTL_MINUTES', DEFAULT_OVERRIDE_TTL_MINUTES))


class OverrideService:
    """Service class for supervisor override operations."""

    @staticmethod
    def request_override(action_type: str, ctx: RequestContext, reason: str,
                         shipment_id=None, request_data: Optional[Dict[str, Any]] = None) -> OperationResult:
        """
        Create a PENDING override request.

        Args:
            action_type: One of OverrideActionType
            ctx: Caller context
            reason: Why the action is needed
            shipment_id: Target shipment, if any
            request_data: Action details (e.g. requested discount)

        Returns:
            OperationResult wrapping the created SupervisorOverride
        """
        return UnitOfWork(name="request_override").execute(
            OverrideService._request, action_type, ctx, reason, shipment_id, request_data
        )

    @staticmethod
    def _request(action_type, ctx, reason, shipment_id, request_data):
        if action_type not in OverrideActionType.values:
            raise ValidationException(f"Unknown override action '{action_type}'", {'action_type': action_type})
        if not reason or not reason.strip():
            raise ValidationException("A reason is required for an override request", {'reason': 'required'})

        shipment = None
        if shipment_id:
            shipment = Shipment.objects.filter(pk=shipment_id).first()
            if shipment is None:
                raise NotFoundException("Shipment", shipment_id)

        now = timezone.now()
        override = SupervisorOverride.objects.create(
            action_type=action_type,
            shipment=shipment,
            requested_by_id=ctx.user_id,
            reason=reason.strip(),
            request_data=request_data or {},
            expires_at=now + override_ttl(),
            created_at=now,
        )

        get_audit_sink().record(
            AuditAction.OVERRIDE_REQUESTED, override, ctx.user_id,
            {'new_values': {'status': OverrideStatus.PENDING, 'action_type': action_type},
             'metadata': {'shipment_id': shipment_id, 'request_data': request_data or {}}},
            notes=reason.strip(),
        )

        logger.info(f"Override {override.id} ({action_type}) requested by user {ctx.user_id}")
        return override

    @staticmethod
    def approve_override(override_id, ctx: RequestContext, credential_proof: str,
                         approved_data: Optional[Dict[str, Any]] = None, now=None) -> OperationResult:
        """
        Approve a PENDING override.

        An expired request is moved to EXPIRED (and stays there) while the
        approval itself fails with a conflict.

        Returns:
            OperationResult wrapping the approved SupervisorOverride
        """
        result = UnitOfWork(name="approve_override").execute(
            OverrideService._approve, override_id, ctx, credential_proof, approved_data, now
        )
        if result.ok and result.value.status == OverrideStatus.EXPIRED:
            return OperationResult.failure(ConflictException(
                "Override request has expired",
                "OVERRIDE_EXPIRED",
                {'override_id': str(override_id), 'expires_at': result.value.expires_at.isoformat()}
            ))
        return result

    @staticmethod
    def _approve(override_id, ctx, credential_proof, approved_data, now):
        now = now or timezone.now()
        if not ctx.is_elevated:
            raise PermissionDeniedException(
                "Insufficient permissions to approve overrides", "INSUFFICIENT_ROLE"
            )
        override = OverrideService._get(override_id)

        approver = get_user_model().objects.filter(pk=ctx.user_id).first()
        if approver is None or not approver.check_password(credential_proof or ""):
            raise PermissionDeniedException("Invalid supervisor password", "INVALID_CREDENTIALS")

        if override.status != OverrideStatus.PENDING:
            raise ConflictException(
                "Override request has already been processed",
                "ALREADY_PROCESSED",
                {'override_id': str(override.id), 'status': override.status}
            )

        if override.is_expired(now):
            return OverrideService._expire(override, now, ctx.user_id)

        validate_override_workflow(override, OverrideStatus.APPROVED)
        updated = SupervisorOverride.objects.filter(
            pk=override.pk, status=OverrideStatus.PENDING
        ).update(
            status=OverrideStatus.APPROVED,
            approved_by_id=ctx.user_id,
            approved_at=now,
            decided_at=now,
            approved_data=approved_data or {},
        )
        if not updated:
            raise ConflictException(
                "Override request has already been processed",
                "ALREADY_PROCESSED",
                {'override_id': str(override.id)}
            )
        override.refresh_from_db()

        get_audit_sink().record(
            AuditAction.OVERRIDE_APPROVED, override, ctx.user_id,
            {'old_values': {'status': OverrideStatus.PENDING},
             'new_values': {'status': OverrideStatus.APPROVED, 'approved_data': approved_data or {}}},
        )

        logger.info(f"Override {override.id} approved by user {ctx.user_id}")
        return override

    @staticmethod
    def reject_override(override_id, ctx: RequestContext, reason: str = "", now=None) -> OperationResult:
        """
        Reject a PENDING override.

        Returns:
            OperationResult wrapping the rejected SupervisorOverride
        """
        result = UnitOfWork(name="reject_override").execute(
            OverrideService._reject, override_id, ctx, reason, now
        )
        if result.ok and result.value.status == OverrideStatus.EXPIRED:
            return OperationResult.failure(ConflictException(
                "Override request has expired", "OVERRIDE_EXPIRED", {'override_id': str(override_id)}
            ))
        return result

    @staticmethod
    def _reject(override_id, ctx, reason, now):
        now = now or timezone.now()
        if not ctx.is_elevated:
            raise PermissionDeniedException(
                "Insufficient permissions to reject overrides", "INSUFFICIENT_ROLE"
            )
        override = OverrideService._get(override_id)

        if override.status != OverrideStatus.PENDING:
            raise ConflictException(
                "Override request has already been processed",
                "ALREADY_PROCESSED",
                {'override_id': str(override.id), 'status': override.status}
            )
        if override.is_expired(now):
            return OverrideService._expire(override, now, ctx.user_id)

        validate_override_workflow(override, OverrideStatus.REJECTED)
        updated = SupervisorOverride.objects.filter(
            pk=override.pk, status=OverrideStatus.PENDING
        ).update(
            status=OverrideStatus.REJECTED,
            approved_by_id=ctx.user_id,
            decided_at=now,
            rejection_reason=reason or "",
        )
        if not updated:
            raise ConflictException(
                "Override request has already been processed",
                "ALREADY_PROCESSED",
                {'override_id': str(override.id)}
            )
        override.refresh_from_db()

        get_audit_sink().record(
            AuditAction.OVERRIDE_REJECTED, override, ctx.user_id,
            {'old_values': {'status': OverrideStatus.PENDING},
             'new_values': {'status': OverrideStatus.REJECTED}},
            notes=reason or "",
        )

        logger.info(f"Override {override.id} rejected by user {ctx.user_id}")
        return override

    @staticmethod
    def expire_stale_overrides(now=None) -> int:
        """
        Sweep PENDING overrides past their deadline into EXPIRED.

        Returns:
            Number of overrides expired by this sweep
        """
        now = now or timezone.now()
        expired = 0
        stale = SupervisorOverride.objects.filter(
            status=OverrideStatus.PENDING, expires_at__lt=now
        ).order_by('expires_at')

        for override in stale:
            result = UnitOfWork(name="expire_override").execute(OverrideService._expire, override, now, None)
            if result.ok and result.value.status == OverrideStatus.EXPIRED:
                expired += 1

        if expired:
            logger.info(f"Expired {expired} stale override request(s)")
        return expired

    @staticmethod
    def _expire(override, now, actor_id):
        """CAS PENDING -> EXPIRED. Losing the race leaves the winner's state."""
        validate_override_workflow(override, OverrideStatus.EXPIRED)
        updated = SupervisorOverride.objects.filter(
            pk=override.pk, status=OverrideStatus.PENDING
        ).update(status=OverrideStatus.EXPIRED, decided_at=now)
        override.refresh_from_db()

        if updated:
            get_audit_sink().record(
                AuditAction.OVERRIDE_EXPIRED, override, actor_id,
                {'old_values': {'status': OverrideStatus.PENDING},
                 'new_values': {'status': OverrideStatus.EXPIRED}},
            )
            logger.info(f"Override {override.id} expired")
        return override

    @staticmethod
    def require_approval(action_type: str, ctx: RequestContext, shipment: Optional[Shipment] = None,
                         override_id=None, bypass_roles: Iterable[str] = ()) -> Optional[SupervisorOverride]:
        """
        Gate a privileged action on an APPROVED, unused override.

        Must run inside the caller's transaction: the override is consumed
        together with the action it unlocks.

        Returns:
            The consumed override, or None when the caller's role bypasses the gate

        Raises:
            ApprovalRequiredException: If no matching approved override is available
        """
        if ctx.has_any_role(bypass_roles):
            return None

        candidates = SupervisorOverride.objects.filter(
            action_type=action_type,
            status=OverrideStatus.APPROVED,
            consumed_at__isnull=True,
        )
        if override_id:
            candidates = candidates.filter(pk=override_id)
        elif shipment is None:
            raise ApprovalRequiredException(action_type)

        if shipment is not None:
            candidates = candidates.filter(shipment=shipment)
        else:
            candidates = candidates.filter(shipment__isnull=True)

        now = timezone.now()
        for candidate in candidates.order_by('approved_at'):
            consumed = SupervisorOverride.objects.filter(
                pk=candidate.pk, consumed_at__isnull=True
            ).update(consumed_at=now, consumed_by_id=ctx.user_id)
            if not consumed:
                continue
            candidate.refresh_from_db()
            get_audit_sink().record(
                AuditAction.OVERRIDE_CONSUMED, candidate, ctx.user_id,
                {'metadata': {'action_type': action_type,
                              'shipment_id': str(shipment.id) if shipment else None}},
            )
            logger.info(f"Override {candidate.id} consumed for {action_type} by user {ctx.user_id}")
            return candidate

        raise ApprovalRequiredException(action_type, shipment.id if shipment else None)

    @staticmethod
    def _get(override_id) -> SupervisorOverride:
        override = SupervisorOverride.objects.filter(pk=override_id).first()
        if override is None:
            raise NotFoundException("SupervisorOverride", override_id)
        return override
