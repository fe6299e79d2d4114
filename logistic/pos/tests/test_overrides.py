"""
Tests for the supervisor override lifecycle and the approval gate.
"""

from datetime import timedelta
from io import StringIO
from unittest.mock import patch
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from ..adapters.audit_sink import switch_to_database_sink
from ..context import PRIVILEGED_ROLES, RequestContext
from ..exceptions import ApprovalRequiredException, ErrorKind
from ..models import AuditAction, AuditLog, OverrideStatus, SupervisorOverride
from ..services import OverrideService
from .fixtures import PASSWORD, make_branches, make_user


class OverrideTestCase(TestCase):

    def setUp(self):
        switch_to_database_sink()
        make_branches()
        self.cashier = make_user('cashier')
        self.supervisor = make_user('supervisor', role='supervisor')
        self.cashier_ctx = RequestContext.from_user(self.cashier)
        self.supervisor_ctx = RequestContext.from_user(self.supervisor)

    def request(self, action_type='discount', **kwargs):
        return OverrideService.request_override(
            action_type, self.cashier_ctx, "Regular customer", **kwargs
        ).unwrap()


class RequestOverrideTest(OverrideTestCase):

    def test_request_creates_pending_override(self):
        before = timezone.now()
        override = self.request(request_data={'discount_percent': '10'})

        self.assertEqual(override.status, OverrideStatus.PENDING)
        self.assertEqual(override.requested_by, self.cashier)
        self.assertGreaterEqual(override.expires_at, before + timedelta(minutes=15))
        self.assertLessEqual(override.expires_at, timezone.now() + timedelta(minutes=15))
        self.assertTrue(AuditLog.objects.filter(
            action=AuditAction.OVERRIDE_REQUESTED, entity_id=override.id
        ).exists())

    @override_settings(POS_OVERRIDE_TTL_MINUTES=5)
    def test_ttl_is_configurable(self):
        override = self.request()
        self.assertLessEqual(override.expires_at, timezone.now() + timedelta(minutes=5))

    def test_unknown_action_type(self):
        result = OverrideService.request_override('teleport', self.cashier_ctx, "Because")

        self.assertFalse(result.ok)
        self.assertEqual(result.error.kind, ErrorKind.VALIDATION)

    def test_reason_is_required(self):
        result = OverrideService.request_override('discount', self.cashier_ctx, "   ")

        self.assertFalse(result.ok)
        self.assertEqual(result.error.kind, ErrorKind.VALIDATION)

    def test_unknown_shipment(self):
        result = OverrideService.request_override(
            'cancel', self.cashier_ctx, "Wrong parcel", shipment_id='00000000-0000-0000-0000-000000000000'
        )

        self.assertFalse(result.ok)
        self.assertEqual(result.error.kind, ErrorKind.NOT_FOUND)
        self.assertEqual(SupervisorOverride.objects.count(), 0)


class ApproveOverrideTest(OverrideTestCase):

    def test_supervisor_approves(self):
        override = self.request()

        result = OverrideService.approve_override(
            override.id, self.supervisor_ctx, PASSWORD, approved_data={'discount_percent': '5'}
        )

        self.assertTrue(result.ok)
        approved = result.value
        self.assertEqual(approved.status, OverrideStatus.APPROVED)
        self.assertEqual(approved.approved_by, self.supervisor)
        self.assertIsNotNone(approved.approved_at)
        self.assertEqual(approved.approved_data, {'discount_percent': '5'})
        self.assertTrue(AuditLog.objects.filter(
            action=AuditAction.OVERRIDE_APPROVED, entity_id=override.id
        ).exists())

    def test_second_approval_conflicts(self):
        override = self.request()
        OverrideService.approve_override(override.id, self.supervisor_ctx, PASSWORD).unwrap()

        result = OverrideService.approve_override(override.id, self.supervisor_ctx, PASSWORD)

        self.assertFalse(result.ok)
        self.assertEqual(result.error.kind, ErrorKind.CONFLICT)
        self.assertEqual(result.error.code, 'ALREADY_PROCESSED')

    def test_expired_request_cannot_be_approved(self):
        override = self.request()
        later = override.expires_at + timedelta(seconds=1)

        result = OverrideService.approve_override(override.id, self.supervisor_ctx, PASSWORD, now=later)

        self.assertFalse(result.ok)
        self.assertEqual(result.error.code, 'OVERRIDE_EXPIRED')
        override.refresh_from_db()
        self.assertEqual(override.status, OverrideStatus.EXPIRED)
        self.assertTrue(AuditLog.objects.filter(
            action=AuditAction.OVERRIDE_EXPIRED, entity_id=override.id
        ).exists())

    def test_wrong_password(self):
        override = self.request()

        result = OverrideService.approve_override(override.id, self.supervisor_ctx, 'not-the-password')

        self.assertFalse(result.ok)
        self.assertEqual(result.error.kind, ErrorKind.PERMISSION)
        self.assertEqual(result.error.code, 'INVALID_CREDENTIALS')
        override.refresh_from_db()
        self.assertEqual(override.status, OverrideStatus.PENDING)

    def test_cashier_cannot_approve(self):
        override = self.request()

        result = OverrideService.approve_override(override.id, self.cashier_ctx, PASSWORD)

        self.assertFalse(result.ok)
        self.assertEqual(result.error.code, 'INSUFFICIENT_ROLE')

    def test_cashier_is_refused_before_the_lookup(self):
        result = OverrideService.approve_override(
            '00000000-0000-0000-0000-000000000000', self.cashier_ctx, PASSWORD
        )

        self.assertFalse(result.ok)
        self.assertEqual(result.error.kind, ErrorKind.PERMISSION)
        self.assertEqual(result.error.code, 'INSUFFICIENT_ROLE')

    def test_unknown_override(self):
        result = OverrideService.approve_override(
            '00000000-0000-0000-0000-000000000000', self.supervisor_ctx, PASSWORD
        )

        self.assertFalse(result.ok)
        self.assertEqual(result.error.kind, ErrorKind.NOT_FOUND)

    def test_stale_read_loses_the_race(self):
        """Two supervisors load the same PENDING request; only one decision sticks."""
        override = self.request()
        stale = SupervisorOverride.objects.get(pk=override.pk)
        other_supervisor = RequestContext.from_user(make_user('supervisor2', role='supervisor'))
        OverrideService.reject_override(override.id, other_supervisor, "Not allowed").unwrap()

        with patch.object(OverrideService, '_get', return_value=stale):
            result = OverrideService.approve_override(override.id, self.supervisor_ctx, PASSWORD)

        self.assertFalse(result.ok)
        self.assertEqual(result.error.code, 'ALREADY_PROCESSED')
        override.refresh_from_db()
        self.assertEqual(override.status, OverrideStatus.REJECTED)


class RejectOverrideTest(OverrideTestCase):

    def test_reject_then_approve_conflicts(self):
        override = self.request()

        rejected = OverrideService.reject_override(override.id, self.supervisor_ctx, "Not eligible").unwrap()
        result = OverrideService.approve_override(override.id, self.supervisor_ctx, PASSWORD)

        self.assertEqual(rejected.status, OverrideStatus.REJECTED)
        self.assertEqual(rejected.rejection_reason, "Not eligible")
        self.assertFalse(result.ok)
        self.assertEqual(result.error.kind, ErrorKind.CONFLICT)

    def test_cashier_cannot_reject(self):
        override = self.request()

        result = OverrideService.reject_override(override.id, self.cashier_ctx)

        self.assertFalse(result.ok)
        self.assertEqual(result.error.kind, ErrorKind.PERMISSION)

    def test_cashier_rejecting_unknown_override_is_refused(self):
        result = OverrideService.reject_override('00000000-0000-0000-0000-000000000000', self.cashier_ctx)

        self.assertFalse(result.ok)
        self.assertEqual(result.error.code, 'INSUFFICIENT_ROLE')


class ExpireOverridesTest(OverrideTestCase):

    def test_sweep_expires_only_stale_requests(self):
        stale = self.request()
        fresh = self.request()
        SupervisorOverride.objects.filter(pk=stale.pk).update(expires_at=timezone.now() - timedelta(minutes=1))

        expired = OverrideService.expire_stale_overrides()

        self.assertEqual(expired, 1)
        stale.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(stale.status, OverrideStatus.EXPIRED)
        self.assertEqual(fresh.status, OverrideStatus.PENDING)

    def test_expire_overrides_command(self):
        stale = self.request()
        SupervisorOverride.objects.filter(pk=stale.pk).update(expires_at=timezone.now() - timedelta(minutes=1))
        out = StringIO()

        call_command('expire_overrides', stdout=out)

        self.assertIn('Expired 1 override request(s)', out.getvalue())
        stale.refresh_from_db()
        self.assertEqual(stale.status, OverrideStatus.EXPIRED)


class RequireApprovalTest(OverrideTestCase):

    def approved(self, action_type='discount'):
        override = self.request(action_type)
        return OverrideService.approve_override(override.id, self.supervisor_ctx, PASSWORD).unwrap()

    def test_approved_override_is_consumed_once(self):
        override = self.approved()

        consumed = OverrideService.require_approval('discount', self.cashier_ctx, override_id=override.id)

        self.assertEqual(consumed.pk, override.pk)
        self.assertIsNotNone(consumed.consumed_at)
        self.assertEqual(consumed.consumed_by, self.cashier)
        with self.assertRaises(ApprovalRequiredException):
            OverrideService.require_approval('discount', self.cashier_ctx, override_id=override.id)

    def test_override_of_another_action_does_not_unlock(self):
        override = self.approved('reprint')

        with self.assertRaises(ApprovalRequiredException):
            OverrideService.require_approval('discount', self.cashier_ctx, override_id=override.id)

    def test_privileged_role_bypasses_gate(self):
        admin_ctx = RequestContext.from_user(make_user('boss', role='branch_admin'))

        self.assertIsNone(OverrideService.require_approval('cancel', admin_ctx, bypass_roles=PRIVILEGED_ROLES))

    def test_nothing_to_consume(self):
        with self.assertRaises(ApprovalRequiredException) as ctx:
            OverrideService.require_approval('cancel', self.cashier_ctx)
        self.assertTrue(ctx.exception.details['requires_approval'])
