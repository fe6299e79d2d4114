"""
Supervisor override serializers for the POS transaction core.
"""

from rest_framework import serializers

from ..models import AuditLog, OverrideActionType, SupervisorOverride


class OverrideRequestSerializer(serializers.Serializer):
    action_type = serializers.ChoiceField(choices=OverrideActionType.choices)
    shipment_id = serializers.UUIDField(required=False, allow_null=True)
    reason = serializers.CharField()
    request_data = serializers.JSONField(required=False, default=dict)


class OverrideApproveSerializer(serializers.Serializer):
    """The approver re-enters their own password."""

    password = serializers.CharField(write_only=True, style={'input_type': 'password'})
    approved_data = serializers.JSONField(required=False, default=dict)


class OverrideRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class SupervisorOverrideSerializer(serializers.ModelSerializer):

    requested_by_username = serializers.CharField(source='requested_by.username', read_only=True)
    approved_by_username = serializers.CharField(source='approved_by.username', read_only=True, default=None)
    is_consumed = serializers.SerializerMethodField()

    class Meta:
        model = SupervisorOverride
        fields = [
            'id', 'action_type', 'shipment', 'requested_by', 'requested_by_username',
            'reason', 'request_data', 'status', 'expires_at',
            'approved_by', 'approved_by_username', 'approved_at', 'approved_data',
            'decided_at', 'rejection_reason', 'consumed_at', 'consumed_by',
            'is_consumed', 'created_at'
        ]
        read_only_fields = fields

    def get_is_consumed(self, obj):
        return obj.consumed_at is not None


class AuditLogSerializer(serializers.ModelSerializer):

    username = serializers.CharField(source='user.username', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'entity_type', 'entity_id', 'action', 'user', 'username',
            'old_values', 'new_values', 'notes', 'metadata', 'timestamp'
        ]
        read_only_fields = fields
