"""
Payment serializers for the POS transaction core.
"""

from rest_framework import serializers

from ..models import PayerType, PaymentMethod, PaymentTransaction


class PaymentCreateSerializer(serializers.Serializer):
    """Input for taking a payment against a shipment."""

    shipment_id = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    payer_type = serializers.ChoiceField(choices=PayerType.choices, required=False)
    currency = serializers.CharField(max_length=3, required=False)
    external_reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    idempotency_key = serializers.CharField(max_length=64)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Payment amount must be greater than 0")
        return value


class RefundSerializer(serializers.Serializer):
    """Input for refunding a payment. Omitting the amount refunds the rest."""

    amount = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True)
    reason = serializers.CharField()
    method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)
    external_reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    override_id = serializers.UUIDField(required=False, allow_null=True)
    idempotency_key = serializers.CharField(max_length=64)


class PaymentTransactionSerializer(serializers.ModelSerializer):

    tracking_number = serializers.CharField(source='shipment.tracking_number', read_only=True)

    class Meta:
        model = PaymentTransaction
        fields = [
            'id', 'shipment', 'tracking_number', 'idempotency_key', 'transaction_type',
            'refund_of', 'amount', 'currency', 'method', 'payer_type',
            'external_reference', 'posting_status', 'posting_reference',
            'created_by', 'completed_at', 'created_at', 'metadata'
        ]
        read_only_fields = fields
