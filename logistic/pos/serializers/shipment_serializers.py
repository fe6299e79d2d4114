"""
Shipment serializers for the POS transaction core.
"""

from rest_framework import serializers

from ..models import PayerType, Shipment
from .quote_serializers import QuoteRequestSerializer


class ShipmentCreateSerializer(QuoteRequestSerializer):
    """Input for creating a shipment; the price is recomputed server-side."""

    idempotency_key = serializers.CharField(max_length=64)
    quoted_total = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True)
    override_id = serializers.UUIDField(required=False, allow_null=True)
    payer_type = serializers.ChoiceField(choices=PayerType.choices, default=PayerType.SENDER)

    receiver_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    receiver_phone = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    delivery_address = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    description = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')

    def validate_idempotency_key(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Idempotency key cannot be blank")
        return value


class ShipmentListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for shipment lists."""

    origin = serializers.CharField(source='origin_branch.code', read_only=True)
    destination = serializers.CharField(source='destination_branch.code', read_only=True)

    class Meta:
        model = Shipment
        fields = [
            'id', 'tracking_number', 'origin', 'destination', 'service_level',
            'price_amount', 'currency', 'status', 'payment_status', 'created_at'
        ]


class ShipmentDetailSerializer(serializers.ModelSerializer):
    """Full shipment with its price breakdown and embedded quote."""

    origin = serializers.CharField(source='origin_branch.code', read_only=True)
    destination = serializers.CharField(source='destination_branch.code', read_only=True)
    outstanding_amount = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    quote = serializers.SerializerMethodField()

    class Meta:
        model = Shipment
        fields = [
            'id', 'tracking_number', 'idempotency_key',
            'origin_branch', 'destination_branch', 'origin', 'destination',
            'service_level', 'parcel_count', 'weight', 'billable_weight',
            'declared_value', 'cod_amount', 'insurance_type', 'payer_type',
            'receiver_name', 'receiver_phone', 'delivery_address', 'description',
            'base_freight', 'weight_charge', 'fuel_surcharge', 'surcharges_total',
            'insurance_fee', 'cod_fee', 'discount_amount', 'tax_amount',
            'price_amount', 'currency', 'rate_table_version',
            'status', 'payment_status', 'amount_paid', 'outstanding_amount',
            'label_print_count', 'last_label_printed_at',
            'created_by', 'cancelled_at', 'created_at', 'updated_at', 'quote'
        ]
        read_only_fields = fields

    def get_quote(self, obj):
        return obj.quote


class PrintLabelSerializer(serializers.Serializer):
    override_id = serializers.UUIDField(required=False, allow_null=True)


class CancelShipmentSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    override_id = serializers.UUIDField(required=False, allow_null=True)
