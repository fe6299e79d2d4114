"""
Quote serializers for the POS transaction core.
"""

from decimal import Decimal
from rest_framework import serializers

from ..models import InsuranceType


class ParcelSerializer(serializers.Serializer):
    """One parcel of a multi-parcel shipment. Dimensions in cm, weight in kg."""

    weight = serializers.DecimalField(max_digits=10, decimal_places=3)
    length = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    width = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    height = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    declared_value = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, default=Decimal('0.00'))
    cod_amount = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, default=Decimal('0.00'))


class QuoteRequestSerializer(serializers.Serializer):
    """
    Input for pricing a shipment.

    Weight and value checks are left to the quote calculator so that a
    non-positive weight surfaces as a computation error.
    """

    origin_branch_id = serializers.UUIDField()
    destination_branch_id = serializers.UUIDField()
    service_level = serializers.CharField(max_length=20)

    weight = serializers.DecimalField(max_digits=10, decimal_places=3, required=False, allow_null=True)
    length = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    width = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    height = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    declared_value = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, default=Decimal('0.00'))
    cod_amount = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, default=Decimal('0.00'))
    insurance_type = serializers.ChoiceField(choices=InsuranceType.choices, default=InsuranceType.NONE)

    parcels = ParcelSerializer(many=True, required=False)
    rate_table_version = serializers.CharField(max_length=50, required=False, allow_blank=True)

    def validate_parcels(self, value):
        if value is not None and len(value) == 0:
            raise serializers.ValidationError("Provide at least one parcel or omit the field")
        return value

    def validate(self, attrs):
        if not attrs.get('parcels') and attrs.get('weight') is None:
            raise serializers.ValidationError({'weight': "Weight is required when parcels are not given"})
        return attrs


class ServiceLevelComparisonSerializer(QuoteRequestSerializer):
    """Same input as a quote; every service level is priced."""

    service_level = serializers.CharField(max_length=20, required=False)
