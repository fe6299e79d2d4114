"""
POS Transaction Core Serializers
"""

from .quote_serializers import ParcelSerializer, QuoteRequestSerializer, ServiceLevelComparisonSerializer
from .shipment_serializers import (
    ShipmentCreateSerializer, ShipmentListSerializer, ShipmentDetailSerializer,
    PrintLabelSerializer, CancelShipmentSerializer,
)
from .payment_serializers import PaymentCreateSerializer, RefundSerializer, PaymentTransactionSerializer
from .override_serializers import (
    OverrideRequestSerializer, OverrideApproveSerializer, OverrideRejectSerializer,
    SupervisorOverrideSerializer, AuditLogSerializer,
)

__all__ = [
    'ParcelSerializer', 'QuoteRequestSerializer', 'ServiceLevelComparisonSerializer',
    'ShipmentCreateSerializer', 'ShipmentListSerializer', 'ShipmentDetailSerializer',
    'PrintLabelSerializer', 'CancelShipmentSerializer',
    'PaymentCreateSerializer', 'RefundSerializer', 'PaymentTransactionSerializer',
    'OverrideRequestSerializer', 'OverrideApproveSerializer', 'OverrideRejectSerializer',
    'SupervisorOverrideSerializer', 'AuditLogSerializer',
]
