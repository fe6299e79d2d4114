"""
POS Transaction Core Views
"""

from .quote_views import QuoteViewSet
from .shipment_views import ShipmentViewSet
from .payment_views import PaymentViewSet
from .override_views import OverrideViewSet

__all__ = [
    'QuoteViewSet',
    'ShipmentViewSet',
    'PaymentViewSet',
    'OverrideViewSet',
]
