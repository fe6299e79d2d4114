"""
URL configuration for the POS transaction core.

Provides API endpoints for quoting, shipments, payments and supervisor overrides.
"""

from rest_framework.routers import DefaultRouter

from .views import QuoteViewSet, ShipmentViewSet, PaymentViewSet, OverrideViewSet

# Create router and register viewsets
router = DefaultRouter()
router.register(r'quote', QuoteViewSet, basename='pos-quote')
router.register(r'shipments', ShipmentViewSet, basename='pos-shipment')
router.register(r'payments', PaymentViewSet, basename='pos-payment')
router.register(r'overrides', OverrideViewSet, basename='pos-override')

# URL patterns
urlpatterns = router.urls
