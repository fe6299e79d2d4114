"""
POS Transaction Core Services
"""

from .workflow import validate_override_workflow, validate_shipment_workflow
from .quote_calculator import calculate_quote
from .rate_tables import RateTableProvider
from .idempotency import IdempotencyLedger
from .unit_of_work import UnitOfWork
from .override_service import OverrideService
from .orchestrator import TransactionOrchestrator
from .shipping_service import ShippingService

__all__ = [
    # Workflow validators
    'validate_override_workflow', 'validate_shipment_workflow',

    # Pricing
    'calculate_quote', 'RateTableProvider',

    # Services
    'IdempotencyLedger', 'UnitOfWork', 'OverrideService',
    'TransactionOrchestrator', 'ShippingService',
]
