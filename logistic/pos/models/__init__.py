"""
POS Transaction Core Models
"""

from .branch import Branch
from .rate_table import (
    RateTableVersion, RateTableStatus, ServiceRate, SurchargeRule,
    ServiceLevel, RateType,
)
from .shipment import Shipment, ShipmentStatus, PaymentStatus, InsuranceType, PayerType
from .payment import PaymentTransaction, TransactionType, PaymentMethod, PostingStatus
from .idempotency import IdempotencyRecord, OperationType
from .override import SupervisorOverride, OverrideStatus, OverrideActionType
from .audit import AuditLog, AuditAction

__all__ = [
    # Branches
    'Branch',

    # Rate tables
    'RateTableVersion', 'RateTableStatus', 'ServiceRate', 'SurchargeRule',
    'ServiceLevel', 'RateType',

    # Shipments and payments
    'Shipment', 'ShipmentStatus', 'PaymentStatus', 'InsuranceType', 'PayerType',
    'PaymentTransaction', 'TransactionType', 'PaymentMethod', 'PostingStatus',

    # Idempotency ledger
    'IdempotencyRecord', 'OperationType',

    # Supervisor overrides
    'SupervisorOverride', 'OverrideStatus', 'OverrideActionType',

    # Audit
    'AuditLog', 'AuditAction',
]
