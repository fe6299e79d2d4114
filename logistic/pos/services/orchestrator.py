"""
Transaction Orchestrator for the POS transaction core.

Runs the priced counter actions (quote, create shipment, take payment,
refund) with at-most-once side effects per idempotency key.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, Optional
from django.db.models import Sum
from django.utils import timezone

from ..adapters.audit_sink import get_audit_sink
from ..adapters.posting_adapter import PostingError, get_posting_adapter
from ..context import RequestContext
from ..exceptions import (
    ConflictException, NotFoundException, PersistenceException, QuoteException, ValidationException,
)
from ..models import (
    AuditAction, OperationType, OverrideActionType, PaymentTransaction, PostingStatus,
    ServiceLevel, Shipment, SupervisorOverride, TransactionType,
)
from ..results import OperationResult
from .idempotency import IdempotencyLedger, RESERVED
from .override_service import OverrideService
from .quote_calculator import (
    Parcel, Quote, ShipmentSpec, ZERO, calculate_quote, money,
)
from .rate_tables import RateTableProvider
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

PRICE_ADJUSTMENT_ACTIONS = (OverrideActionType.DISCOUNT, OverrideActionType.PRICE_OVERRIDE)


@dataclass(frozen=True)
class Replayed:
    """Result a concurrent request with the same key committed while this one waited."""
    entity: Any


class Stage:
    """Processing stages of one orchestrated request."""
    RECEIVED = 'RECEIVED'
    REPLAY = 'REPLAY'
    QUOTING = 'QUOTING'
    PERSISTING = 'PERSISTING'
    AUDITING = 'AUDITING'
    COMMITTED = 'COMMITTED'


def _stage(operation: str, key: str, stage: str) -> None:
    logger.info(f"{operation} [{key}] -> {stage}")


def _decimal(value, default=None) -> Optional[Decimal]:
    if value is None or value == '':
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationException(f"'{value}' is not a valid number")


def build_shipment_spec(data: Dict[str, Any], zone: str) -> ShipmentSpec:
    """
    Build the calculator input from request data.

    Top-level weight/dimension/value fields describe a single parcel and are
    only used when ``parcels`` is absent.
    """
    service_level = data.get('service_level')
    if not service_level:
        raise ValidationException("Service level is required", {'service_level': 'required'})

    parcels_data = data.get('parcels') or [data]
    parcels = tuple(
        Parcel(
            weight=_decimal(p.get('weight')),
            length=_decimal(p.get('length')),
            width=_decimal(p.get('width')),
            height=_decimal(p.get('height')),
            declared_value=_decimal(p.get('declared_value'), ZERO),
            cod_amount=_decimal(p.get('cod_amount'), ZERO),
        )
        for p in parcels_data
    )
    return ShipmentSpec(
        zone=zone,
        service_level=service_level,
        parcels=parcels,
        insurance_type=data.get('insurance_type') or 'none',
    )


class TransactionOrchestrator:
    """
    Entry point for priced POS actions.

    Every mutating operation checks the idempotency ledger first, then does
    all of its writes (entity, ledger record, audit event) in one unit of
    work. Public methods return ``OperationResult`` and never raise
    business errors.
    """

    @staticmethod
    def quote(data: Dict[str, Any], ctx: RequestContext) -> OperationResult:
        """
        Price a shipment without persisting anything.

        Args:
            data: Route, service level and parcel data; optional ``rate_table_version``
            ctx: Caller context

        Returns:
            OperationResult wrapping a Quote
        """
        return UnitOfWork(name="quote").execute(TransactionOrchestrator._quote, data)

    @staticmethod
    def _quote(data) -> Quote:
        _origin, _destination, route = RateTableProvider.resolve_route(
            data.get('origin_branch_id'), data.get('destination_branch_id')
        )
        spec = build_shipment_spec(data, route)
        table = RateTableProvider.snapshot_for(route, spec.service_level, data.get('rate_table_version'))
        return calculate_quote(spec, table)

    @staticmethod
    def compare_service_levels(data: Dict[str, Any], ctx: RequestContext) -> OperationResult:
        """
        Price one route and parcel set at every service level.

        Levels the rate table does not offer on the route are left out.

        Returns:
            OperationResult wrapping a list of per-level summaries, cheapest first
        """
        return UnitOfWork(name="compare_service_levels").execute(
            TransactionOrchestrator._compare_service_levels, data
        )

    @staticmethod
    def _compare_service_levels(data):
        _origin, _destination, route = RateTableProvider.resolve_route(
            data.get('origin_branch_id'), data.get('destination_branch_id')
        )
        comparisons = []
        for level in ServiceLevel.values:
            spec = build_shipment_spec({**data, 'service_level': level}, route)
            try:
                table = RateTableProvider.snapshot_for(route, level, data.get('rate_table_version'))
                quote = calculate_quote(spec, table)
            except QuoteException as exc:
                if exc.reason == QuoteException.NEGATIVE_OR_ZERO_WEIGHT:
                    raise
                logger.debug(f"Service level {level} not offered on {route}: {exc.reason}")
                continue
            comparisons.append({
                'service_level': level,
                'subtotal': str(quote.subtotal),
                'tax': str(quote.tax),
                'total': str(quote.total),
                'currency': quote.currency,
                'billable_weight': str(quote.billable_weight),
                'rate_table_version': quote.rate_table_version,
            })
        return sorted(comparisons, key=lambda c: Decimal(c['total']))

    @classmethod
    def create_shipment(cls, data: Dict[str, Any], ctx: RequestContext) -> OperationResult:
        """
        Create a shipment exactly once per idempotency key.

        Args:
            data: Shipment creation request
            ctx: Caller context

        Returns:
            OperationResult wrapping the Shipment (``replayed`` when it already existed)
        """
        operation = OperationType.CREATE_SHIPMENT
        key = data.get('idempotency_key')
        if not key:
            return OperationResult.failure(
                ValidationException("Idempotency key is required", {'idempotency_key': 'required'})
            )

        _stage(operation, key, Stage.RECEIVED)
        replay = cls._replay(operation, key)
        if replay is not None:
            return replay

        result = UnitOfWork(name=operation).execute(cls._create_shipment, data, ctx, key)
        return cls._settle(operation, key, result)

    @staticmethod
    def _create_shipment(data, ctx, key) -> Shipment:
        operation = OperationType.CREATE_SHIPMENT

        _stage(operation, key, Stage.QUOTING)
        origin, destination, route = RateTableProvider.resolve_route(
            data.get('origin_branch_id'), data.get('destination_branch_id')
        )
        spec = build_shipment_spec(data, route)
        table = RateTableProvider.snapshot_for(route, spec.service_level, data.get('rate_table_version'))
        quote = calculate_quote(spec, table)

        quoted_total = _decimal(data.get('quoted_total'))
        if quoted_total is not None and money(quoted_total) != quote.total:
            raise ConflictException(
                "Quoted total no longer matches the current price",
                "QUOTE_MISMATCH",
                {'quoted_total': str(money(quoted_total)), 'current_total': str(quote.total),
                 'rate_table_version': quote.rate_table_version}
            )

        override = None
        discount_amount = ZERO
        price_amount = quote.total
        if data.get('override_id'):
            override, discount_amount, price_amount = TransactionOrchestrator._apply_price_override(
                data['override_id'], quote, ctx
            )

        _stage(operation, key, Stage.PERSISTING)
        shipment = Shipment.objects.create(
            idempotency_key=key,
            origin_branch=origin,
            destination_branch=destination,
            service_level=spec.service_level,
            parcel_count=len(spec.parcels),
            weight=quote.actual_weight,
            billable_weight=quote.billable_weight,
            declared_value=sum((p.declared_value for p in spec.parcels), ZERO),
            cod_amount=sum((p.cod_amount for p in spec.parcels), ZERO),
            insurance_type=spec.insurance_type,
            payer_type=data.get('payer_type') or 'sender',
            receiver_name=data.get('receiver_name', ''),
            receiver_phone=data.get('receiver_phone', ''),
            delivery_address=data.get('delivery_address', ''),
            description=data.get('description', ''),
            base_freight=quote.base_freight,
            weight_charge=quote.weight_charge,
            fuel_surcharge=quote.fuel_surcharge,
            surcharges_total=quote.surcharges_total,
            insurance_fee=quote.insurance_fee,
            cod_fee=quote.cod_fee,
            discount_amount=discount_amount,
            tax_amount=quote.tax,
            price_amount=price_amount,
            currency=quote.currency,
            rate_table_version=quote.rate_table_version,
            created_by_id=ctx.user_id,
            metadata={
                'idempotency_key': key,
                'quote': quote.to_dict(),
                'override_id': str(override.id) if override else None,
            },
        )
        IdempotencyLedger.record(operation, key, shipment)

        if override is not None:
            SupervisorOverride.objects.filter(pk=override.pk).update(shipment=shipment)

        _stage(operation, key, Stage.AUDITING)
        get_audit_sink().record(
            AuditAction.SHIPMENT_CREATED, shipment, ctx.user_id,
            {'new_values': {'status': shipment.status, 'price_amount': price_amount,
                            'tracking_number': shipment.tracking_number},
             'metadata': {'idempotency_key': key, 'rate_table_version': quote.rate_table_version,
                          'override_id': str(override.id) if override else None}},
        )

        logger.info(
            f"Shipment {shipment.tracking_number} created at {price_amount} {quote.currency} "
            f"by user {ctx.user_id}"
        )
        return shipment

    @staticmethod
    def _apply_price_override(override_id, quote: Quote, ctx: RequestContext):
        """Consume an approved discount/price override and return the adjusted price."""
        action_type = SupervisorOverride.objects.filter(pk=override_id).values_list(
            'action_type', flat=True
        ).first()
        if action_type is None:
            raise NotFoundException("SupervisorOverride", override_id)
        if action_type not in PRICE_ADJUSTMENT_ACTIONS:
            raise ValidationException(
                f"Override of type '{action_type}' cannot adjust a shipment price",
                {'override_id': str(override_id)}
            )

        override = OverrideService.require_approval(action_type, ctx, override_id=override_id)
        terms = {**override.request_data, **override.approved_data}

        if action_type == OverrideActionType.PRICE_OVERRIDE:
            price_amount = _decimal(terms.get('price_amount'))
            if price_amount is None:
                raise ValidationException("Price override has no approved price", {'price_amount': 'required'})
            price_amount = money(price_amount)
            discount_amount = max(quote.total - price_amount, ZERO)
        else:
            percent = _decimal(terms.get('discount_percent'))
            if percent is not None:
                discount_amount = money(quote.total * percent / Decimal('100'))
            else:
                discount_amount = money(_decimal(terms.get('discount_amount'), ZERO))
            price_amount = quote.total - discount_amount

        if price_amount < 0 or discount_amount < 0:
            raise ValidationException(
                "Approved adjustment would make the price negative",
                {'price_amount': str(price_amount), 'discount_amount': str(discount_amount)}
            )
        return override, discount_amount, price_amount

    @classmethod
    def process_payment(cls, data: Dict[str, Any], ctx: RequestContext) -> OperationResult:
        """
        Record a payment against a shipment exactly once per idempotency key.

        The posting service is called after commit. A posting failure leaves
        the payment in PENDING_RECONCILIATION.

        Returns:
            OperationResult wrapping the PaymentTransaction
        """
        operation = OperationType.PROCESS_PAYMENT
        key = data.get('idempotency_key')
        if not key:
            return OperationResult.failure(
                ValidationException("Idempotency key is required", {'idempotency_key': 'required'})
            )

        _stage(operation, key, Stage.RECEIVED)
        replay = cls._replay(operation, key)
        if replay is not None:
            return replay

        result = cls._settle(operation, key, UnitOfWork(name=operation).execute(
            cls._process_payment, data, ctx, key
        ))
        if result.ok and not result.replayed:
            cls._post(result.value, ctx)
        return result

    @staticmethod
    def _process_payment(data, ctx, key) -> PaymentTransaction:
        operation = OperationType.PROCESS_PAYMENT

        shipment = Shipment.objects.select_for_update().filter(pk=data.get('shipment_id')).first()
        if shipment is None:
            raise NotFoundException("Shipment", data.get('shipment_id'))

        winner = TransactionOrchestrator._committed(operation, key)
        if winner is not None:
            return winner

        if shipment.is_cancelled:
            raise ConflictException(
                f"Shipment {shipment.tracking_number} is cancelled",
                "SHIPMENT_CANCELLED",
                {'shipment_id': str(shipment.id)}
            )

        amount = _decimal(data.get('amount'))
        if amount is None or amount <= 0:
            raise ValidationException("Payment amount must be greater than 0", {'amount': str(amount)})
        amount = money(amount)
        if amount > shipment.outstanding_amount:
            raise ValidationException(
                "Payment amount exceeds the outstanding balance",
                {'amount': str(amount), 'outstanding': str(shipment.outstanding_amount)}
            )

        currency = data.get('currency') or shipment.currency
        if currency != shipment.currency:
            raise ValidationException(
                f"Payment currency {currency} does not match shipment currency {shipment.currency}",
                {'currency': currency}
            )

        _stage(operation, key, Stage.PERSISTING)
        payment = PaymentTransaction.objects.create(
            shipment=shipment,
            idempotency_key=key,
            transaction_type=TransactionType.PAYMENT,
            amount=amount,
            currency=currency,
            method=data.get('method') or 'cash',
            payer_type=data.get('payer_type') or shipment.payer_type,
            external_reference=data.get('external_reference', ''),
            created_by_id=ctx.user_id,
            completed_at=timezone.now(),
            metadata={'idempotency_key': key},
        )

        old_status = shipment.payment_status
        shipment.amount_paid += amount
        shipment.recalculate_payment_status()
        shipment.save(update_fields=['amount_paid', 'payment_status', 'updated_at'])
        IdempotencyLedger.record(operation, key, payment)

        _stage(operation, key, Stage.AUDITING)
        get_audit_sink().record(
            AuditAction.PAYMENT_RECEIVED, payment, ctx.user_id,
            {'old_values': {'payment_status': old_status},
             'new_values': {'payment_status': shipment.payment_status, 'amount': amount,
                            'amount_paid': shipment.amount_paid},
             'metadata': {'shipment_id': str(shipment.id), 'method': payment.method}},
        )

        logger.info(f"Payment {payment.id} of {amount} {currency} taken for {shipment.tracking_number}")
        return payment

    @classmethod
    def refund_payment(cls, payment_id, data: Dict[str, Any], ctx: RequestContext) -> OperationResult:
        """
        Refund (part of) a payment exactly once per idempotency key.

        Non-admin callers need an approved ``refund`` override for the shipment.

        Returns:
            OperationResult wrapping the REFUND PaymentTransaction
        """
        operation = OperationType.REFUND_PAYMENT
        key = data.get('idempotency_key')
        if not key:
            return OperationResult.failure(
                ValidationException("Idempotency key is required", {'idempotency_key': 'required'})
            )

        _stage(operation, key, Stage.RECEIVED)
        replay = cls._replay(operation, key)
        if replay is not None:
            return replay

        result = cls._settle(operation, key, UnitOfWork(name=operation).execute(
            cls._refund_payment, payment_id, data, ctx, key
        ))
        if result.ok and not result.replayed:
            cls._post(result.value, ctx)
        return result

    @staticmethod
    def _refund_payment(payment_id, data, ctx, key) -> PaymentTransaction:
        operation = OperationType.REFUND_PAYMENT

        payment = PaymentTransaction.objects.filter(
            pk=payment_id, transaction_type=TransactionType.PAYMENT
        ).first()
        if payment is None:
            raise NotFoundException("PaymentTransaction", payment_id)
        shipment = Shipment.objects.select_for_update().get(pk=payment.shipment_id)

        winner = TransactionOrchestrator._committed(operation, key)
        if winner is not None:
            return winner

        override = OverrideService.require_approval(
            OverrideActionType.REFUND, ctx, shipment=shipment,
            override_id=data.get('override_id'), bypass_roles=('admin',)
        )

        refunded = payment.refunds.aggregate(total=Sum('amount'))['total'] or ZERO
        refundable = payment.amount - refunded
        amount = money(_decimal(data.get('amount'), refundable))
        if amount <= 0 or amount > refundable:
            raise ValidationException(
                "Refund amount must be greater than 0 and at most the refundable amount",
                {'amount': str(amount), 'refundable': str(refundable)}
            )

        _stage(operation, key, Stage.PERSISTING)
        refund = PaymentTransaction.objects.create(
            shipment=shipment,
            idempotency_key=key,
            transaction_type=TransactionType.REFUND,
            refund_of=payment,
            amount=amount,
            currency=payment.currency,
            method=data.get('method') or payment.method,
            payer_type=payment.payer_type,
            external_reference=data.get('external_reference', ''),
            created_by_id=ctx.user_id,
            completed_at=timezone.now(),
            metadata={
                'idempotency_key': key,
                'reason': data.get('reason', ''),
                'override_id': str(override.id) if override else None,
            },
        )

        old_status = shipment.payment_status
        shipment.amount_paid -= amount
        shipment.recalculate_payment_status()
        shipment.save(update_fields=['amount_paid', 'payment_status', 'updated_at'])
        IdempotencyLedger.record(operation, key, refund)

        _stage(operation, key, Stage.AUDITING)
        get_audit_sink().record(
            AuditAction.PAYMENT_REFUNDED, refund, ctx.user_id,
            {'old_values': {'payment_status': old_status},
             'new_values': {'payment_status': shipment.payment_status, 'amount': amount,
                            'amount_paid': shipment.amount_paid},
             'metadata': {'shipment_id': str(shipment.id), 'refund_of': str(payment.id),
                          'override_id': str(override.id) if override else None}},
            notes=data.get('reason', ''),
        )

        logger.info(f"Refund {refund.id} of {amount} issued against payment {payment.id}")
        return refund

    @staticmethod
    def _replay(operation: str, key: str) -> Optional[OperationResult]:
        hit = IdempotencyLedger.check_or_reserve(operation, key)
        if hit == RESERVED:
            return None
        _stage(operation, key, Stage.REPLAY)
        return OperationResult.success(IdempotencyLedger.resolve(hit), replayed=True)

    @staticmethod
    def _committed(operation: str, key: str) -> Optional[Replayed]:
        """
        Re-read the ledger once the shipment lock is held.

        A request that passed the pre-check may have queued behind the one
        that committed the key.
        """
        hit = IdempotencyLedger.lookup(operation, key)
        if hit is None:
            return None
        return Replayed(IdempotencyLedger.resolve(hit))

    @staticmethod
    def _settle(operation: str, key: str, result: OperationResult) -> OperationResult:
        """
        Finish a unit of work.

        A unique-constraint violation means a concurrent request committed
        the same key first; its result is replayed.
        """
        if result.ok and isinstance(result.value, Replayed):
            _stage(operation, key, Stage.REPLAY)
            return OperationResult.success(result.value.entity, replayed=True)
        if result.ok:
            _stage(operation, key, Stage.COMMITTED)
            return result

        error = result.error
        if not (isinstance(error, PersistenceException) and error.integrity_violation):
            return result

        hit = IdempotencyLedger.lookup(operation, key)
        if hit is None:
            logger.warning(f"{operation} [{key}] lost a write race but the winner is not visible yet")
            return OperationResult.failure(PersistenceException(
                "A request with this idempotency key is still being processed",
                "IDEMPOTENCY_IN_FLIGHT",
                {'operation_type': operation, 'idempotency_key': key}
            ))

        _stage(operation, key, Stage.REPLAY)
        return OperationResult.success(IdempotencyLedger.resolve(hit), replayed=True)

    @staticmethod
    def _post(payment: PaymentTransaction, ctx: RequestContext) -> None:
        """Hand a committed transaction to the posting service."""
        try:
            posting = get_posting_adapter().post_payment(payment)
        except PostingError as exc:
            logger.warning(f"Posting failed for {payment.id}, left for reconciliation: {exc}")
            TransactionOrchestrator._leave_for_reconciliation(payment, ctx, exc)
            return
        except Exception as exc:
            logger.exception(f"Posting service error for {payment.id}, left for reconciliation")
            TransactionOrchestrator._leave_for_reconciliation(payment, ctx, exc)
            return

        PaymentTransaction.objects.filter(pk=payment.pk).update(
            posting_status=PostingStatus.POSTED,
            posting_reference=posting.reference,
        )
        payment.posting_status = PostingStatus.POSTED
        payment.posting_reference = posting.reference
        logger.info(f"Payment {payment.id} posted as {posting.reference}")

    @staticmethod
    def _leave_for_reconciliation(payment: PaymentTransaction, ctx: RequestContext, exc: Exception) -> None:
        UnitOfWork(name="posting_failed").execute(
            get_audit_sink().record,
            AuditAction.POSTING_FAILED, payment, ctx.user_id,
            {'metadata': {'error': f"{exc.__class__.__name__}: {exc}", 'shipment_id': str(payment.shipment_id)}},
        )
