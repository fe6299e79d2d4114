"""
Django admin configuration for the POS transaction core.
"""

from django.contrib import admin
from .models import (
    Branch, RateTableVersion, RateTableStatus, ServiceRate, SurchargeRule,
    Shipment, PaymentTransaction, IdempotencyRecord, SupervisorOverride, AuditLog
)


class ServiceRateInline(admin.TabularInline):
    model = ServiceRate
    extra = 0


class SurchargeRuleInline(admin.TabularInline):
    model = SurchargeRule
    extra = 0


@admin.register(Branch)
class BranchAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['code', 'name']
    readonly_fields = ['id', 'created_at']


@admin.register(RateTableVersion)
class RateTableVersionAdmin(admin.ModelAdmin):
    list_display = ['version', 'currency', 'status', 'effective_from', 'published_at']
    list_filter = ['status', 'currency']
    search_fields = ['version', 'notes']
    readonly_fields = ['id', 'status', 'published_at', 'created_at']
    inlines = [ServiceRateInline, SurchargeRuleInline]
    actions = ['publish_versions']

    def has_change_permission(self, request, obj=None):
        if obj is not None and obj.status == RateTableStatus.PUBLISHED:
            return False
        return super().has_change_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        if obj is not None and obj.status == RateTableStatus.PUBLISHED:
            return False
        return super().has_delete_permission(request, obj)

    @admin.action(description="Publish selected draft versions")
    def publish_versions(self, request, queryset):
        drafts = list(queryset.filter(status=RateTableStatus.DRAFT))
        for version in drafts:
            version.publish()
        published = len(drafts)
        self.message_user(request, f"{published} rate table version(s) published")


@admin.register(Shipment)
class ShipmentAdmin(admin.ModelAdmin):
    list_display = ['tracking_number', 'origin_branch', 'destination_branch', 'service_level',
                    'price_amount', 'status', 'payment_status', 'created_at']
    list_filter = ['status', 'payment_status', 'service_level', 'created_at']
    search_fields = ['tracking_number', 'idempotency_key', 'receiver_name']
    readonly_fields = [f.name for f in Shipment._meta.fields]

    def has_add_permission(self, request):
        return False


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = ['id', 'shipment', 'transaction_type', 'amount', 'currency', 'method',
                    'posting_status', 'created_at']
    list_filter = ['transaction_type', 'method', 'posting_status', 'created_at']
    search_fields = ['idempotency_key', 'shipment__tracking_number', 'external_reference']
    readonly_fields = [f.name for f in PaymentTransaction._meta.fields]

    def has_add_permission(self, request):
        return False


@admin.register(IdempotencyRecord)
class IdempotencyRecordAdmin(admin.ModelAdmin):
    list_display = ['operation_type', 'idempotency_key', 'result_type', 'result_reference', 'created_at']
    list_filter = ['operation_type']
    search_fields = ['idempotency_key', 'result_reference']
    readonly_fields = ['id', 'operation_type', 'idempotency_key', 'result_type', 'result_reference', 'created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(SupervisorOverride)
class SupervisorOverrideAdmin(admin.ModelAdmin):
    list_display = ['id', 'action_type', 'shipment', 'requested_by', 'status', 'expires_at',
                    'approved_by', 'consumed_at']
    list_filter = ['status', 'action_type', 'created_at']
    search_fields = ['reason', 'requested_by__username', 'shipment__tracking_number']
    readonly_fields = [f.name for f in SupervisorOverride._meta.fields]

    def has_add_permission(self, request):
        return False


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['entity_type', 'entity_id', 'action', 'user', 'timestamp']
    list_filter = ['entity_type', 'action', 'timestamp']
    search_fields = ['entity_id', 'notes']
    readonly_fields = ['id', 'entity_type', 'entity_id', 'action', 'user', 'old_values',
                       'new_values', 'timestamp', 'notes', 'metadata']
    date_hierarchy = 'timestamp'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
