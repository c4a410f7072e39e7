from django.contrib import admin
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin, TabularInline
from unfold.contrib.filters.admin import RangeDateTimeFilter, RangeNumericFilter
from unfold.decorators import display

from .models import (
    BOM, BOMMaterial, FinishedProduct, Inventory, InventoryTransaction,
    Production, ProductionIssue, ProductionMaterial, ProductionStaff,
    QualityCheck, RawMaterial,
)


STATUS_COLORS = {
    'active': 'success',
    'approved': 'success',
    'draft': 'info',
    'planned': 'info',
    'in-progress': 'warning',
    'completed': 'warning',
    'quality-check': 'warning',
    'inactive': 'danger',
    'discontinued': 'danger',
    'archived': 'danger',
    'rejected': 'danger',
}


class StatusBadgeMixin:

    @display(description=_("Status"), label=True)
    def status_badge(self, obj):
        return STATUS_COLORS.get(obj.status, 'info'), obj.get_status_display()


@admin.register(RawMaterial)
class RawMaterialAdmin(StatusBadgeMixin, ModelAdmin):
    list_display = ['code', 'name', 'brand', 'category', 'stock_display', 'cost_per_unit', 'status_badge']
    list_filter = [
        'brand',
        'status',
        'unit',
        ('stock_current', RangeNumericFilter),
    ]
    search_fields = ['code', 'name', 'category', 'supplier_name']
    list_filter_submit = True
    list_fullwidth = True
    readonly_fields = ['uuid', 'price_updated_at', 'created_at', 'updated_at']

    fieldsets = (
        (_('Material'), {
            'fields': ('code', 'name', 'brand', 'description', 'category', 'unit', 'status', 'location'),
        }),
        (_('Stock'), {
            'fields': ('stock_current', 'stock_minimum', 'stock_maximum'),
            'classes': ['tab'],
        }),
        (_('Pricing'), {
            'fields': ('cost_per_unit', 'currency', 'price_updated_at'),
            'classes': ['tab'],
        }),
        (_('Supplier'), {
            'fields': ('supplier_name', 'supplier_email', 'supplier_phone', 'supplier_lead_time'),
            'classes': ['tab'],
        }),
    )

    @display(description=_("Stock"), ordering='stock_current')
    def stock_display(self, obj):
        suffix = ' (reorder)' if obj.needs_reorder else ''
        return f"{obj.stock_current:.2f} {obj.unit}{suffix}"


@admin.register(FinishedProduct)
class FinishedProductAdmin(StatusBadgeMixin, ModelAdmin):
    list_display = ['code', 'name', 'brand', 'packaging_type', 'total_pieces', 'selling_price', 'status_badge']
    list_filter = ['brand', 'status', 'packaging_type']
    search_fields = ['code', 'name', 'category']
    list_filter_submit = True
    readonly_fields = ['uuid', 'created_at', 'updated_at']

    @display(description=_("Total Pieces"))
    def total_pieces(self, obj):
        return obj.total_pieces


class BOMMaterialInline(TabularInline):
    model = BOMMaterial
    extra = 0
    fields = ('material', 'quantity', 'unit', 'wastage_percent', 'sort_order')


@admin.register(BOM)
class BOMAdmin(StatusBadgeMixin, ModelAdmin):
    list_display = ['id', 'product', 'brand', 'version', 'status_badge', 'batch_quantity', 'material_cost', 'created_at']
    list_filter = [
        'brand',
        'status',
        ('created_at', RangeDateTimeFilter),
    ]
    search_fields = ['product__code', 'product__name', 'version']
    list_filter_submit = True
    inlines = [BOMMaterialInline]
    readonly_fields = ['uuid', 'material_cost', 'approvals', 'parent_bom', 'created_at', 'updated_at']


class ProductionMaterialInline(TabularInline):
    model = ProductionMaterial
    extra = 0
    fields = ('material', 'quantity_used', 'unit', 'wastage', 'cost')


class ProductionStaffInline(TabularInline):
    model = ProductionStaff
    extra = 0
    fields = ('role', 'name', 'hours')


class QualityCheckInline(TabularInline):
    model = QualityCheck
    extra = 0
    fields = ('parameter', 'expected', 'actual', 'status', 'checked_by')


class ProductionIssueInline(TabularInline):
    model = ProductionIssue
    extra = 0
    fields = ('type', 'severity', 'status', 'description', 'resolved_by')


@admin.register(Production)
class ProductionAdmin(StatusBadgeMixin, ModelAdmin):
    list_display = ['batch_number', 'product', 'brand', 'status_badge', 'quantity_planned',
                    'quantity_produced', 'start_date', 'posted_to_inventory_at']
    list_filter = [
        'brand',
        'status',
        ('start_date', RangeDateTimeFilter),
    ]
    search_fields = ['batch_number', 'product__code', 'product__name']
    list_filter_submit = True
    list_fullwidth = True
    inlines = [ProductionMaterialInline, ProductionStaffInline, QualityCheckInline, ProductionIssueInline]
    readonly_fields = ['uuid', 'batch_number', 'materials_cost', 'labor_cost',
                       'actual_start', 'actual_end', 'posted_to_inventory_at', 'created_at', 'updated_at']


class InventoryTransactionInline(TabularInline):
    model = InventoryTransaction
    fk_name = 'inventory'
    extra = 0
    can_delete = False
    fields = ('timestamp', 'type', 'quantity', 'quantity_before', 'quantity_after',
              'reference_type', 'reference_number', 'cost_total')
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Inventory)
class InventoryAdmin(ModelAdmin):
    """Ledger heads are read-only here; balances only move through transactions."""
    list_display = ['id', 'item_type', 'item_id', 'brand', 'current_stock', 'unit', 'average_cost', 'total_value']
    list_filter = ['brand', 'item_type']
    search_fields = ['item_id']
    list_filter_submit = True
    inlines = [InventoryTransactionInline]
    readonly_fields = ['uuid', 'item_type', 'item_id', 'brand', 'current_stock', 'unit', 'batches',
                       'average_cost', 'total_value', 'currency', 'value_updated_at', 'created_at', 'updated_at']

    def has_add_permission(self, request):
        return False
