from django.urls import path
from . import views

app_name = "stock"

urlpatterns = [
    path("raw-materials", views.RawMaterialListView.as_view(), name="raw-material-list"),
    path("raw-materials/low-stock", views.RawMaterialLowStockView.as_view(), name="raw-material-low-stock"),
    path("raw-materials/<int:material_id>", views.RawMaterialDetailView.as_view(), name="raw-material-detail"),

    path("finished-products", views.FinishedProductListView.as_view(), name="finished-product-list"),
    path("finished-products/low-stock", views.FinishedProductLowStockView.as_view(), name="finished-product-low-stock"),
    path("finished-products/<int:product_id>", views.FinishedProductDetailView.as_view(), name="finished-product-detail"),

    path("boms", views.BOMListView.as_view(), name="bom-list"),
    path("boms/<int:bom_id>", views.BOMDetailView.as_view(), name="bom-detail"),
    path("boms/<int:bom_id>/materials", views.BOMMaterialsView.as_view(), name="bom-materials"),
    path("boms/<int:bom_id>/requirements", views.BOMRequirementsView.as_view(), name="bom-requirements"),
    path("boms/<int:bom_id>/availability", views.BOMAvailabilityView.as_view(), name="bom-availability"),
    path("boms/<int:bom_id>/<slug:action>", views.BOMActionView.as_view(), name="bom-action"),
    path("bom-materials/<int:line_id>", views.BOMMaterialDetailView.as_view(), name="bom-material-detail"),

    path("productions", views.ProductionListView.as_view(), name="production-list"),
    path("productions/summary", views.ProductionSummaryView.as_view(), name="production-summary"),
    path("productions/<int:production_id>", views.ProductionDetailView.as_view(), name="production-detail"),
    path("productions/<int:production_id>/status", views.ProductionStatusView.as_view(), name="production-status"),
    path("productions/<int:production_id>/materials", views.ProductionMaterialsView.as_view(), name="production-materials"),
    path("productions/<int:production_id>/staff", views.ProductionStaffView.as_view(), name="production-staff"),
    path("productions/<int:production_id>/quality-checks", views.ProductionQualityCheckView.as_view(), name="production-quality-checks"),
    path("productions/<int:production_id>/issues", views.ProductionIssueView.as_view(), name="production-issues"),
    path("productions/<int:production_id>/notes", views.ProductionNoteView.as_view(), name="production-notes"),
    path("productions/<int:production_id>/validation", views.ProductionValidationView.as_view(), name="production-validation"),
    path("productions/<int:production_id>/post-inventory", views.ProductionPostInventoryView.as_view(), name="production-post-inventory"),
    path("production-materials/<int:line_id>", views.ProductionMaterialDetailView.as_view(), name="production-material-detail"),
    path("production-staff/<int:staff_id>", views.ProductionStaffDetailView.as_view(), name="production-staff-detail"),
    path("production-issues/<int:issue_id>/resolve", views.ProductionIssueResolveView.as_view(), name="production-issue-resolve"),

    path("inventory", views.InventoryListView.as_view(), name="inventory-list"),
    path("inventory/low-stock", views.InventoryLowStockView.as_view(), name="inventory-low-stock"),
    path("inventory/value", views.InventoryValueView.as_view(), name="inventory-value"),
    path("inventory/transactions", views.InventoryItemTransactionView.as_view(), name="inventory-item-transaction"),
    path("inventory/<int:inventory_id>", views.InventoryDetailView.as_view(), name="inventory-detail"),
    path("inventory/<int:inventory_id>/transactions", views.InventoryTransactionView.as_view(), name="inventory-transactions"),
]
