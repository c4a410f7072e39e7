"""
Stock Services - manufacturing catalog, BOM, production and inventory business logic

Usage:
    from stock.services import BOMService, InventoryService

    # Material requirements for 500 units
    needed = BOMService.requirements(bom, Decimal("500"))

    # Book stock in
    InventoryService.append_transaction(ledger, type="in", quantity=Decimal("100"), ...)
"""

# Base utilities
from stock.services.base_service import (
    ServiceError,
    ValidationError,
    AuthenticationError,
    PermissionDeniedError,
    NotFoundError,
    BusinessRuleError,
    InsufficientStockError,
    success_response,
    paginate_queryset,
    to_decimal,
    require_decimal,
    round_decimal,
    generate_batch_number,
    BaseService,
)

# Catalog
from .material_service import RawMaterialService
from .product_service import FinishedProductService

# Manufacturing
from .bom_service import BOMService
from .inventory_service import InventoryService
from .production_service import ProductionService


__all__ = [
    'ServiceError',
    'ValidationError',
    'AuthenticationError',
    'PermissionDeniedError',
    'NotFoundError',
    'BusinessRuleError',
    'InsufficientStockError',
    'success_response',
    'paginate_queryset',
    'to_decimal',
    'require_decimal',
    'round_decimal',
    'generate_batch_number',
    'BaseService',

    'RawMaterialService',
    'FinishedProductService',

    'BOMService',
    'InventoryService',
    'ProductionService',
]
