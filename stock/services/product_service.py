import logging
from typing import Dict, Any

from django.db import transaction
from django.db.models import Q, ProtectedError

from stock.models import FinishedProduct
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    BusinessRuleError, money, iso,
)

logger = logging.getLogger(__name__)


class FinishedProductService(BaseService):
    model = FinishedProduct
    resource_name = "Finished product"

    @classmethod
    def serialize(cls, product: FinishedProduct) -> Dict[str, Any]:
        return {
            "id": product.id,
            "uuid": str(product.uuid),
            "code": product.code,
            "name": product.name,
            "brand_id": product.brand_id,
            "description": product.description,
            "category": product.category,
            "packaging": {
                "type": product.packaging_type,
                "units_per_package": product.units_per_package,
                "weight_per_unit": {
                    "value": str(product.weight_value),
                    "unit": product.weight_unit,
                },
            },
            "inventory": {
                "in_stock": {"pieces": product.stock_pieces, "cartons": product.stock_cartons},
                "minimum": {"pieces": product.minimum_pieces, "cartons": product.minimum_cartons},
            },
            "pricing": {
                "manufacturing_cost": str(product.manufacturing_cost),
                "selling_price": str(product.selling_price),
                "currency": product.currency,
            },
            "status": product.status,
            "specifications": product.specifications,
            "metadata": product.metadata,
            "total_pieces": product.total_pieces,
            "total_value": money(product.total_value),
            "needs_production": product.needs_production,
            "created_at": iso(product.created_at),
            "updated_at": iso(product.updated_at),
        }

    @classmethod
    def serialize_brief(cls, product: FinishedProduct) -> Dict[str, Any]:
        return {
            "id": product.id,
            "code": product.code,
            "name": product.name,
            "brand_id": product.brand_id,
        }

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             brand_id: int = None,
             search: str = None,
             category: str = None,
             status: str = None) -> Dict[str, Any]:
        queryset = cls.model.objects.all()

        if brand_id:
            queryset = queryset.filter(brand_id=brand_id)

        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) | Q(code__icontains=search)
            )

        if category:
            queryset = queryset.filter(category=category)

        if status:
            queryset = queryset.filter(status=status)

        products, pagination = paginate_queryset(queryset.order_by("code"), page, per_page)

        return success_response({
            "finished_products": [cls.serialize(p) for p in products],
            "pagination": pagination,
        })

    @classmethod
    def get(cls, product_id: int) -> Dict[str, Any]:
        return success_response({"finished_product": cls.serialize(cls.get_or_404(product_id))})

    @classmethod
    def get_low_stock(cls, brand_id: int = None) -> Dict[str, Any]:
        queryset = cls.model.objects.filter(status=FinishedProduct.Status.ACTIVE)
        if brand_id:
            queryset = queryset.filter(brand_id=brand_id)

        # Carton conversion depends on units_per_package, so filter in Python.
        products = [p for p in queryset.order_by("code") if p.needs_production]
        return success_response({
            "finished_products": [cls.serialize(p) for p in products],
            "count": len(products),
        })

    @classmethod
    @transaction.atomic
    def create(cls, **data) -> Dict[str, Any]:
        product = cls.model.objects.create(**data)

        logger.info("Finished product %s created for brand %s", product.code, product.brand_id)

        return success_response({
            "finished_product": cls.serialize(product)
        }, "Finished product created")

    @classmethod
    @transaction.atomic
    def update(cls, product_id: int, **data) -> Dict[str, Any]:
        product = cls.get_or_404(product_id)

        for field, value in data.items():
            setattr(product, field, value)
        product.save()

        return success_response({
            "finished_product": cls.serialize(product)
        }, "Finished product updated")

    @classmethod
    @transaction.atomic
    def delete(cls, product_id: int) -> Dict[str, Any]:
        product = cls.get_or_404(product_id)

        try:
            product.delete()
        except ProtectedError:
            raise BusinessRuleError(
                f"Finished product {product.code} has BOMs or production records",
                "product_in_use",
            )

        logger.info("Finished product %s deleted", product.code)
        return success_response(message="Finished product deleted")
