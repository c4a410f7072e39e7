import logging
from typing import Dict, Any

from django.db import transaction
from django.db.models import F, Q, ProtectedError
from django.utils import timezone

from stock.models import RawMaterial
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    NotFoundError, BusinessRuleError, money, iso,
)

logger = logging.getLogger(__name__)


class RawMaterialService(BaseService):
    model = RawMaterial
    resource_name = "Raw material"

    @classmethod
    def serialize(cls, material: RawMaterial) -> Dict[str, Any]:
        return {
            "id": material.id,
            "uuid": str(material.uuid),
            "code": material.code,
            "name": material.name,
            "brand_id": material.brand_id,
            "description": material.description,
            "category": material.category,
            "unit": material.unit,
            "stock": {
                "current": str(material.stock_current),
                "minimum": str(material.stock_minimum),
                "maximum": str(material.stock_maximum),
            },
            "pricing": {
                "cost_per_unit": str(material.cost_per_unit),
                "currency": material.currency,
                "last_updated": iso(material.price_updated_at),
            },
            "supplier": {
                "name": material.supplier_name,
                "email": material.supplier_email,
                "phone": material.supplier_phone,
                "lead_time": material.supplier_lead_time,
            },
            "status": material.status,
            "location": material.location,
            "notes": material.notes,
            "metadata": material.metadata,
            "total_value": money(material.total_value),
            "needs_reorder": material.needs_reorder,
            "created_at": iso(material.created_at),
            "updated_at": iso(material.updated_at),
        }

    @classmethod
    def serialize_brief(cls, material: RawMaterial) -> Dict[str, Any]:
        return {
            "id": material.id,
            "code": material.code,
            "name": material.name,
            "unit": material.unit,
            "stock_current": str(material.stock_current),
            "cost_per_unit": str(material.cost_per_unit),
            "status": material.status,
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

        materials, pagination = paginate_queryset(queryset.order_by("code"), page, per_page)

        return success_response({
            "raw_materials": [cls.serialize(m) for m in materials],
            "pagination": pagination,
        })

    @classmethod
    def get(cls, material_id: int) -> Dict[str, Any]:
        return success_response({"raw_material": cls.serialize(cls.get_or_404(material_id))})

    @classmethod
    def get_low_stock(cls, brand_id: int = None) -> Dict[str, Any]:
        queryset = cls.model.objects.filter(
            status=RawMaterial.Status.ACTIVE,
            stock_current__lte=F("stock_minimum"),
        )
        if brand_id:
            queryset = queryset.filter(brand_id=brand_id)

        materials = list(queryset.order_by("code"))
        return success_response({
            "raw_materials": [cls.serialize(m) for m in materials],
            "count": len(materials),
        })

    @classmethod
    @transaction.atomic
    def create(cls, **data) -> Dict[str, Any]:
        material = cls.model(**data)
        material.price_updated_at = timezone.now()
        material.save()

        logger.info("Raw material %s created for brand %s", material.code, material.brand_id)

        return success_response({
            "raw_material": cls.serialize(material)
        }, "Raw material created")

    @classmethod
    @transaction.atomic
    def update(cls, material_id: int, **data) -> Dict[str, Any]:
        material = cls.get_or_404(material_id)

        if "cost_per_unit" in data and data["cost_per_unit"] != material.cost_per_unit:
            material.price_updated_at = timezone.now()

        for field, value in data.items():
            setattr(material, field, value)
        material.save()

        return success_response({
            "raw_material": cls.serialize(material)
        }, "Raw material updated")

    @classmethod
    @transaction.atomic
    def delete(cls, material_id: int) -> Dict[str, Any]:
        material = cls.get_or_404(material_id)

        try:
            material.delete()
        except ProtectedError:
            raise BusinessRuleError(
                f"Raw material {material.code} is referenced by production records",
                "material_in_use",
            )

        logger.info("Raw material %s deleted", material.code)
        return success_response(message="Raw material deleted")

    @classmethod
    def lookup(cls, material_ids) -> Dict[int, RawMaterial]:
        return cls.model.objects.in_bulk(list(material_ids))

    @classmethod
    def require(cls, material_id: int) -> RawMaterial:
        try:
            return cls.model.objects.get(id=material_id)
        except cls.model.DoesNotExist:
            raise NotFoundError(cls.resource_name, material_id)
