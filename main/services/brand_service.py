import logging

from django.db import transaction
from django.db.models import Count, ProtectedError, Q

from main.models import Brand
from stock.services.base_service import (
    BaseService, BusinessRuleError, paginate_queryset, success_response, iso,
)

logger = logging.getLogger(__name__)


class BrandService(BaseService):
    model = Brand
    resource_name = "Brand"

    @classmethod
    def serialize(cls, brand: Brand) -> dict:
        return {
            "id": brand.id,
            "uuid": str(brand.uuid),
            "name": brand.name,
            "code": brand.code,
            "description": brand.description,
            "status": brand.status,
            "logo": brand.logo,
            "contact_person": {
                "name": brand.contact_name,
                "email": brand.contact_email,
                "phone": brand.contact_phone,
            },
            "address": brand.address,
            "metadata": brand.metadata,
            "created_at": iso(brand.created_at),
            "updated_at": iso(brand.updated_at),
        }

    @classmethod
    def summary(cls, brand: Brand) -> dict:
        return {
            "id": brand.id,
            "name": brand.name,
            "code": brand.code,
            "status": brand.status,
            "raw_materials": brand.raw_materials.count(),
            "finished_products": brand.finished_products.count(),
        }

    @classmethod
    def list(cls, page: int = 1, per_page: int = 20, search: str = None, status: str = None) -> dict:
        queryset = cls.model.objects.all()

        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(code__icontains=search))

        if status:
            queryset = queryset.filter(status=status)

        brands, pagination = paginate_queryset(queryset.order_by("name"), page, per_page)

        return success_response({
            "brands": [cls.serialize(b) for b in brands],
            "pagination": pagination,
        })

    @classmethod
    def get_active(cls):
        return cls.model.objects.filter(status=Brand.Status.ACTIVE).order_by("name")

    @classmethod
    def list_active(cls) -> dict:
        brands = cls.get_active().annotate(
            raw_material_count=Count("raw_materials", distinct=True),
            product_count=Count("finished_products", distinct=True),
        )
        return success_response({
            "brands": [
                {
                    "id": b.id,
                    "name": b.name,
                    "code": b.code,
                    "status": b.status,
                    "raw_materials": b.raw_material_count,
                    "finished_products": b.product_count,
                }
                for b in brands
            ],
            "count": len(brands),
        })

    @classmethod
    def get(cls, brand_id: int) -> dict:
        brand = cls.get_or_404(brand_id)
        return success_response({"brand": cls.serialize(brand), "summary": cls.summary(brand)})

    @classmethod
    @transaction.atomic
    def create(cls, **data) -> dict:
        brand = cls.model.objects.create(**data)
        logger.info("Brand %s (%s) created", brand.name, brand.code)
        return success_response({"brand": cls.serialize(brand)}, "Brand created")

    @classmethod
    @transaction.atomic
    def update(cls, brand_id: int, **data) -> dict:
        brand = cls.get_or_404(brand_id)

        for field, value in data.items():
            setattr(brand, field, value)
        brand.save()

        return success_response({"brand": cls.serialize(brand)}, "Brand updated")

    @classmethod
    @transaction.atomic
    def delete(cls, brand_id: int) -> dict:
        brand = cls.get_or_404(brand_id)

        try:
            brand.delete()
        except ProtectedError as e:
            dependents = sorted({str(obj._meta.verbose_name_plural) for obj in e.protected_objects})
            raise BusinessRuleError(
                f"Brand {brand.code} still has {', '.join(dependents)}",
                "brand_has_dependents",
            )

        logger.info("Brand %s deleted", brand.code)
        return success_response(message="Brand deleted")
