import logging
from decimal import Decimal
from typing import Dict, Any, List

from django.db import IntegrityError, transaction
from django.db.models import ProtectedError
from django.utils import timezone

from stock import formulas
from stock.models import BOM, BOMMaterial
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError, BusinessRuleError,
    require_decimal, round_decimal, money, iso,
)
from stock.services.material_service import RawMaterialService

logger = logging.getLogger(__name__)


class BOMService(BaseService):
    model = BOM
    resource_name = "BOM"

    TRANSITIONS = {
        BOM.Status.DRAFT: (BOM.Status.ACTIVE, BOM.Status.ARCHIVED),
        BOM.Status.ACTIVE: (BOM.Status.ARCHIVED,),
        BOM.Status.ARCHIVED: (BOM.Status.DRAFT,),
    }

    @classmethod
    def serialize(cls, bom: BOM, include_materials: bool = True) -> Dict[str, Any]:
        data = {
            "id": bom.id,
            "uuid": str(bom.uuid),
            "product_id": bom.product_id,
            "product": {
                "id": bom.product.id,
                "code": bom.product.code,
                "name": bom.product.name,
            },
            "brand_id": bom.brand_id,
            "version": bom.version,
            "status": bom.status,
            "batch_size": {
                "quantity": str(bom.batch_quantity),
                "unit": bom.batch_unit,
            },
            "process_steps": bom.process_steps,
            "costings": {
                "material_cost": money(bom.material_cost),
                "labor_cost": money(bom.labor_cost),
                "overhead_cost": money(bom.overhead_cost),
                "currency": bom.currency,
            },
            "cost_per_unit": money(formulas.bom_cost_per_unit(
                bom.material_cost, bom.labor_cost, bom.overhead_cost, bom.batch_quantity
            )),
            "approvals": bom.approvals,
            "parent_bom_id": bom.parent_bom_id,
            "metadata": bom.metadata,
            "created_at": iso(bom.created_at),
            "updated_at": iso(bom.updated_at),
        }

        if include_materials:
            lines = list(bom.materials.all())
            materials = RawMaterialService.lookup(line.material_id for line in lines)
            data["materials"] = [cls.serialize_line(line, materials.get(line.material_id)) for line in lines]

        return data

    @classmethod
    def serialize_line(cls, line: BOMMaterial, material=None) -> Dict[str, Any]:
        return {
            "id": line.id,
            "material_id": line.material_id,
            "material": RawMaterialService.serialize_brief(material) if material else None,
            "quantity": str(line.quantity),
            "unit": line.unit,
            "wastage_percent": str(line.wastage_percent),
            "notes": line.notes,
        }

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             brand_id: int = None,
             product_id: int = None,
             status: str = None) -> Dict[str, Any]:
        queryset = cls.model.objects.select_related("product")

        if brand_id:
            queryset = queryset.filter(brand_id=brand_id)

        if product_id:
            queryset = queryset.filter(product_id=product_id)

        if status:
            queryset = queryset.filter(status=status)

        boms, pagination = paginate_queryset(queryset.order_by("-created_at"), page, per_page)

        return success_response({
            "boms": [cls.serialize(b, include_materials=False) for b in boms],
            "pagination": pagination,
        })

    @classmethod
    def get(cls, bom_id: int) -> Dict[str, Any]:
        return success_response({"bom": cls.serialize(cls.get_or_404(bom_id))})

    @classmethod
    def get_active_by_brand(cls, brand_id: int) -> Dict[str, Any]:
        boms = cls.model.objects.filter(
            brand_id=brand_id, status=BOM.Status.ACTIVE
        ).select_related("product").order_by("product__name")

        return success_response({
            "boms": [cls.serialize(b) for b in boms],
            "count": boms.count(),
        })

    # ------------------------------------------------------------------
    # Cost roll-up
    # ------------------------------------------------------------------

    @classmethod
    def recompute_material_cost(cls, bom: BOM) -> Decimal:
        """Reprice every line at the material's current cost and store the total."""
        lines = list(bom.materials.all())
        materials = RawMaterialService.lookup(line.material_id for line in lines)
        costs = {material_id: m.cost_per_unit for material_id, m in materials.items()}

        bom.material_cost = round_decimal(formulas.bom_material_cost(lines, costs))
        bom.save(update_fields=["material_cost", "updated_at"])
        return bom.material_cost

    @classmethod
    @transaction.atomic
    def recalculate(cls, bom_id: int) -> Dict[str, Any]:
        bom = cls.get_or_404(bom_id)
        cls.recompute_material_cost(bom)
        return success_response({"bom": cls.serialize(bom)}, "BOM cost recalculated")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    @classmethod
    @transaction.atomic
    def create(cls,
               product,
               brand,
               batch_quantity: Decimal,
               version: str = "1.0",
               batch_unit: str = BOM.BatchUnit.PIECES,
               materials: List[Dict] = None,
               process_steps: List[Dict] = None,
               labor_cost: Decimal = Decimal("0"),
               overhead_cost: Decimal = Decimal("0"),
               currency: str = None,
               metadata: Dict = None) -> Dict[str, Any]:
        if cls.model.objects.filter(product=product, brand=brand, version=version).exists():
            raise BusinessRuleError(
                f"BOM version {version} already exists for {product.code}",
                "duplicate_bom_version",
            )

        bom = cls.model(
            product=product,
            brand=brand,
            version=version,
            batch_quantity=batch_quantity,
            batch_unit=batch_unit,
            process_steps=process_steps or [],
            labor_cost=labor_cost,
            overhead_cost=overhead_cost,
            metadata=metadata or {},
        )
        if currency:
            bom.currency = currency.upper()
        bom.save()

        cls._write_lines(bom, materials or [])
        cls.recompute_material_cost(bom)

        logger.info("BOM %s v%s created for product %s", bom.id, bom.version, product.code)

        return success_response({"bom": cls.serialize(bom)}, "BOM created")

    @classmethod
    @transaction.atomic
    def update(cls, bom_id: int, **data) -> Dict[str, Any]:
        bom = cls.get_or_404(bom_id)

        if bom.status == BOM.Status.ARCHIVED:
            raise BusinessRuleError("Archived BOMs cannot be edited", "bom_archived")

        materials = data.pop("materials", None)

        for field, value in data.items():
            setattr(bom, field, value)
        bom.currency = bom.currency.upper()
        bom.save()

        if materials is not None:
            bom.materials.all().delete()
            cls._write_lines(bom, materials)

        cls.recompute_material_cost(bom)

        return success_response({"bom": cls.serialize(bom)}, "BOM updated")

    @classmethod
    @transaction.atomic
    def delete(cls, bom_id: int) -> Dict[str, Any]:
        bom = cls.get_or_404(bom_id)

        try:
            bom.delete()
        except ProtectedError:
            raise BusinessRuleError("BOM is used by production batches", "bom_in_use")

        logger.info("BOM %s deleted", bom_id)
        return success_response(message="BOM deleted")

    # ------------------------------------------------------------------
    # Material lines
    # ------------------------------------------------------------------

    @classmethod
    def _write_lines(cls, bom: BOM, materials: List[Dict]):
        start = bom.materials.count()
        for offset, line in enumerate(materials):
            cls._create_line(bom, sort_order=start + offset, **line)

    @classmethod
    def _create_line(cls, bom: BOM, material, quantity, unit, wastage_percent=Decimal("0"),
                     notes: str = "", sort_order: int = 0) -> BOMMaterial:
        material_id = material if isinstance(material, int) else material.id
        raw = RawMaterialService.require(material_id)
        if raw.brand_id != bom.brand_id:
            raise ValidationError(f"Material {raw.code} belongs to another brand", "material")

        return BOMMaterial.objects.create(
            bom=bom,
            material_id=material_id,
            quantity=quantity,
            unit=unit,
            wastage_percent=wastage_percent,
            notes=notes,
            sort_order=sort_order,
        )

    @classmethod
    def _get_line(cls, line_id: int) -> BOMMaterial:
        try:
            return BOMMaterial.objects.select_related("bom").get(id=line_id)
        except BOMMaterial.DoesNotExist:
            raise NotFoundError("BOM material", line_id)

    @classmethod
    def _assert_editable(cls, bom: BOM):
        if bom.status == BOM.Status.ARCHIVED:
            raise BusinessRuleError("Archived BOMs cannot be edited", "bom_archived")

    @classmethod
    @transaction.atomic
    def add_material(cls, bom_id: int, **line) -> Dict[str, Any]:
        bom = cls.get_or_404(bom_id)
        cls._assert_editable(bom)

        created = cls._create_line(bom, sort_order=bom.materials.count(), **line)
        cls.recompute_material_cost(bom)

        return success_response({
            "material": cls.serialize_line(created, RawMaterialService.get_by_id(created.material_id)),
            "bom": cls.serialize(bom),
        }, "Material added to BOM")

    @classmethod
    @transaction.atomic
    def update_material(cls, line_id: int, **data) -> Dict[str, Any]:
        line = cls._get_line(line_id)
        bom = line.bom
        cls._assert_editable(bom)

        data.pop("material", None)
        for field in ("quantity", "unit", "wastage_percent", "notes"):
            if field in data:
                setattr(line, field, data[field])
        line.save()

        cls.recompute_material_cost(bom)

        return success_response({"bom": cls.serialize(bom)}, "BOM material updated")

    @classmethod
    @transaction.atomic
    def remove_material(cls, line_id: int) -> Dict[str, Any]:
        line = cls._get_line(line_id)
        bom = line.bom
        cls._assert_editable(bom)

        line.delete()
        cls.recompute_material_cost(bom)

        return success_response({"bom": cls.serialize(bom)}, "Material removed from BOM")

    @classmethod
    @transaction.atomic
    def replace_materials(cls, bom_id: int, materials: List[Dict]) -> Dict[str, Any]:
        bom = cls.get_or_404(bom_id)
        cls._assert_editable(bom)

        bom.materials.all().delete()
        cls._write_lines(bom, materials)
        cls.recompute_material_cost(bom)

        return success_response({"bom": cls.serialize(bom)}, "BOM materials replaced")

    # ------------------------------------------------------------------
    # Requirements
    # ------------------------------------------------------------------

    @classmethod
    def requirements(cls, bom: BOM, production_quantity) -> List[Dict[str, Any]]:
        return formulas.materials_needed(
            bom.materials.all(), bom.batch_quantity, production_quantity
        )

    @classmethod
    def shortages(cls, bom: BOM, production_quantity) -> List[Dict[str, Any]]:
        needed = cls.requirements(bom, production_quantity)
        materials = RawMaterialService.lookup(req["material_id"] for req in needed)
        return formulas.find_shortages(needed, materials)

    @classmethod
    def get_requirements(cls, bom_id: int, production_quantity) -> Dict[str, Any]:
        bom = cls.get_or_404(bom_id)
        quantity = require_decimal(production_quantity, "quantity", Decimal("0"))

        needed = cls.requirements(bom, quantity)
        materials = RawMaterialService.lookup(req["material_id"] for req in needed)

        return success_response({
            "bom_id": bom.id,
            "production_quantity": str(quantity),
            "materials": [
                {
                    "material_id": req["material_id"],
                    "code": materials[req["material_id"]].code if req["material_id"] in materials else None,
                    "name": materials[req["material_id"]].name if req["material_id"] in materials else None,
                    "quantity": str(round_decimal(req["quantity"])),
                    "unit": req["unit"],
                }
                for req in needed
            ],
        })

    @classmethod
    def check_availability(cls, bom_id: int, production_quantity) -> Dict[str, Any]:
        bom = cls.get_or_404(bom_id)
        quantity = require_decimal(production_quantity, "quantity", Decimal("0"))

        shortages = cls.shortages(bom, quantity)

        return success_response({
            "bom_id": bom.id,
            "production_quantity": str(quantity),
            "can_produce": not shortages,
            "shortages": [
                {
                    "material_id": s["material_id"],
                    "name": s["name"],
                    "required": str(round_decimal(s["required"])),
                    "available": str(round_decimal(s["available"])),
                    "unit": s["unit"],
                }
                for s in shortages
            ],
        })

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def _transition(cls, bom: BOM, target: str):
        allowed = cls.TRANSITIONS.get(bom.status, ())
        if target not in allowed:
            raise BusinessRuleError(
                f"Cannot move BOM from {bom.status} to {target}",
                "invalid_status_transition",
            )
        bom.status = target
        bom.save(update_fields=["status", "updated_at"])

    @classmethod
    @transaction.atomic
    def activate(cls, bom_id: int) -> Dict[str, Any]:
        bom = cls.get_or_404(bom_id)

        if not bom.materials.exists():
            raise BusinessRuleError("Cannot activate a BOM without materials", "bom_empty")

        cls._transition(bom, BOM.Status.ACTIVE)

        superseded = cls.model.objects.filter(
            product_id=bom.product_id,
            brand_id=bom.brand_id,
            status=BOM.Status.ACTIVE,
        ).exclude(id=bom.id).update(status=BOM.Status.ARCHIVED, updated_at=timezone.now())

        logger.info("BOM %s activated, %s previous version(s) archived", bom.id, superseded)

        return success_response({"bom": cls.serialize(bom)}, "BOM activated")

    @classmethod
    @transaction.atomic
    def archive(cls, bom_id: int) -> Dict[str, Any]:
        bom = cls.get_or_404(bom_id)
        cls._transition(bom, BOM.Status.ARCHIVED)
        return success_response({"bom": cls.serialize(bom)}, "BOM archived")

    @classmethod
    @transaction.atomic
    def restore_draft(cls, bom_id: int) -> Dict[str, Any]:
        bom = cls.get_or_404(bom_id)
        cls._transition(bom, BOM.Status.DRAFT)
        return success_response({"bom": cls.serialize(bom)}, "BOM moved to draft")

    @classmethod
    @transaction.atomic
    def approve(cls,
                bom_id: int,
                stage: str,
                approver_name: str,
                approver_role: str,
                comments: str = "") -> Dict[str, Any]:
        bom = cls.get_or_404(bom_id)

        bom.approvals = bom.approvals + [{
            "stage": stage,
            "approver": {"name": approver_name, "role": approver_role},
            "comments": comments,
            "timestamp": timezone.now().isoformat(),
        }]
        bom.save(update_fields=["approvals", "updated_at"])

        logger.info("BOM %s approval recorded at stage %s by %s", bom.id, stage, approver_name)

        return success_response({"bom": cls.serialize(bom)}, "Approval recorded")

    @classmethod
    @transaction.atomic
    def new_version(cls, bom_id: int, version: str) -> Dict[str, Any]:
        source = cls.get_or_404(bom_id)

        copy = cls.model(
            product_id=source.product_id,
            brand_id=source.brand_id,
            version=version,
            status=BOM.Status.DRAFT,
            batch_quantity=source.batch_quantity,
            batch_unit=source.batch_unit,
            process_steps=source.process_steps,
            labor_cost=source.labor_cost,
            overhead_cost=source.overhead_cost,
            currency=source.currency,
            parent_bom=source,
            metadata=source.metadata,
        )
        try:
            with transaction.atomic():
                copy.save()
        except IntegrityError:
            raise BusinessRuleError(
                f"BOM version {version} already exists for this product",
                "duplicate_bom_version",
            )

        for line in source.materials.all():
            BOMMaterial.objects.create(
                bom=copy,
                material_id=line.material_id,
                quantity=line.quantity,
                unit=line.unit,
                wastage_percent=line.wastage_percent,
                notes=line.notes,
                sort_order=line.sort_order,
            )
        cls.recompute_material_cost(copy)

        logger.info("BOM %s copied to version %s (id %s)", source.id, version, copy.id)

        return success_response({"bom": cls.serialize(copy)}, "BOM version created")
