import logging
from decimal import Decimal
from typing import Dict, Any, List

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from stock import formulas
from stock.models import (
    BOM, Inventory, InventoryTransaction, Production, ProductionIssue,
    ProductionMaterial, ProductionStaff, QualityCheck,
)
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError, BusinessRuleError,
    generate_batch_number, date_bounds, round_decimal, money, iso,
)
from stock.services.bom_service import BOMService
from stock.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)


def labor_rate() -> Decimal:
    return Decimal(str(settings.LABOR_HOURLY_RATE))


class ProductionService(BaseService):
    model = Production
    resource_name = "Production"

    TRANSITIONS = {
        Production.Status.PLANNED: (Production.Status.IN_PROGRESS, Production.Status.REJECTED),
        Production.Status.IN_PROGRESS: (Production.Status.COMPLETED, Production.Status.PLANNED),
        Production.Status.COMPLETED: (Production.Status.QUALITY_CHECK,),
        Production.Status.QUALITY_CHECK: (Production.Status.APPROVED, Production.Status.REJECTED),
        Production.Status.REJECTED: (Production.Status.PLANNED,),
        Production.Status.APPROVED: (),
    }

    EDITABLE_STATUSES = (
        Production.Status.PLANNED,
        Production.Status.IN_PROGRESS,
        Production.Status.COMPLETED,
    )

    @classmethod
    def total_cost(cls, production: Production) -> Decimal:
        return formulas.production_total_cost(
            production.materials_cost,
            production.labor_cost,
            production.overhead_cost,
            production.additional_costs,
        )

    @classmethod
    def serialize(cls, production: Production, include_details: bool = True) -> Dict[str, Any]:
        total_cost = cls.total_cost(production)

        data = {
            "id": production.id,
            "uuid": str(production.uuid),
            "batch_number": production.batch_number,
            "brand_id": production.brand_id,
            "product_id": production.product_id,
            "product": {
                "id": production.product.id,
                "code": production.product.code,
                "name": production.product.name,
            },
            "bom_id": production.bom_id,
            "status": production.status,
            "quantity": {
                "planned": str(production.quantity_planned),
                "produced": str(production.quantity_produced),
                "rejected": str(production.quantity_rejected),
                "unit": production.quantity_unit,
            },
            "schedule": {
                "start_date": iso(production.start_date),
                "end_date": iso(production.end_date),
                "actual_start": iso(production.actual_start),
                "actual_end": iso(production.actual_end),
            },
            "costs": {
                "materials": money(production.materials_cost),
                "labor": money(production.labor_cost),
                "overhead": money(production.overhead_cost),
                "additional": production.additional_costs,
                "currency": production.currency,
            },
            "total_cost": money(total_cost),
            "cost_per_unit": money(formulas.production_cost_per_unit(total_cost, production.quantity_produced)),
            "efficiency": str(round_decimal(
                formulas.production_efficiency(production.quantity_produced, production.quantity_rejected), 2
            )),
            "machine": {
                "name": production.machine_name,
                "code": production.machine_code,
                "hours": str(production.machine_hours),
            },
            "posted_to_inventory_at": iso(production.posted_to_inventory_at),
            "created_at": iso(production.created_at),
            "updated_at": iso(production.updated_at),
        }

        if include_details:
            data["materials"] = [
                {
                    "id": m.id,
                    "material_id": m.material_id,
                    "code": m.material.code,
                    "name": m.material.name,
                    "quantity_used": str(m.quantity_used),
                    "unit": m.unit,
                    "wastage": str(m.wastage),
                    "cost": str(m.cost),
                }
                for m in production.materials.select_related("material")
            ]
            data["staff"] = [
                {"id": s.id, "role": s.role, "name": s.name, "hours": str(s.hours)}
                for s in production.staff.all()
            ]
            data["quality_checks"] = [
                {
                    "id": q.id,
                    "parameter": q.parameter,
                    "expected": q.expected,
                    "actual": q.actual,
                    "status": q.status,
                    "notes": q.notes,
                    "checked_by": q.checked_by,
                    "timestamp": iso(q.timestamp),
                }
                for q in production.quality_checks.all()
            ]
            data["issues"] = [cls.serialize_issue(i) for i in production.issues.all()]
            data["notes"] = production.notes

        return data

    @classmethod
    def serialize_issue(cls, issue: ProductionIssue) -> Dict[str, Any]:
        return {
            "id": issue.id,
            "production_id": issue.production_id,
            "type": issue.type,
            "description": issue.description,
            "severity": issue.severity,
            "status": issue.status,
            "reported_by": issue.reported_by,
            "resolution": {
                "action": issue.resolution_action,
                "by": issue.resolved_by,
                "date": iso(issue.resolved_at),
            } if issue.resolved_at else None,
            "timestamp": iso(issue.timestamp),
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

        productions, pagination = paginate_queryset(queryset.order_by("-created_at"), page, per_page)

        return success_response({
            "productions": [cls.serialize(p, include_details=False) for p in productions],
            "pagination": pagination,
        })

    @classmethod
    def get(cls, production_id: int) -> Dict[str, Any]:
        return success_response({"production": cls.serialize(cls.get_or_404(production_id))})

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    @classmethod
    def _clean_additional(cls, entries) -> List[Dict[str, str]]:
        return [
            {"description": e["description"], "amount": str(e["amount"])}
            for e in entries
        ]

    @classmethod
    @transaction.atomic
    def create(cls,
               bom: BOM,
               quantity_planned: Decimal,
               start_date,
               end_date,
               quantity_unit: str = "pieces",
               overhead_cost: Decimal = Decimal("0"),
               additional_costs: List[Dict] = None,
               machine_name: str = "",
               machine_code: str = "",
               machine_hours: Decimal = Decimal("0")) -> Dict[str, Any]:
        if bom.status != BOM.Status.ACTIVE:
            raise BusinessRuleError("Production can only be planned from an active BOM", "bom_not_active")

        if end_date <= start_date:
            raise ValidationError("End date must be after start date", "end_date")

        production = cls.model.objects.create(
            batch_number=generate_batch_number(cls.model),
            brand_id=bom.brand_id,
            product_id=bom.product_id,
            bom=bom,
            quantity_planned=quantity_planned,
            quantity_unit=quantity_unit,
            start_date=start_date,
            end_date=end_date,
            overhead_cost=overhead_cost,
            additional_costs=cls._clean_additional(additional_costs or []),
            currency=bom.currency,
            machine_name=machine_name,
            machine_code=machine_code,
            machine_hours=machine_hours,
        )

        shortages = BOMService.shortages(bom, quantity_planned)

        logger.info(
            "Production %s planned: %s × %s (%s shortages)",
            production.batch_number, quantity_planned, bom.product.code, len(shortages),
        )

        return success_response({
            "production": cls.serialize(production),
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
        }, "Production planned")

    @classmethod
    def _assert_editable(cls, production: Production):
        if production.status not in cls.EDITABLE_STATUSES:
            raise BusinessRuleError(
                f"Cannot modify production in {production.status} status",
                "production_locked",
            )

    @classmethod
    @transaction.atomic
    def update(cls, production_id: int, **data) -> Dict[str, Any]:
        production = cls.get_or_404(production_id)
        cls._assert_editable(production)

        if "additional_costs" in data:
            data["additional_costs"] = cls._clean_additional(data["additional_costs"])

        for field, value in data.items():
            setattr(production, field, value)

        if production.end_date <= production.start_date:
            raise ValidationError("End date must be after start date", "end_date")

        if production.quantity_rejected > production.quantity_produced:
            raise ValidationError("Rejected quantity cannot exceed produced quantity", "quantity_rejected")

        production.save()

        return success_response({"production": cls.serialize(production)}, "Production updated")

    @classmethod
    @transaction.atomic
    def delete(cls, production_id: int) -> Dict[str, Any]:
        production = cls.get_or_404(production_id)

        if production.status != Production.Status.PLANNED:
            raise BusinessRuleError("Only planned production can be deleted", "production_started")

        production.delete()
        logger.info("Production %s deleted", production.batch_number)
        return success_response(message="Production deleted")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @classmethod
    @transaction.atomic
    def change_status(cls, production_id: int, status: str) -> Dict[str, Any]:
        production = cls.get_or_404(production_id)

        if status not in Production.Status.values:
            raise ValidationError(f"Invalid status. Valid: {Production.Status.values}", "status")

        allowed = cls.TRANSITIONS[production.status]
        if status not in allowed:
            raise BusinessRuleError(
                f"Cannot move production from {production.status} to {status}",
                "invalid_status_transition",
            )

        if status == Production.Status.COMPLETED:
            issues = cls.completion_issues(production)
            if issues:
                raise BusinessRuleError("; ".join(issues), "completion_invalid")

        previous = production.status
        production.status = status
        update_fields = ["status", "updated_at"]

        if status == Production.Status.IN_PROGRESS and not production.actual_start:
            production.actual_start = timezone.now()
            update_fields.append("actual_start")

        if status == Production.Status.COMPLETED:
            production.actual_end = timezone.now()
            update_fields.append("actual_end")

        production.save(update_fields=update_fields)

        logger.info("Production %s: %s -> %s", production.batch_number, previous, status)

        return success_response({"production": cls.serialize(production)}, f"Production {status}")

    # ------------------------------------------------------------------
    # Consumed materials and staff
    # ------------------------------------------------------------------

    @classmethod
    def recompute_materials_cost(cls, production: Production) -> Decimal:
        production.materials_cost = round_decimal(
            formulas.production_materials_cost(production.materials.all())
        )
        production.save(update_fields=["materials_cost", "updated_at"])
        return production.materials_cost

    @classmethod
    def recompute_labor_cost(cls, production: Production) -> Decimal:
        production.labor_cost = round_decimal(
            formulas.production_labor_cost(production.staff.all(), labor_rate())
        )
        production.save(update_fields=["labor_cost", "updated_at"])
        return production.labor_cost

    @classmethod
    @transaction.atomic
    def add_material(cls,
                     production_id: int,
                     material,
                     quantity_used: Decimal,
                     unit: str,
                     wastage: Decimal = Decimal("0"),
                     cost: Decimal = None) -> Dict[str, Any]:
        production = cls.get_or_404(production_id)
        cls._assert_editable(production)

        if material.brand_id != production.brand_id:
            raise ValidationError(f"Material {material.code} belongs to another brand", "material")

        if quantity_used + wastage <= 0:
            raise ValidationError("Consumed quantity must be greater than zero", "quantity_used")

        # Cost is fixed when the material is consumed.
        if cost is None:
            cost = round_decimal((quantity_used + wastage) * material.cost_per_unit)

        ProductionMaterial.objects.create(
            production=production,
            material=material,
            quantity_used=quantity_used,
            unit=unit,
            wastage=wastage,
            cost=cost,
        )
        cls.recompute_materials_cost(production)

        return success_response({"production": cls.serialize(production)}, "Material usage recorded")

    @classmethod
    @transaction.atomic
    def remove_material(cls, line_id: int) -> Dict[str, Any]:
        try:
            line = ProductionMaterial.objects.select_related("production").get(id=line_id)
        except ProductionMaterial.DoesNotExist:
            raise NotFoundError("Production material", line_id)

        production = line.production
        cls._assert_editable(production)

        line.delete()
        cls.recompute_materials_cost(production)

        return success_response({"production": cls.serialize(production)}, "Material usage removed")

    @classmethod
    @transaction.atomic
    def add_staff(cls, production_id: int, role: str, name: str, hours: Decimal) -> Dict[str, Any]:
        production = cls.get_or_404(production_id)
        cls._assert_editable(production)

        ProductionStaff.objects.create(production=production, role=role, name=name, hours=hours)
        cls.recompute_labor_cost(production)

        return success_response({"production": cls.serialize(production)}, "Staff recorded")

    @classmethod
    @transaction.atomic
    def remove_staff(cls, staff_id: int) -> Dict[str, Any]:
        try:
            member = ProductionStaff.objects.select_related("production").get(id=staff_id)
        except ProductionStaff.DoesNotExist:
            raise NotFoundError("Production staff", staff_id)

        production = member.production
        cls._assert_editable(production)

        member.delete()
        cls.recompute_labor_cost(production)

        return success_response({"production": cls.serialize(production)}, "Staff removed")

    # ------------------------------------------------------------------
    # Quality, issues, notes
    # ------------------------------------------------------------------

    @classmethod
    @transaction.atomic
    def add_quality_check(cls,
                          production_id: int,
                          parameter: str,
                          status: str,
                          expected: str = "",
                          actual: str = "",
                          notes: str = "",
                          checked_by: str = "") -> Dict[str, Any]:
        production = cls.get_or_404(production_id)

        if production.status in (Production.Status.APPROVED, Production.Status.REJECTED):
            raise BusinessRuleError(
                f"Cannot record quality checks on {production.status} production",
                "production_locked",
            )

        QualityCheck.objects.create(
            production=production,
            parameter=parameter,
            expected=expected,
            actual=actual,
            status=status,
            notes=notes,
            checked_by=checked_by,
        )

        return success_response({"production": cls.serialize(production)}, "Quality check recorded")

    @classmethod
    @transaction.atomic
    def report_issue(cls,
                     production_id: int,
                     type: str,
                     description: str,
                     severity: str,
                     reported_by: str = "") -> Dict[str, Any]:
        production = cls.get_or_404(production_id)

        issue = ProductionIssue.objects.create(
            production=production,
            type=type,
            description=description,
            severity=severity,
            reported_by=reported_by,
        )

        log = logger.warning if severity in ("high", "critical") else logger.info
        log("Production %s issue reported (%s/%s): %s", production.batch_number, type, severity, description)

        return success_response({"issue": cls.serialize_issue(issue)}, "Issue reported")

    @classmethod
    @transaction.atomic
    def resolve_issue(cls, issue_id: int, action: str, resolved_by: str = "") -> Dict[str, Any]:
        try:
            issue = ProductionIssue.objects.get(id=issue_id)
        except ProductionIssue.DoesNotExist:
            raise NotFoundError("Production issue", issue_id)

        if issue.status == ProductionIssue.Status.RESOLVED:
            raise BusinessRuleError("Issue is already resolved", "issue_resolved")

        issue.status = ProductionIssue.Status.RESOLVED
        issue.resolution_action = action
        issue.resolved_by = resolved_by
        issue.resolved_at = timezone.now()
        issue.save()

        return success_response({"issue": cls.serialize_issue(issue)}, "Issue resolved")

    @classmethod
    @transaction.atomic
    def add_note(cls, production_id: int, content: str, author: str = "") -> Dict[str, Any]:
        production = cls.get_or_404(production_id)

        production.notes = production.notes + [{
            "content": content,
            "author": author,
            "timestamp": timezone.now().isoformat(),
        }]
        production.save(update_fields=["notes", "updated_at"])

        return success_response({"production": cls.serialize(production)}, "Note added")

    # ------------------------------------------------------------------
    # Completion, reporting, inventory posting
    # ------------------------------------------------------------------

    @classmethod
    def completion_issues(cls, production: Production) -> List[str]:
        failed = production.quality_checks.filter(status=QualityCheck.Status.FAILED).count()
        consumed = production.materials.values_list("material_id", flat=True)
        planned = production.bom.materials.values_list("material_id", flat=True)
        return formulas.completion_issues(production.quantity_produced, failed, consumed, planned)

    @classmethod
    def validate_completion(cls, production_id: int) -> Dict[str, Any]:
        production = cls.get_or_404(production_id)
        issues = cls.completion_issues(production)

        return success_response({
            "production_id": production.id,
            "is_valid": not issues,
            "issues": issues,
        })

    @classmethod
    def get_summary(cls, start_date, end_date, brand_id: int = None) -> Dict[str, Any]:
        start_at, end_at = date_bounds(start_date, end_date)

        queryset = cls.model.objects.filter(
            start_date__gte=start_at, end_date__lte=end_at
        ).select_related("product")

        if brand_id:
            queryset = queryset.filter(brand_id=brand_id)

        groups: Dict[int, Dict[str, Any]] = {}
        for production in queryset.order_by("product__code", "start_date"):
            group = groups.setdefault(production.product_id, {
                "product_id": production.product_id,
                "product_code": production.product.code,
                "product_name": production.product.name,
                "batches": 0,
                "planned": Decimal("0"),
                "produced": Decimal("0"),
                "rejected": Decimal("0"),
                "total_cost": Decimal("0"),
            })
            group["batches"] += 1
            group["planned"] += production.quantity_planned
            group["produced"] += production.quantity_produced
            group["rejected"] += production.quantity_rejected
            group["total_cost"] += cls.total_cost(production)

        summary = []
        for group in groups.values():
            summary.append({
                **group,
                "planned": str(group["planned"]),
                "produced": str(group["produced"]),
                "rejected": str(group["rejected"]),
                "total_cost": money(group["total_cost"]),
                "efficiency": str(round_decimal(
                    formulas.production_efficiency(group["produced"], group["rejected"]), 2
                )),
            })

        return success_response({
            "start_date": start_at.isoformat(),
            "end_date": end_at.isoformat(),
            "brand_id": brand_id,
            "products": summary,
        })

    @classmethod
    @transaction.atomic
    def post_to_inventory(cls, production_id: int, user=None) -> Dict[str, Any]:
        """
        Book an approved batch into the inventory ledgers.

        Appends one production-use movement per consumed material line and one
        production-output movement for the good units. Any stock shortfall
        rolls the whole posting back.
        """
        production = cls.model.objects.select_for_update().filter(id=production_id).first()
        if not production:
            raise NotFoundError(cls.resource_name, production_id)

        if production.status != Production.Status.APPROVED:
            raise BusinessRuleError("Only approved production can be posted to inventory", "production_not_approved")

        if production.posted_to_inventory_at:
            raise BusinessRuleError("Production already posted to inventory", "production_posted")

        reference = {
            "reference_type": InventoryTransaction.ReferenceType.PRODUCTION,
            "reference_number": production.batch_number,
            "performed_by": user,
            "production": production,
        }

        movements = []
        for line in production.materials.select_related("material"):
            consumed = line.quantity_used + line.wastage
            if consumed <= 0:
                continue
            ledger, _ = InventoryService.get_or_create_ledger(
                Inventory.ItemType.RAW_MATERIAL, line.material_id, production.brand_id
            )
            txn = InventoryService.append_transaction(
                ledger,
                type=InventoryTransaction.TransactionType.PRODUCTION_USE,
                quantity=consumed,
                cost_total=line.cost,
                **reference,
            )
            movements.append(txn)

        good_units = production.quantity_produced - production.quantity_rejected
        if good_units > 0:
            ledger, _ = InventoryService.get_or_create_ledger(
                Inventory.ItemType.FINISHED_PRODUCT, production.product_id, production.brand_id
            )
            txn = InventoryService.append_transaction(
                ledger,
                type=InventoryTransaction.TransactionType.PRODUCTION_OUTPUT,
                quantity=good_units,
                cost_total=round_decimal(cls.total_cost(production)),
                batch_number=production.batch_number,
                batch_manufacturing_date=production.actual_end,
                **reference,
            )
            movements.append(txn)

        production.posted_to_inventory_at = timezone.now()
        production.save(update_fields=["posted_to_inventory_at", "updated_at"])

        logger.info("Production %s posted to inventory (%s movements)", production.batch_number, len(movements))

        return success_response({
            "production": cls.serialize(production),
            "transactions": [InventoryService.serialize_transaction(t) for t in movements],
        }, "Production posted to inventory")
