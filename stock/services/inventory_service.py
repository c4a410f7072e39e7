import logging
from decimal import Decimal
from typing import Dict, Any, Optional, Tuple

from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone

from stock import formulas
from stock.models import FinishedProduct, Inventory, InventoryTransaction, RawMaterial
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError, BusinessRuleError, InsufficientStockError,
    round_decimal, money, iso,
)

logger = logging.getLogger(__name__)


class InventoryService(BaseService):
    model = Inventory
    resource_name = "Inventory"

    # Tagged item reference: item_type selects the table item_id points into.
    ITEM_MODELS = {
        Inventory.ItemType.RAW_MATERIAL: RawMaterial,
        Inventory.ItemType.FINISHED_PRODUCT: FinishedProduct,
    }

    @classmethod
    def resolve_item(cls, item_type: str, item_id: int):
        model = cls.ITEM_MODELS.get(item_type)
        if model is None:
            raise ValidationError(f"Invalid item type. Valid: {list(cls.ITEM_MODELS)}", "item_type")
        try:
            return model.objects.get(id=item_id)
        except model.DoesNotExist:
            raise NotFoundError(model._meta.verbose_name.capitalize(), item_id)

    @classmethod
    def _default_unit(cls, item) -> str:
        if isinstance(item, RawMaterial):
            return item.unit
        return "pieces"

    @classmethod
    def _item_label(cls, inventory: Inventory) -> str:
        model = cls.ITEM_MODELS[inventory.item_type]
        item = model.objects.filter(id=inventory.item_id).first()
        return f"{item.code} {item.name}" if item else f"{inventory.item_type} #{inventory.item_id}"

    @classmethod
    def serialize(cls, inventory: Inventory, include_transactions: bool = False) -> Dict[str, Any]:
        model = cls.ITEM_MODELS[inventory.item_type]
        item = model.objects.filter(id=inventory.item_id).first()

        data = {
            "id": inventory.id,
            "uuid": str(inventory.uuid),
            "item_type": inventory.item_type,
            "item_id": inventory.item_id,
            "item": {"code": item.code, "name": item.name} if item else None,
            "brand_id": inventory.brand_id,
            "current_stock": {
                "value": str(inventory.current_stock),
                "unit": inventory.unit,
            },
            "batches": inventory.batches,
            "value": {
                "average": money(inventory.average_cost),
                "total": money(inventory.total_value),
                "currency": inventory.currency,
                "last_updated": iso(inventory.value_updated_at),
            },
            "limits": {
                "minimum": str(inventory.limit_minimum),
                "maximum": str(inventory.limit_maximum) if inventory.limit_maximum is not None else None,
                "reorder_point": str(inventory.reorder_point),
            },
            "is_low_stock": inventory.current_stock <= inventory.reorder_point,
            "created_at": iso(inventory.created_at),
            "updated_at": iso(inventory.updated_at),
        }

        if include_transactions:
            data["transactions"] = [
                cls.serialize_transaction(t) for t in inventory.transactions.order_by("-timestamp", "-id")[:50]
            ]

        return data

    @classmethod
    def serialize_transaction(cls, txn: InventoryTransaction) -> Dict[str, Any]:
        return {
            "id": txn.id,
            "uuid": str(txn.uuid),
            "inventory_id": txn.inventory_id,
            "type": txn.type,
            "quantity": {"value": str(txn.quantity), "unit": txn.unit},
            "quantity_before": str(txn.quantity_before),
            "quantity_after": str(txn.quantity_after),
            "reference": {"type": txn.reference_type, "number": txn.reference_number},
            "batch": {
                "number": txn.batch_number,
                "expiry_date": iso(txn.batch_expiry_date),
                "manufacturing_date": iso(txn.batch_manufacturing_date),
            } if txn.batch_number else None,
            "location": {"from": txn.location_from, "to": txn.location_to},
            "cost": {
                "per_unit": str(txn.cost_per_unit) if txn.cost_per_unit is not None else None,
                "total": str(txn.cost_total) if txn.cost_total is not None else None,
                "currency": txn.currency,
            },
            "quality_check": {
                "status": txn.quality_status,
                "checked_by": txn.quality_checked_by,
                "date": iso(txn.quality_date),
                "notes": txn.quality_notes,
            } if txn.quality_status else None,
            "notes": txn.notes,
            "performed_by_id": txn.performed_by_id,
            "approved_by_id": txn.approved_by_id,
            "production_id": txn.production_id,
            "timestamp": iso(txn.timestamp),
        }

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             brand_id: int = None,
             item_type: str = None) -> Dict[str, Any]:
        queryset = cls.model.objects.all()

        if brand_id:
            queryset = queryset.filter(brand_id=brand_id)

        if item_type:
            queryset = queryset.filter(item_type=item_type)

        records, pagination = paginate_queryset(queryset.order_by("item_type", "item_id"), page, per_page)

        return success_response({
            "inventory": [cls.serialize(r) for r in records],
            "pagination": pagination,
        })

    @classmethod
    def get(cls, inventory_id: int) -> Dict[str, Any]:
        inventory = cls.get_or_404(inventory_id)
        return success_response({"inventory": cls.serialize(inventory, include_transactions=True)})

    # ------------------------------------------------------------------
    # Ledger heads
    # ------------------------------------------------------------------

    @classmethod
    def get_or_create_ledger(cls, item_type: str, item_id: int, brand,
                             limit_minimum: Decimal = Decimal("0"),
                             limit_maximum: Optional[Decimal] = None,
                             reorder_point: Decimal = Decimal("0")) -> Tuple[Inventory, bool]:
        item = cls.resolve_item(item_type, item_id)
        brand_id = brand if isinstance(brand, int) else brand.id
        if item.brand_id != brand_id:
            raise ValidationError("Item does not belong to this brand", "item_id")

        return cls.model.objects.get_or_create(
            item_type=item_type,
            item_id=item.id,
            brand_id=brand_id,
            defaults={
                "unit": cls._default_unit(item),
                "currency": item.currency,
                "limit_minimum": limit_minimum,
                "limit_maximum": limit_maximum,
                "reorder_point": reorder_point,
            },
        )

    @classmethod
    @transaction.atomic
    def create(cls, item_type: str, item_id: int, brand, **limits) -> Dict[str, Any]:
        inventory, created = cls.get_or_create_ledger(item_type, item_id, brand, **limits)
        if not created:
            raise BusinessRuleError("Inventory record already exists for this item", "duplicate_inventory")

        logger.info("Inventory ledger %s opened for %s #%s", inventory.id, item_type, item_id)

        return success_response({"inventory": cls.serialize(inventory)}, "Inventory record created")

    @classmethod
    @transaction.atomic
    def update_limits(cls, inventory_id: int, **limits) -> Dict[str, Any]:
        inventory = cls.get_or_404(inventory_id)

        for field in ("limit_minimum", "limit_maximum", "reorder_point"):
            if field in limits:
                setattr(inventory, field, limits[field])
        inventory.save()

        return success_response({"inventory": cls.serialize(inventory)}, "Inventory limits updated")

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @classmethod
    def append_transaction(cls,
                           inventory: Inventory,
                           type: str,
                           quantity: Decimal,
                           reference_type: str,
                           reference_number: str,
                           unit: str = None,
                           batch_number: str = "",
                           batch_expiry_date=None,
                           batch_manufacturing_date=None,
                           location_from: str = "",
                           location_to: str = "",
                           cost_per_unit: Decimal = None,
                           cost_total: Decimal = None,
                           quality_status: str = "",
                           quality_checked_by: str = "",
                           quality_notes: str = "",
                           notes: str = "",
                           performed_by=None,
                           approved_by=None,
                           production=None) -> InventoryTransaction:
        """
        Apply one movement to a ledger.

        All-or-nothing: a movement that would leave the balance negative raises
        InsufficientStockError and neither the transaction row nor the balance
        is written.
        """
        if not reference_type or not reference_number:
            raise ValidationError("Transaction reference is required", "reference_number")

        with transaction.atomic():
            inventory = cls.model.objects.select_for_update().get(pk=inventory.pk)

            if unit and unit != inventory.unit:
                raise ValidationError(
                    f"Unit {unit} does not match inventory unit {inventory.unit}", "unit"
                )

            before = inventory.current_stock
            after = formulas.stock_after(before, type, quantity)

            if after < 0:
                label = cls._item_label(inventory)
                logger.warning(
                    "Rejected %s of %s on inventory %s (%s): balance %s",
                    type, quantity, inventory.id, label, before,
                )
                raise InsufficientStockError(label, abs(quantity), before)

            now = timezone.now()
            txn = InventoryTransaction.objects.create(
                inventory=inventory,
                type=type,
                quantity=quantity,
                unit=inventory.unit,
                quantity_before=before,
                quantity_after=after,
                reference_type=reference_type,
                reference_number=reference_number,
                batch_number=batch_number or "",
                batch_expiry_date=batch_expiry_date,
                batch_manufacturing_date=batch_manufacturing_date,
                location_from=location_from or "",
                location_to=location_to or "",
                cost_per_unit=cost_per_unit,
                cost_total=formulas.transaction_cost_total(quantity, cost_per_unit, cost_total),
                currency=inventory.currency,
                quality_status=quality_status or "",
                quality_checked_by=quality_checked_by or "",
                quality_date=now if quality_status else None,
                quality_notes=quality_notes or "",
                notes=notes or "",
                performed_by=performed_by,
                approved_by=approved_by,
                production=production,
            )

            inventory.current_stock = after
            inventory.batches = formulas.apply_batch(
                inventory.batches, type, quantity, batch_number,
                manufacturing_date=iso(batch_manufacturing_date),
                expiry_date=iso(batch_expiry_date),
                location=location_to,
            )
            inventory.average_cost = round_decimal(
                formulas.moving_average(inventory.transactions.all(), inventory.average_cost)
            )
            inventory.total_value = round_decimal(after * inventory.average_cost)
            inventory.value_updated_at = now
            inventory.save()

        logger.info(
            "Inventory %s: %s %s (%s -> %s) ref %s/%s",
            inventory.id, type, quantity, before, after, reference_type, reference_number,
        )
        return txn

    @classmethod
    def add_transaction(cls, inventory_id: int, user=None, **data) -> Dict[str, Any]:
        inventory = cls.get_or_404(inventory_id)
        txn = cls.append_transaction(inventory, performed_by=user, **data)
        inventory.refresh_from_db()

        return success_response({
            "transaction": cls.serialize_transaction(txn),
            "inventory": cls.serialize(inventory),
        }, "Transaction recorded")

    @classmethod
    @transaction.atomic
    def add_item_transaction(cls, item_type: str, item_id: int, brand, user=None, **data) -> Dict[str, Any]:
        inventory, _ = cls.get_or_create_ledger(item_type, item_id, brand)
        txn = cls.append_transaction(inventory, performed_by=user, **data)
        inventory.refresh_from_db()

        return success_response({
            "transaction": cls.serialize_transaction(txn),
            "inventory": cls.serialize(inventory),
        }, "Transaction recorded")

    @classmethod
    def get_transactions(cls,
                         inventory_id: int,
                         page: int = 1,
                         per_page: int = 50,
                         type: str = None) -> Dict[str, Any]:
        inventory = cls.get_or_404(inventory_id)
        queryset = inventory.transactions.all()

        if type:
            queryset = queryset.filter(type=type)

        transactions, pagination = paginate_queryset(queryset.order_by("-timestamp", "-id"), page, per_page)

        return success_response({
            "transactions": [cls.serialize_transaction(t) for t in transactions],
            "pagination": pagination,
        })

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    @classmethod
    def low_stock(cls, brand_id: int):
        return cls.model.objects.filter(
            brand_id=brand_id,
            current_stock__lte=F("reorder_point"),
        ).order_by("item_type", "item_id")

    @classmethod
    def get_low_stock(cls, brand_id: int) -> Dict[str, Any]:
        records = list(cls.low_stock(brand_id))
        return success_response({
            "inventory": [cls.serialize(r) for r in records],
            "count": len(records),
        })

    @classmethod
    def get_value(cls, brand_id: int) -> Dict[str, Any]:
        totals = {
            row["item_type"]: row["total"] or Decimal("0")
            for row in cls.model.objects.filter(brand_id=brand_id)
            .order_by().values("item_type").annotate(total=Sum("total_value"))
        }
        raw = totals.get(Inventory.ItemType.RAW_MATERIAL, Decimal("0"))
        finished = totals.get(Inventory.ItemType.FINISHED_PRODUCT, Decimal("0"))

        return success_response({
            "brand_id": brand_id,
            "raw_materials": money(raw),
            "finished_products": money(finished),
            "total": money(raw + finished),
        })
