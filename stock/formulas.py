"""
Manufacturing arithmetic.

Pure functions over plain values and model-like objects; nothing here reads
or writes the database. Services call these right before persisting so that
derived fields (BOM material cost, production cost totals, inventory balance
and valuation) are always recomputed from their inputs.
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from stock.services.base_service import ValidationError, to_decimal

HUNDRED = Decimal("100")
ZERO = Decimal("0")

INCOMING_TYPES = ("in", "production-output")
OUTGOING_TYPES = ("out", "production-use")
ABSOLUTE_TYPES = ("adjustment",)
TRANSACTION_TYPES = INCOMING_TYPES + OUTGOING_TYPES + ABSOLUTE_TYPES


# ---------------------------------------------------------------------------
# BOM
# ---------------------------------------------------------------------------

def wastage_factor(wastage_percent) -> Decimal:
    return Decimal("1") + to_decimal(wastage_percent) / HUNDRED


def scale_factor(batch_quantity, production_quantity) -> Decimal:
    batch_quantity = to_decimal(batch_quantity)
    if batch_quantity <= 0:
        raise ValidationError("BOM batch size must be greater than zero", "batch_quantity")
    return to_decimal(production_quantity) / batch_quantity


def materials_needed(lines: Iterable[Any], batch_quantity, production_quantity) -> List[Dict[str, Any]]:
    """
    Quantity of each material required for ``production_quantity`` units.

    Every line is scaled by production_quantity / batch_quantity and then by
    its wastage multiplier. Lines need ``material_id``, ``quantity``, ``unit``
    and ``wastage_percent`` attributes.
    """
    factor = scale_factor(batch_quantity, production_quantity)
    return [
        {
            "material_id": line.material_id,
            "quantity": to_decimal(line.quantity) * factor * wastage_factor(line.wastage_percent),
            "unit": line.unit,
        }
        for line in lines
    ]


def bom_material_cost(lines: Iterable[Any], cost_per_unit: Mapping[int, Decimal]) -> Decimal:
    """Σ quantity × (1 + wastage/100) × current cost per unit. Missing materials cost nothing."""
    total = ZERO
    for line in lines:
        unit_cost = cost_per_unit.get(line.material_id)
        if unit_cost is None:
            continue
        total += to_decimal(line.quantity) * wastage_factor(line.wastage_percent) * to_decimal(unit_cost)
    return total


def bom_cost_per_unit(material_cost, labor_cost, overhead_cost, batch_quantity) -> Decimal:
    batch_quantity = to_decimal(batch_quantity)
    if batch_quantity <= 0:
        return ZERO
    total = to_decimal(material_cost) + to_decimal(labor_cost) + to_decimal(overhead_cost)
    return total / batch_quantity


def find_shortages(requirements: Iterable[Dict[str, Any]], materials: Mapping[int, Any]) -> List[Dict[str, Any]]:
    """
    Compare requirements against current raw material stock.

    ``materials`` maps material id to a RawMaterial-like object; an id absent
    from the map is a deleted material and counts as zero available.
    """
    shortages = []
    for req in requirements:
        material = materials.get(req["material_id"])
        available = to_decimal(material.stock_current) if material is not None else ZERO
        if material is None or req["quantity"] > available:
            shortages.append({
                "material_id": req["material_id"],
                "name": material.name if material is not None else None,
                "required": req["quantity"],
                "available": available,
                "unit": req["unit"],
            })
    return shortages


# ---------------------------------------------------------------------------
# Production
# ---------------------------------------------------------------------------

def production_materials_cost(lines: Iterable[Any]) -> Decimal:
    return sum((to_decimal(line.cost) for line in lines), ZERO)


def production_labor_cost(staff: Iterable[Any], hourly_rate) -> Decimal:
    rate = to_decimal(hourly_rate)
    return sum((to_decimal(member.hours) * rate for member in staff), ZERO)


def additional_cost(entries: Iterable[Mapping[str, Any]]) -> Decimal:
    return sum((to_decimal(entry.get("amount")) for entry in entries), ZERO)


def production_total_cost(materials, labor, overhead, additional_entries=()) -> Decimal:
    return to_decimal(materials) + to_decimal(labor) + to_decimal(overhead) + additional_cost(additional_entries)


def production_cost_per_unit(total_cost, produced) -> Decimal:
    produced = to_decimal(produced)
    if produced == 0:
        return ZERO
    return to_decimal(total_cost) / produced


def production_efficiency(produced, rejected) -> Decimal:
    produced = to_decimal(produced)
    if produced == 0:
        return ZERO
    return (produced - to_decimal(rejected)) / produced * HUNDRED


def completion_issues(produced, failed_checks: int, consumed_material_ids: Iterable[int],
                      planned_material_ids: Iterable[int]) -> List[str]:
    """Reasons a production run cannot be signed off; empty when it can."""
    issues = []
    if to_decimal(produced) == 0:
        issues.append("No production quantity recorded")
    if failed_checks > 0:
        issues.append(f"{failed_checks} quality checks failed")
    # Only the number of distinct materials is compared, not quantities.
    if len(set(consumed_material_ids)) != len(set(planned_material_ids)):
        issues.append("Material usage does not match BOM specifications")
    return issues


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

def stock_after(current, transaction_type: str, quantity) -> Decimal:
    """
    Balance after applying one transaction.

    ``in``/``production-output`` add, ``out``/``production-use`` subtract and
    ``adjustment`` sets the balance. The result may be negative; rejecting
    that is the caller's job.
    """
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f"Invalid transaction type. Valid: {list(TRANSACTION_TYPES)}", "type")
    quantity = to_decimal(quantity)
    # Direction comes from the type, never from the sign.
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than zero", "quantity")

    current = to_decimal(current)
    if transaction_type in INCOMING_TYPES:
        return current + quantity
    if transaction_type in OUTGOING_TYPES:
        return current - quantity
    return quantity


def transaction_cost_total(quantity, cost_per_unit=None, cost_total=None) -> Optional[Decimal]:
    if cost_total is not None:
        return to_decimal(cost_total)
    if cost_per_unit is not None:
        return to_decimal(cost_per_unit) * to_decimal(quantity)
    return None


def moving_average(transactions: Iterable[Any], previous_average=ZERO) -> Decimal:
    """
    Σ cost_total / Σ quantity over every incoming transaction in the ledger.

    Recomputed from the full history on each append. Keeps the previous
    average while no incoming quantity has been recorded.
    """
    total_cost = ZERO
    total_quantity = ZERO
    for txn in transactions:
        if txn.type not in INCOMING_TYPES:
            continue
        total_quantity += to_decimal(txn.quantity)
        if txn.cost_total is not None:
            total_cost += to_decimal(txn.cost_total)
    if total_quantity > 0:
        return total_cost / total_quantity
    return to_decimal(previous_average)


def apply_batch(batches: List[Dict[str, Any]], transaction_type: str, quantity, batch_number: str,
                manufacturing_date=None, expiry_date=None, location: str = "") -> List[Dict[str, Any]]:
    """Track per-batch quantities alongside the balance when a batch number is supplied."""
    if not batch_number:
        return batches
    batches = [dict(b) for b in batches]
    entry = next((b for b in batches if b.get("batch_number") == batch_number), None)
    if entry is None:
        entry = {
            "batch_number": batch_number,
            "quantity": "0",
            "manufacturing_date": manufacturing_date,
            "expiry_date": expiry_date,
            "location": location,
        }
        batches.append(entry)
    entry["quantity"] = str(stock_after(to_decimal(entry["quantity"]), transaction_type, quantity))
    return batches
