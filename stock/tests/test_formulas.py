from decimal import Decimal
from types import SimpleNamespace

from django.test import SimpleTestCase

from stock import formulas
from stock.services.base_service import ValidationError, money, round_decimal


def line(material_id, quantity, wastage="0", unit="kg"):
    return SimpleNamespace(
        material_id=material_id, quantity=Decimal(quantity), wastage_percent=Decimal(wastage), unit=unit
    )


def txn(type, quantity, cost_total=None):
    return SimpleNamespace(
        type=type,
        quantity=Decimal(quantity),
        cost_total=Decimal(cost_total) if cost_total is not None else None,
    )


class BOMFormulaTests(SimpleTestCase):

    def test_material_cost_applies_wastage(self):
        lines = [line(1, "10", "10")]
        self.assertEqual(formulas.bom_material_cost(lines, {1: Decimal("2.5")}), Decimal("27.5"))

    def test_material_cost_skips_missing_materials(self):
        lines = [line(1, "10"), line(2, "5")]
        self.assertEqual(formulas.bom_material_cost(lines, {1: Decimal("2")}), Decimal("20"))

    def test_requirements_scale_with_batch(self):
        needed = formulas.materials_needed([line(1, "10", "10")], Decimal("100"), Decimal("500"))
        self.assertEqual(needed, [{"material_id": 1, "quantity": Decimal("55"), "unit": "kg"}])

    def test_requirements_are_linear_in_quantity(self):
        lines = [line(1, "7", "3"), line(2, "0.5", "12.5")]
        single = formulas.materials_needed(lines, Decimal("40"), Decimal("30"))
        double = formulas.materials_needed(lines, Decimal("40"), Decimal("60"))
        for a, b in zip(single, double):
            self.assertEqual(a["quantity"] * 2, b["quantity"])

    def test_zero_batch_size_is_rejected(self):
        with self.assertRaises(ValidationError):
            formulas.materials_needed([line(1, "1")], Decimal("0"), Decimal("10"))

    def test_cost_per_unit(self):
        value = formulas.bom_cost_per_unit(Decimal("27.5"), Decimal("10"), Decimal("2.5"), Decimal("100"))
        self.assertEqual(value, Decimal("0.4"))
        self.assertEqual(formulas.bom_cost_per_unit(1, 1, 1, 0), Decimal("0"))

    def test_shortages_include_deleted_materials(self):
        flour = SimpleNamespace(name="Flour", stock_current=Decimal("40"))
        oil = SimpleNamespace(name="Oil", stock_current=Decimal("100"))
        needed = [
            {"material_id": 1, "quantity": Decimal("55"), "unit": "kg"},
            {"material_id": 2, "quantity": Decimal("10"), "unit": "l"},
            {"material_id": 3, "quantity": Decimal("1"), "unit": "kg"},
        ]
        shortages = formulas.find_shortages(needed, {1: flour, 2: oil})

        self.assertEqual([s["material_id"] for s in shortages], [1, 3])
        self.assertEqual(shortages[0]["available"], Decimal("40"))
        self.assertIsNone(shortages[1]["name"])
        self.assertEqual(shortages[1]["available"], Decimal("0"))


class ProductionFormulaTests(SimpleTestCase):

    def test_total_cost_sums_every_component(self):
        total = formulas.production_total_cost(
            Decimal("100"), Decimal("45"), Decimal("5"),
            [{"description": "Packaging", "amount": "12.50"}, {"description": "Freight", "amount": "7.5"}],
        )
        self.assertEqual(total, Decimal("170"))

    def test_labor_cost_uses_hourly_rate(self):
        staff = [SimpleNamespace(hours=Decimal("2")), SimpleNamespace(hours=Decimal("1.5"))]
        self.assertEqual(formulas.production_labor_cost(staff, "15"), Decimal("52.5"))

    def test_cost_per_unit_and_efficiency_guard_zero_output(self):
        self.assertEqual(formulas.production_cost_per_unit(Decimal("100"), 0), Decimal("0"))
        self.assertEqual(formulas.production_efficiency(0, 0), Decimal("0"))
        self.assertEqual(formulas.production_cost_per_unit(Decimal("100"), Decimal("50")), Decimal("2"))
        self.assertEqual(formulas.production_efficiency(Decimal("200"), Decimal("10")), Decimal("95"))

    def test_completion_issues(self):
        self.assertEqual(formulas.completion_issues(Decimal("10"), 0, [1, 2], [2, 1]), [])

        issues = formulas.completion_issues(Decimal("0"), 2, [1], [1, 2])
        self.assertEqual(issues, [
            "No production quantity recorded",
            "2 quality checks failed",
            "Material usage does not match BOM specifications",
        ])


class InventoryFormulaTests(SimpleTestCase):

    def test_stock_after_by_type(self):
        self.assertEqual(formulas.stock_after(Decimal("10"), "in", Decimal("5")), Decimal("15"))
        self.assertEqual(formulas.stock_after(Decimal("10"), "production-output", Decimal("5")), Decimal("15"))
        self.assertEqual(formulas.stock_after(Decimal("10"), "out", Decimal("4")), Decimal("6"))
        self.assertEqual(formulas.stock_after(Decimal("10"), "production-use", Decimal("12")), Decimal("-2"))
        self.assertEqual(formulas.stock_after(Decimal("10"), "adjustment", Decimal("3")), Decimal("3"))

    def test_stock_after_rejects_non_positive_and_unknown_type(self):
        with self.assertRaises(ValidationError):
            formulas.stock_after(Decimal("10"), "in", Decimal("0"))
        with self.assertRaises(ValidationError):
            formulas.stock_after(Decimal("10"), "out", Decimal("-50"))
        with self.assertRaises(ValidationError):
            formulas.stock_after(Decimal("10"), "gift", Decimal("1"))

    def test_moving_average_over_incoming(self):
        history = [
            txn("in", "100", "250"),
            txn("out", "30"),
            txn("in", "50", "200"),
        ]
        self.assertEqual(formulas.moving_average(history), Decimal("3"))

    def test_moving_average_keeps_previous_without_incoming(self):
        self.assertEqual(formulas.moving_average([txn("out", "5")], Decimal("4.2")), Decimal("4.2"))

    def test_transaction_cost_total(self):
        self.assertEqual(formulas.transaction_cost_total(Decimal("10"), Decimal("2.5")), Decimal("25"))
        self.assertEqual(formulas.transaction_cost_total(Decimal("10"), Decimal("2.5"), Decimal("30")), Decimal("30"))
        self.assertIsNone(formulas.transaction_cost_total(Decimal("10")))

    def test_apply_batch_tracks_quantities(self):
        batches = formulas.apply_batch([], "in", Decimal("10"), "B1")
        batches = formulas.apply_batch(batches, "out", Decimal("4"), "B1")
        batches = formulas.apply_batch(batches, "in", Decimal("3"), "")

        self.assertEqual(len(batches), 1)
        self.assertEqual(Decimal(batches[0]["quantity"]), Decimal("6"))


class RoundingTests(SimpleTestCase):

    def test_plain_integers_are_rounded(self):
        self.assertEqual(round_decimal(0), Decimal("0.0000"))
        self.assertEqual(round_decimal(7, 2), Decimal("7.00"))
        self.assertEqual(money(0), "0.0000")

    def test_half_up(self):
        self.assertEqual(round_decimal(Decimal("0.12345")), Decimal("0.1235"))
