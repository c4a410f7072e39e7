from datetime import timedelta
from decimal import Decimal

from django.test import TestCase, override_settings
from django.utils import timezone

from stock.models import BOM, Inventory, InventoryTransaction, Production, ProductionMaterial, QualityCheck
from stock.services import (
    BusinessRuleError, InsufficientStockError, InventoryService, ProductionService, ValidationError,
)
from stock.services.base_service import generate_batch_number
from stock.tests.factories import (
    make_bom, make_brand, make_material, make_product, make_user, production_window,
)


@override_settings(LABOR_HOURLY_RATE="15")
class ProductionServiceTests(TestCase):

    def setUp(self):
        self.brand = make_brand()
        self.flour = make_material(self.brand, stock=Decimal("1000"), cost=Decimal("2.5"))
        self.product = make_product(self.brand)
        self.bom = make_bom(
            self.product, [(self.flour, Decimal("10"), Decimal("10"))], status=BOM.Status.ACTIVE
        )
        self.user = make_user("manager")

    def plan(self, quantity="500", **extra):
        start, end = production_window()
        result = ProductionService.create(
            bom=self.bom, quantity_planned=Decimal(quantity), start_date=start, end_date=end, **extra
        )
        return Production.objects.get(id=result["data"]["production"]["id"]), result["data"]["shortages"]

    def run_to_completion(self, production, produced="500", rejected="10"):
        ProductionService.change_status(production.id, Production.Status.IN_PROGRESS)
        ProductionService.add_material(production.id, self.flour, Decimal("55"), "kg")
        ProductionService.add_staff(production.id, "baker", "Sam", Decimal("2"))
        ProductionService.update(
            production.id, quantity_produced=Decimal(produced), quantity_rejected=Decimal(rejected)
        )
        ProductionService.change_status(production.id, Production.Status.COMPLETED)
        production.refresh_from_db()
        return production

    def approve(self, production):
        ProductionService.change_status(production.id, Production.Status.QUALITY_CHECK)
        ProductionService.change_status(production.id, Production.Status.APPROVED)
        production.refresh_from_db()
        return production

    def test_batch_numbers_follow_monthly_sequence(self):
        first, _ = self.plan()
        second, _ = self.plan()

        prefix = timezone.now().strftime("%Y%m")
        self.assertEqual(first.batch_number, f"{prefix}-0001")
        self.assertEqual(second.batch_number, f"{prefix}-0002")

    def test_batch_sequence_grows_past_four_digits(self):
        first, _ = self.plan()
        second, _ = self.plan()
        prefix = timezone.now().strftime("%Y%m")
        Production.objects.filter(id=first.id).update(batch_number=f"{prefix}-9999")
        Production.objects.filter(id=second.id).update(batch_number=f"{prefix}-10000")

        self.assertEqual(generate_batch_number(Production), f"{prefix}-10001")

        third, _ = self.plan()
        self.assertEqual(third.batch_number, f"{prefix}-10001")

    def test_create_returns_zero_costs(self):
        start, end = production_window()
        result = ProductionService.create(
            bom=self.bom, quantity_planned=Decimal("100"), start_date=start, end_date=end
        )

        production = result["data"]["production"]
        self.assertEqual(production["status"], Production.Status.PLANNED)
        self.assertEqual(Decimal(production["costs"]["materials"]), Decimal("0"))
        self.assertEqual(Decimal(production["efficiency"]), Decimal("0"))

    def test_production_copies_bom_context(self):
        production, shortages = self.plan()

        self.assertEqual(production.status, Production.Status.PLANNED)
        self.assertEqual(production.brand_id, self.brand.id)
        self.assertEqual(production.product_id, self.product.id)
        self.assertEqual(shortages, [])

    def test_shortages_are_reported_but_do_not_block(self):
        production, shortages = self.plan(quantity="20000")

        self.assertIsNotNone(production.id)
        self.assertEqual(len(shortages), 1)
        self.assertEqual(Decimal(shortages[0]["required"]), Decimal("2200"))

    def test_requires_active_bom(self):
        draft = make_bom(self.product, [(self.flour, Decimal("1"), Decimal("0"))], version="2.0")
        start, end = production_window()

        with self.assertRaises(BusinessRuleError):
            ProductionService.create(bom=draft, quantity_planned=Decimal("10"), start_date=start, end_date=end)

    def test_end_date_must_follow_start(self):
        start, end = production_window()
        with self.assertRaises(ValidationError):
            ProductionService.create(bom=self.bom, quantity_planned=Decimal("10"), start_date=end, end_date=start)

    def test_costs_roll_up(self):
        production, _ = self.plan(
            overhead_cost=Decimal("5"),
            additional_costs=[{"description": "Packaging", "amount": Decimal("12.5")}],
        )
        production = self.run_to_completion(production)

        self.assertEqual(production.materials_cost, Decimal("137.5"))
        self.assertEqual(production.labor_cost, Decimal("30"))
        self.assertEqual(ProductionService.total_cost(production), Decimal("185"))

        data = ProductionService.get(production.id)["data"]["production"]
        self.assertEqual(Decimal(data["efficiency"]), Decimal("98"))
        self.assertEqual(Decimal(data["cost_per_unit"]), Decimal("0.37"))

    def test_material_cost_is_fixed_at_consumption(self):
        production, _ = self.plan()
        ProductionService.add_material(production.id, self.flour, Decimal("10"), "kg", wastage=Decimal("2"))

        self.flour.cost_per_unit = Decimal("99")
        self.flour.save()

        line = production.materials.get()
        self.assertEqual(line.cost, Decimal("30"))

    def test_empty_consumption_is_rejected(self):
        production, _ = self.plan()

        with self.assertRaises(ValidationError):
            ProductionService.add_material(production.id, self.flour, Decimal("0"), "kg")

        self.assertFalse(production.materials.exists())

    def test_invalid_transitions_are_rejected(self):
        production, _ = self.plan()

        with self.assertRaises(BusinessRuleError):
            ProductionService.change_status(production.id, Production.Status.APPROVED)
        with self.assertRaises(ValidationError):
            ProductionService.change_status(production.id, "shipped")

    def test_completion_requires_clean_run(self):
        production, _ = self.plan()
        ProductionService.change_status(production.id, Production.Status.IN_PROGRESS)

        issues = ProductionService.validate_completion(production.id)["data"]["issues"]
        self.assertIn("No production quantity recorded", issues)
        self.assertIn("Material usage does not match BOM specifications", issues)

        with self.assertRaises(BusinessRuleError):
            ProductionService.change_status(production.id, Production.Status.COMPLETED)

    def test_failed_quality_check_blocks_completion(self):
        production, _ = self.plan()
        ProductionService.change_status(production.id, Production.Status.IN_PROGRESS)
        ProductionService.add_material(production.id, self.flour, Decimal("55"), "kg")
        ProductionService.update(production.id, quantity_produced=Decimal("500"))
        ProductionService.add_quality_check(production.id, "moisture", QualityCheck.Status.FAILED)

        issues = ProductionService.validate_completion(production.id)["data"]["issues"]
        self.assertEqual(issues, ["1 quality checks failed"])

    def test_rejected_cannot_exceed_produced(self):
        production, _ = self.plan()
        with self.assertRaises(ValidationError):
            ProductionService.update(
                production.id, quantity_produced=Decimal("10"), quantity_rejected=Decimal("11")
            )

    def test_approved_production_is_locked(self):
        production = self.approve(self.run_to_completion(self.plan()[0]))

        with self.assertRaises(BusinessRuleError):
            ProductionService.update(production.id, quantity_produced=Decimal("1"))
        with self.assertRaises(BusinessRuleError):
            ProductionService.add_staff(production.id, "baker", "Kim", Decimal("1"))

    def test_only_planned_production_can_be_deleted(self):
        production, _ = self.plan()
        ProductionService.change_status(production.id, Production.Status.IN_PROGRESS)

        with self.assertRaises(BusinessRuleError):
            ProductionService.delete(production.id)

    def test_issue_lifecycle(self):
        production, _ = self.plan()
        issue = ProductionService.report_issue(production.id, "machine", "Oven jam", "high")["data"]["issue"]

        resolved = ProductionService.resolve_issue(issue["id"], "Cleared belt", resolved_by="Sam")["data"]["issue"]
        self.assertEqual(resolved["status"], "resolved")
        self.assertEqual(resolved["resolution"]["by"], "Sam")

        with self.assertRaises(BusinessRuleError):
            ProductionService.resolve_issue(issue["id"], "Again")

    def test_notes_are_appended(self):
        production, _ = self.plan()
        ProductionService.add_note(production.id, "Started late", author="Sam")
        ProductionService.add_note(production.id, "Caught up", author="Sam")

        production.refresh_from_db()
        self.assertEqual([n["content"] for n in production.notes], ["Started late", "Caught up"])

    def test_summary_groups_by_product(self):
        first = self.run_to_completion(self.plan()[0], produced="500", rejected="10")
        self.run_to_completion(self.plan()[0], produced="300", rejected="0")

        today = timezone.now().date().isoformat()
        later = (timezone.now() + timedelta(days=2)).date().isoformat()
        summary = ProductionService.get_summary(today, later, brand_id=self.brand.id)["data"]

        self.assertEqual(len(summary["products"]), 1)
        group = summary["products"][0]
        self.assertEqual(group["batches"], 2)
        self.assertEqual(Decimal(group["produced"]), Decimal("800"))
        self.assertEqual(Decimal(group["rejected"]), Decimal("10"))
        self.assertEqual(group["product_code"], first.product.code)

    def test_summary_excludes_batches_ending_after_window(self):
        self.run_to_completion(self.plan()[0])

        today = timezone.now().date().isoformat()
        summary = ProductionService.get_summary(today, today, brand_id=self.brand.id)["data"]

        self.assertEqual(summary["products"], [])

    def stock_flour_ledger(self, quantity):
        ledger, _ = InventoryService.get_or_create_ledger(
            Inventory.ItemType.RAW_MATERIAL, self.flour.id, self.brand
        )
        InventoryService.append_transaction(
            ledger, type="in", quantity=Decimal(quantity), cost_per_unit=Decimal("2.5"),
            reference_type="purchase", reference_number="PO-1",
        )
        return ledger

    def test_post_to_inventory(self):
        ledger = self.stock_flour_ledger("100")
        production = self.approve(self.run_to_completion(self.plan()[0]))

        result = ProductionService.post_to_inventory(production.id, user=self.user)["data"]

        ledger.refresh_from_db()
        self.assertEqual(ledger.current_stock, Decimal("45"))

        output = Inventory.objects.get(
            item_type=Inventory.ItemType.FINISHED_PRODUCT, item_id=self.product.id, brand=self.brand
        )
        self.assertEqual(output.current_stock, Decimal("490"))
        movement = output.transactions.get()
        self.assertEqual(movement.type, InventoryTransaction.TransactionType.PRODUCTION_OUTPUT)
        self.assertEqual(movement.cost_total, Decimal("167.5"))
        self.assertEqual(movement.reference_number, production.batch_number)
        self.assertEqual(movement.performed_by_id, self.user.id)
        self.assertEqual(len(result["transactions"]), 2)

        with self.assertRaises(BusinessRuleError):
            ProductionService.post_to_inventory(production.id)

    def test_post_requires_approval(self):
        production = self.run_to_completion(self.plan()[0])
        with self.assertRaises(BusinessRuleError):
            ProductionService.post_to_inventory(production.id)

    def test_post_rolls_back_on_shortfall(self):
        ledger = self.stock_flour_ledger("20")
        production = self.approve(self.run_to_completion(self.plan()[0]))

        with self.assertRaises(InsufficientStockError):
            ProductionService.post_to_inventory(production.id)

        production.refresh_from_db()
        ledger.refresh_from_db()
        self.assertIsNone(production.posted_to_inventory_at)
        self.assertEqual(ledger.current_stock, Decimal("20"))
        self.assertFalse(
            Inventory.objects.filter(item_type=Inventory.ItemType.FINISHED_PRODUCT).exists()
        )

    def test_post_skips_empty_material_lines(self):
        ledger = self.stock_flour_ledger("100")
        production = self.approve(self.run_to_completion(self.plan()[0]))
        ProductionMaterial.objects.create(
            production=production, material=self.flour,
            quantity_used=Decimal("0"), unit="kg", wastage=Decimal("0"), cost=Decimal("0"),
        )

        result = ProductionService.post_to_inventory(production.id)["data"]

        ledger.refresh_from_db()
        self.assertEqual(ledger.current_stock, Decimal("45"))
        self.assertEqual(len(result["transactions"]), 2)
