from decimal import Decimal

from django.test import TestCase

from stock.models import BOM
from stock.services import BOMService, BusinessRuleError, ProductionService, ValidationError
from stock.tests.factories import make_bom, make_brand, make_material, make_product, production_window


class BOMServiceTests(TestCase):

    def setUp(self):
        self.brand = make_brand()
        self.flour = make_material(self.brand, stock=Decimal("1000"), cost=Decimal("2.5"))
        self.product = make_product(self.brand)

    def create_bom(self, **extra):
        result = BOMService.create(
            product=self.product,
            brand=self.brand,
            batch_quantity=Decimal("100"),
            materials=[{
                "material": self.flour.id,
                "quantity": Decimal("10"),
                "unit": "kg",
                "wastage_percent": Decimal("10"),
            }],
            **extra,
        )
        return BOM.objects.get(id=result["data"]["bom"]["id"])

    def test_create_rolls_up_material_cost(self):
        bom = self.create_bom()

        self.assertEqual(bom.material_cost, Decimal("27.5"))
        self.assertEqual(bom.status, BOM.Status.DRAFT)
        self.assertEqual(bom.materials.count(), 1)

    def test_duplicate_version_is_rejected(self):
        self.create_bom()
        with self.assertRaises(BusinessRuleError):
            self.create_bom()

    def test_material_from_other_brand_is_rejected(self):
        other = make_brand(code="PURE-001", name="Pure Naturals")
        oil = make_material(other, code="RM-002", unit="l", cost=Decimal("8"))

        with self.assertRaises(ValidationError):
            BOMService.create(
                product=self.product,
                brand=self.brand,
                batch_quantity=Decimal("100"),
                materials=[{"material": oil.id, "quantity": Decimal("1"), "unit": "l"}],
            )

    def test_recompute_is_idempotent(self):
        bom = self.create_bom()
        first = BOMService.recompute_material_cost(bom)
        second = BOMService.recompute_material_cost(bom)
        self.assertEqual(first, second)

    def test_recompute_follows_price_changes(self):
        bom = self.create_bom()
        self.flour.cost_per_unit = Decimal("3")
        self.flour.save()

        self.assertEqual(BOMService.recompute_material_cost(bom), Decimal("33"))

    def test_requirements_for_production_quantity(self):
        bom = self.create_bom()
        result = BOMService.get_requirements(bom.id, "500")

        materials = result["data"]["materials"]
        self.assertEqual(len(materials), 1)
        self.assertEqual(Decimal(materials[0]["quantity"]), Decimal("55"))
        self.assertEqual(materials[0]["code"], "RM-001")

    def test_requirements_scale_linearly(self):
        bom = self.create_bom()
        single = BOMService.requirements(bom, Decimal("120"))
        double = BOMService.requirements(bom, Decimal("240"))
        self.assertEqual(single[0]["quantity"] * 2, double[0]["quantity"])

    def test_availability_reports_shortage(self):
        self.flour.stock_current = Decimal("40")
        self.flour.save()
        bom = self.create_bom()

        result = BOMService.check_availability(bom.id, "500")["data"]

        self.assertFalse(result["can_produce"])
        self.assertEqual(Decimal(result["shortages"][0]["required"]), Decimal("55"))
        self.assertEqual(Decimal(result["shortages"][0]["available"]), Decimal("40"))

    def test_deleted_material_surfaces_as_shortage(self):
        bom = self.create_bom()
        material_id = self.flour.id
        self.flour.delete()

        shortages = BOMService.shortages(bom, Decimal("100"))

        self.assertEqual(len(shortages), 1)
        self.assertEqual(shortages[0]["material_id"], material_id)
        self.assertEqual(shortages[0]["available"], Decimal("0"))

    def test_activate_requires_materials(self):
        bom = make_bom(self.product)
        with self.assertRaises(BusinessRuleError):
            BOMService.activate(bom.id)

    def test_activate_archives_previous_active_version(self):
        old = make_bom(self.product, [(self.flour, Decimal("5"), Decimal("0"))], status=BOM.Status.ACTIVE)
        new = make_bom(self.product, [(self.flour, Decimal("6"), Decimal("0"))], version="2.0")

        BOMService.activate(new.id)

        old.refresh_from_db()
        new.refresh_from_db()
        self.assertEqual(new.status, BOM.Status.ACTIVE)
        self.assertEqual(old.status, BOM.Status.ARCHIVED)

    def test_invalid_transition_is_rejected(self):
        bom = self.create_bom()
        BOMService.archive(bom.id)

        with self.assertRaises(BusinessRuleError):
            BOMService.activate(bom.id)

        BOMService.restore_draft(bom.id)
        bom.refresh_from_db()
        self.assertEqual(bom.status, BOM.Status.DRAFT)

    def test_archived_bom_cannot_be_edited(self):
        bom = self.create_bom()
        BOMService.archive(bom.id)

        with self.assertRaises(BusinessRuleError):
            BOMService.update(bom.id, labor_cost=Decimal("5"))

    def test_line_changes_reprice_the_bom(self):
        bom = self.create_bom()
        line = bom.materials.get()

        BOMService.update_material(line.id, quantity=Decimal("20"), wastage_percent=Decimal("0"))
        bom.refresh_from_db()
        self.assertEqual(bom.material_cost, Decimal("50"))

        BOMService.remove_material(line.id)
        bom.refresh_from_db()
        self.assertEqual(bom.material_cost, Decimal("0"))

    def test_new_version_copies_lines(self):
        bom = self.create_bom()

        result = BOMService.new_version(bom.id, "1.1")
        copy = BOM.objects.get(id=result["data"]["bom"]["id"])

        self.assertEqual(copy.parent_bom_id, bom.id)
        self.assertEqual(copy.status, BOM.Status.DRAFT)
        self.assertEqual(copy.materials.count(), 1)
        self.assertEqual(copy.material_cost, bom.material_cost)

        with self.assertRaises(BusinessRuleError):
            BOMService.new_version(bom.id, "1.1")

    def test_approval_is_appended(self):
        bom = self.create_bom()

        BOMService.approve(bom.id, "review", "Dana", "manager", "Looks right")
        bom.refresh_from_db()

        self.assertEqual(len(bom.approvals), 1)
        self.assertEqual(bom.approvals[0]["approver"], {"name": "Dana", "role": "manager"})

    def test_bom_used_by_production_cannot_be_deleted(self):
        bom = self.create_bom()
        BOMService.activate(bom.id)
        bom.refresh_from_db()
        start, end = production_window()
        ProductionService.create(bom=bom, quantity_planned=Decimal("100"), start_date=start, end_date=end)

        with self.assertRaises(BusinessRuleError):
            BOMService.delete(bom.id)
