import json
from decimal import Decimal

from django.test import TestCase, override_settings

from main.services.auth_service import AuthService
from stock.models import Inventory, Production
from stock.tests.factories import make_brand, make_material, make_product, make_user, production_window

API = "/api/v1"


class APITestCase(TestCase):

    def login(self, role):
        user = make_user(role)
        token = AuthService.login(user.email, "Secret@123")["token"]
        return {"HTTP_AUTHORIZATION": f"Bearer {token}"}

    def call(self, method, path, data=None, auth=None):
        kwargs = dict(auth or {})
        if data is not None:
            kwargs.update(data=json.dumps(data), content_type="application/json")
        response = getattr(self.client, method)(f"{API}{path}", **kwargs)
        return response, response.json()


class EnvelopeTests(APITestCase):

    def setUp(self):
        self.brand = make_brand()
        self.admin = self.login("admin")

    def test_success_envelope(self):
        response, body = self.call("get", "/raw-materials", auth=self.admin)

        self.assertEqual(response.status_code, 200)
        self.assertTrue(body["success"])
        self.assertIn("timestamp", body)
        self.assertEqual(body["data"]["pagination"]["total_items"], 0)

    def test_missing_token_is_unauthorized(self):
        response, body = self.call("get", "/raw-materials")

        self.assertEqual(response.status_code, 401)
        self.assertFalse(body["success"])
        self.assertEqual(body["error"]["code"], "unauthorized")

    def test_garbage_token_is_unauthorized(self):
        response, _ = self.call("get", "/boms", auth={"HTTP_AUTHORIZATION": "Bearer nope"})
        self.assertEqual(response.status_code, 401)

    def test_validation_errors_are_listed_per_field(self):
        response, body = self.call("post", "/raw-materials", {"code": "RM-9"}, auth=self.admin)

        self.assertEqual(response.status_code, 400)
        fields = {e["field"] for e in body["errors"]}
        self.assertTrue({"name", "brand", "unit", "cost_per_unit"} <= fields)

    def test_unknown_resource_is_not_found(self):
        response, body = self.call("get", "/raw-materials/999", auth=self.admin)

        self.assertEqual(response.status_code, 404)
        self.assertEqual(body["error"]["code"], "not_found")

    def test_unknown_route_returns_json(self):
        response, body = self.call("get", "/no-such-thing", auth=self.admin)

        self.assertEqual(response.status_code, 404)
        self.assertFalse(body["success"])


class PermissionTests(APITestCase):

    def setUp(self):
        self.brand = make_brand()
        self.payload = {
            "code": "rm-100",
            "name": "Cane Sugar",
            "brand": self.brand.id,
            "category": "Sweeteners",
            "unit": "kg",
            "cost_per_unit": "1.80",
        }

    def test_viewer_cannot_create_raw_material(self):
        viewer = self.login("viewer")

        response, body = self.call("post", "/raw-materials", self.payload, auth=viewer)

        self.assertEqual(response.status_code, 403)
        self.assertEqual(body["error"]["code"], "forbidden")

    def test_viewer_can_list_raw_materials(self):
        response, _ = self.call("get", "/raw-materials", auth=self.login("viewer"))
        self.assertEqual(response.status_code, 200)

    def test_supervisor_creates_raw_material_with_normalized_code(self):
        response, body = self.call("post", "/raw-materials", self.payload, auth=self.login("supervisor"))

        self.assertEqual(response.status_code, 201)
        self.assertEqual(body["data"]["raw_material"]["code"], "RM-100")

    def test_operator_cannot_approve_production(self):
        material = make_material(self.brand)
        product = make_product(self.brand)
        admin = self.login("admin")
        operator = self.login("operator")

        _, body = self.call("post", "/boms", {
            "product": product.id,
            "brand": self.brand.id,
            "batch_quantity": "100",
            "materials": [{"material": material.id, "quantity": "10", "unit": "kg"}],
        }, auth=admin)
        bom_id = body["data"]["bom"]["id"]

        response, _ = self.call("post", f"/boms/{bom_id}/activate", auth=operator)
        self.assertEqual(response.status_code, 403)


@override_settings(LABOR_HOURLY_RATE="15")
class ProductionFlowTests(APITestCase):

    def setUp(self):
        self.brand = make_brand()
        self.flour = make_material(self.brand, stock=Decimal("1000"), cost=Decimal("2.5"))
        self.product = make_product(self.brand)
        self.manager = self.login("manager")

    def test_bom_to_inventory(self):
        _, body = self.call("post", "/boms", {
            "product": self.product.id,
            "brand": self.brand.id,
            "batch_quantity": "100",
            "materials": [{"material": self.flour.id, "quantity": "10", "unit": "kg", "wastage_percent": "10"}],
        }, auth=self.manager)
        bom_id = body["data"]["bom"]["id"]

        response, _ = self.call("post", f"/boms/{bom_id}/activate", auth=self.manager)
        self.assertEqual(response.status_code, 200)

        _, body = self.call("get", f"/boms/{bom_id}/requirements?quantity=500", auth=self.manager)
        self.assertEqual(Decimal(body["data"]["materials"][0]["quantity"]), Decimal("55"))

        start, end = production_window()
        response, body = self.call("post", "/productions", {
            "bom": bom_id,
            "quantity_planned": "500",
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
        }, auth=self.manager)
        self.assertEqual(response.status_code, 201)
        production_id = body["data"]["production"]["id"]

        self.call("put", f"/productions/{production_id}/status", {"status": "in-progress"}, auth=self.manager)
        self.call("post", f"/productions/{production_id}/materials", {
            "material": self.flour.id, "quantity_used": "55", "unit": "kg",
        }, auth=self.manager)
        self.call("post", f"/productions/{production_id}/staff", {
            "role": "baker", "name": "Sam", "hours": "2",
        }, auth=self.manager)
        self.call("put", f"/productions/{production_id}", {
            "quantity_produced": "500", "quantity_rejected": "10",
        }, auth=self.manager)

        _, body = self.call("get", f"/productions/{production_id}/validation", auth=self.manager)
        self.assertTrue(body["data"]["is_valid"])

        for status in ("completed", "quality-check", "approved"):
            response, body = self.call(
                "put", f"/productions/{production_id}/status", {"status": status}, auth=self.manager
            )
            self.assertEqual(response.status_code, 200, body["message"])

        _, body = self.call("post", "/inventory/transactions", {
            "item_type": "raw-material",
            "item_id": self.flour.id,
            "brand": self.brand.id,
            "type": "in",
            "quantity": "100",
            "cost_per_unit": "2.5",
            "reference_type": "purchase",
            "reference_number": "PO-7",
        }, auth=self.manager)
        ledger_id = body["data"]["inventory"]["id"]

        response, body = self.call("post", f"/productions/{production_id}/post-inventory", auth=self.manager)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(body["data"]["transactions"]), 2)

        self.assertEqual(Inventory.objects.get(id=ledger_id).current_stock, Decimal("45"))
        self.assertEqual(Production.objects.get(id=production_id).status, Production.Status.APPROVED)

        response, body = self.call("post", f"/productions/{production_id}/post-inventory", auth=self.manager)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(body["error"]["code"], "business_rule")

    def test_invalid_transition_is_a_business_rule_error(self):
        bom_response = self.call("post", "/boms", {
            "product": self.product.id,
            "brand": self.brand.id,
            "batch_quantity": "100",
            "materials": [{"material": self.flour.id, "quantity": "1", "unit": "kg"}],
        }, auth=self.manager)[1]
        bom_id = bom_response["data"]["bom"]["id"]
        self.call("post", f"/boms/{bom_id}/activate", auth=self.manager)

        start, end = production_window()
        _, body = self.call("post", "/productions", {
            "bom": bom_id, "quantity_planned": "10",
            "start_date": start.isoformat(), "end_date": end.isoformat(),
        }, auth=self.manager)
        production_id = body["data"]["production"]["id"]

        response, body = self.call(
            "put", f"/productions/{production_id}/status", {"status": "completed"}, auth=self.manager
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(body["error"]["details"]["rule"], "invalid_status_transition")

    def test_overdraw_returns_insufficient_stock(self):
        _, body = self.call("post", "/inventory", {
            "item_type": "raw-material", "item_id": self.flour.id, "brand": self.brand.id,
        }, auth=self.manager)
        ledger_id = body["data"]["inventory"]["id"]

        response, body = self.call("post", f"/inventory/{ledger_id}/transactions", {
            "type": "out", "quantity": "5", "reference_type": "sale", "reference_number": "SO-1",
        }, auth=self.manager)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(body["error"]["code"], "insufficient_stock")
        self.assertEqual(Inventory.objects.get(id=ledger_id).transactions.count(), 0)

    def test_negative_quantity_is_a_validation_error(self):
        _, body = self.call("post", "/inventory", {
            "item_type": "raw-material", "item_id": self.flour.id, "brand": self.brand.id,
        }, auth=self.manager)
        ledger_id = body["data"]["inventory"]["id"]

        response, body = self.call("post", f"/inventory/{ledger_id}/transactions", {
            "type": "out", "quantity": "-50", "reference_type": "sale", "reference_number": "SO-1",
        }, auth=self.manager)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(body["errors"][0]["field"], "quantity")
        ledger = Inventory.objects.get(id=ledger_id)
        self.assertEqual(ledger.current_stock, Decimal("0"))
        self.assertEqual(ledger.transactions.count(), 0)

    def test_low_stock_requires_brand(self):
        response, body = self.call("get", "/inventory/low-stock", auth=self.manager)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(body["errors"][0]["field"], "brand_id")
