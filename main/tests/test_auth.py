import copy
import json
from unittest import mock

from django.test import TestCase

from main.models import Brand, Session, User
from main.services.auth_service import AuthService
from main.services.role_service import RoleService
from stock.tests.factories import make_brand, make_material, make_user

API = "/api/v1"


class AuthClientMixin:

    def bearer(self, user, password="Secret@123"):
        token = AuthService.login(user.email, password)["token"]
        return {"HTTP_AUTHORIZATION": f"Bearer {token}"}

    def call(self, method, path, data=None, auth=None):
        kwargs = dict(auth or {})
        if data is not None:
            kwargs.update(data=json.dumps(data), content_type="application/json")
        response = getattr(self.client, method)(f"{API}{path}", **kwargs)
        return response, response.json()


class LoginTests(AuthClientMixin, TestCase):

    def setUp(self):
        self.user = make_user("manager", email="manager@trackiq.test")

    def test_login_returns_token_and_user(self):
        response, body = self.call("post", "/auth/login", {
            "email": "manager@trackiq.test", "password": "Secret@123",
        })

        self.assertEqual(response.status_code, 200)
        self.assertTrue(body["data"]["token"])
        self.assertEqual(body["data"]["user"]["role"], "manager")
        self.assertNotIn("password", body["data"]["user"])

        self.user.refresh_from_db()
        self.assertIsNotNone(self.user.last_login_at)

    def test_wrong_password_is_unauthorized(self):
        response, body = self.call("post", "/auth/login", {
            "email": "manager@trackiq.test", "password": "Wrong@123",
        })

        self.assertEqual(response.status_code, 401)
        self.assertFalse(body["success"])

    def test_inactive_account_cannot_log_in(self):
        self.user.status = User.UserStatus.SUSPENDED
        self.user.save()

        response, _ = self.call("post", "/auth/login", {
            "email": "manager@trackiq.test", "password": "Secret@123",
        })
        self.assertEqual(response.status_code, 401)

    def test_me_and_logout(self):
        auth = self.bearer(self.user)

        response, body = self.call("get", "/auth/me", auth=auth)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(body["data"]["user"]["email"], "manager@trackiq.test")

        response, _ = self.call("post", "/auth/logout", auth=auth)
        self.assertEqual(response.status_code, 200)

        response, _ = self.call("get", "/auth/me", auth=auth)
        self.assertEqual(response.status_code, 401)

    def test_each_login_gets_its_own_session(self):
        first = AuthService.login(self.user.email, "Secret@123")["token"]
        second = AuthService.login(self.user.email, "Secret@123")["token"]

        self.assertNotEqual(first, second)
        self.assertEqual(Session.objects.filter(user=self.user).count(), 2)

        AuthService.logout(first)
        self.assertIsNone(AuthService.get_user_from_token(first))
        self.assertEqual(AuthService.get_user_from_token(second), self.user)


class RoleServiceTests(TestCase):

    def test_admin_can_do_everything(self):
        admin = make_user("admin")
        self.assertTrue(RoleService.has_permission(admin, "settings", "edit"))
        self.assertTrue(RoleService.has_permission(admin, "production", "approve"))

    def test_viewer_is_read_only(self):
        viewer = make_user("viewer")
        self.assertTrue(RoleService.has_permission(viewer, "inventory", "view"))
        self.assertFalse(RoleService.has_permission(viewer, "inventory", "create"))
        self.assertFalse(RoleService.has_permission(viewer, "users", "delete"))

    def test_sync_restores_role_defaults(self):
        operator = make_user("operator")
        operator.permissions = []
        operator.permissions_version = 0
        operator.save()

        RoleService.sync_permissions(operator)
        operator.refresh_from_db()

        self.assertEqual(operator.permissions_version, RoleService.POLICY_VERSION)
        self.assertTrue(RoleService.has_permission(operator, "production", "create"))

    def test_policy_change_applies_only_after_sync(self):
        viewer = make_user("viewer")
        updated = copy.deepcopy(RoleService.ROLES["viewer"])
        updated["permissions"].append({"module": "users", "actions": ["view"]})

        with mock.patch.dict(RoleService.ROLES, {"viewer": updated}), \
                mock.patch.object(RoleService, "POLICY_VERSION", 2):
            viewer.refresh_from_db()
            self.assertFalse(RoleService.has_permission(viewer, "users", "view"))
            self.assertEqual(viewer.permissions_version, 1)

            RoleService.sync_permissions(viewer)
            viewer.refresh_from_db()

            self.assertTrue(RoleService.has_permission(viewer, "users", "view"))
            self.assertEqual(viewer.permissions_version, 2)


class UserApiTests(AuthClientMixin, TestCase):

    def setUp(self):
        self.admin = make_user("admin")
        self.auth = self.bearer(self.admin)

    def test_create_user_applies_role_defaults(self):
        response, body = self.call("post", "/users", {
            "username": "floor1",
            "email": "Floor1@TrackIQ.test",
            "password": "Strong@123",
            "role": "supervisor",
        }, auth=self.auth)

        self.assertEqual(response.status_code, 201)
        user = User.objects.get(username="floor1")
        self.assertEqual(user.email, "floor1@trackiq.test")
        self.assertEqual(user.permissions, RoleService.default_permissions("supervisor"))

    def test_weak_password_is_rejected(self):
        response, body = self.call("post", "/users", {
            "username": "floor2", "email": "floor2@trackiq.test", "password": "weakpass",
        }, auth=self.auth)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(body["errors"][0]["field"], "password")

    def test_role_change_resets_permissions(self):
        viewer = make_user("viewer")

        response, _ = self.call("patch", f"/users/{viewer.id}", {"role": "manager"}, auth=self.auth)

        self.assertEqual(response.status_code, 200)
        viewer.refresh_from_db()
        self.assertTrue(RoleService.has_permission(viewer, "bom", "approve"))

    def test_cannot_delete_self(self):
        response, _ = self.call("delete", f"/users/{self.admin.id}", auth=self.auth)
        self.assertEqual(response.status_code, 400)

    def test_viewer_cannot_manage_users(self):
        viewer = make_user("viewer")
        response, _ = self.call("get", "/users", auth=self.bearer(viewer))
        self.assertEqual(response.status_code, 403)


class BrandApiTests(AuthClientMixin, TestCase):

    def setUp(self):
        self.admin = make_user("admin")
        self.auth = self.bearer(self.admin)

    def test_admin_creates_brand_with_upper_code(self):
        response, body = self.call("post", "/brands", {
            "name": "Green Valley", "code": "gv-001", "address": {"city": "Austin"},
        }, auth=self.auth)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(Brand.objects.get(name="Green Valley").code, "GV-001")

    def test_duplicate_code_is_rejected(self):
        make_brand(code="GV-001", name="Green Valley")

        response, body = self.call("post", "/brands", {"name": "Other", "code": "gv-001"}, auth=self.auth)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(body["errors"][0]["field"], "code")

    def test_only_admin_mutates_brands(self):
        manager = make_user("manager")

        response, _ = self.call("post", "/brands", {"name": "X", "code": "X-1"}, auth=self.bearer(manager))
        self.assertEqual(response.status_code, 403)

        response, _ = self.call("get", "/brands", auth=self.bearer(manager))
        self.assertEqual(response.status_code, 200)

    def test_brand_with_materials_cannot_be_deleted(self):
        brand = make_brand()
        make_material(brand)

        response, body = self.call("delete", f"/brands/{brand.id}", auth=self.auth)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(body["error"]["details"]["rule"], "brand_has_dependents")
        self.assertIn("raw materials", body["message"])
        self.assertTrue(Brand.objects.filter(id=brand.id).exists())

    def test_brand_detail_includes_summary(self):
        brand = make_brand()
        make_material(brand)

        _, body = self.call("get", f"/brands/{brand.id}", auth=self.auth)

        self.assertEqual(body["data"]["summary"]["raw_materials"], 1)


class HealthTests(TestCase):

    def test_health_is_public(self):
        response = self.client.get(f"{API}/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["database"], "ok")
