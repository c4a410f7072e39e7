from django.views import View
from django.views.decorators.csrf import csrf_exempt
from django.utils.decorators import method_decorator

from main.helpers.auth import METHOD_ACTIONS, authenticate_request, authorize
from main.helpers.request import parse_json_body, query_int, validate_payload
from main.helpers.response import APIResponse, handle_service_error
from stock import serializers
from stock.models import Production
from stock.services import (
    ValidationError,
    RawMaterialService, FinishedProductService,
    BOMService, ProductionService, InventoryService,
)


class BaseStockView(View):
    """
    Authenticates every request, then checks ``permission_module`` with the
    action implied by the HTTP method unless ``permission_actions`` overrides it.
    """
    permission_module = None
    permission_actions = {}

    @method_decorator(csrf_exempt)
    def dispatch(self, request, *args, **kwargs):
        try:
            user = authenticate_request(request)
            if self.permission_module:
                authorize(user, self.permission_module, self.get_permission_action(request, **kwargs))
        except Exception as e:
            return handle_service_error(e)
        return super().dispatch(request, *args, **kwargs)

    def get_permission_action(self, request, **kwargs):
        return self.permission_actions.get(request.method) or METHOD_ACTIONS.get(request.method, "view")

    def get_json_body(self, request):
        return parse_json_body(request)

    def get_user(self, request):
        return getattr(request, "auth_user", None)

    def get_page(self, request, default_per_page: int = 20):
        return {
            "page": query_int(request, "page", 1),
            "per_page": query_int(request, "per_page", default_per_page),
        }

    def success(self, result: dict, status: int = 200):
        return APIResponse.from_result(result, status=status)


# ==================== RAW MATERIALS ====================

class RawMaterialListView(BaseStockView):
    permission_module = "raw-materials"

    def get(self, request):
        try:
            result = RawMaterialService.list(
                brand_id=query_int(request, "brand_id"),
                search=request.GET.get("search"),
                category=request.GET.get("category"),
                status=request.GET.get("status"),
                **self.get_page(request),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = validate_payload(serializers.RawMaterialSerializer, self.get_json_body(request))
            result = RawMaterialService.create(**data)
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class RawMaterialLowStockView(BaseStockView):
    permission_module = "raw-materials"

    def get(self, request):
        try:
            result = RawMaterialService.get_low_stock(brand_id=query_int(request, "brand_id"))
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class RawMaterialDetailView(BaseStockView):
    permission_module = "raw-materials"

    def get(self, request, material_id):
        try:
            result = RawMaterialService.get(material_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, material_id):
        try:
            material = RawMaterialService.get_or_404(material_id)
            data = validate_payload(
                serializers.RawMaterialSerializer, self.get_json_body(request),
                instance=material, partial=True,
            )
            result = RawMaterialService.update(material_id, **data)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    patch = put

    def delete(self, request, material_id):
        try:
            result = RawMaterialService.delete(material_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


# ==================== FINISHED PRODUCTS ====================

class FinishedProductListView(BaseStockView):
    permission_module = "finished-products"

    def get(self, request):
        try:
            result = FinishedProductService.list(
                brand_id=query_int(request, "brand_id"),
                search=request.GET.get("search"),
                category=request.GET.get("category"),
                status=request.GET.get("status"),
                **self.get_page(request),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = validate_payload(serializers.FinishedProductSerializer, self.get_json_body(request))
            result = FinishedProductService.create(**data)
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class FinishedProductLowStockView(BaseStockView):
    permission_module = "finished-products"

    def get(self, request):
        try:
            result = FinishedProductService.get_low_stock(brand_id=query_int(request, "brand_id"))
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class FinishedProductDetailView(BaseStockView):
    permission_module = "finished-products"

    def get(self, request, product_id):
        try:
            result = FinishedProductService.get(product_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, product_id):
        try:
            product = FinishedProductService.get_or_404(product_id)
            data = validate_payload(
                serializers.FinishedProductSerializer, self.get_json_body(request),
                instance=product, partial=True,
            )
            result = FinishedProductService.update(product_id, **data)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    patch = put

    def delete(self, request, product_id):
        try:
            result = FinishedProductService.delete(product_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


# ==================== BILLS OF MATERIALS ====================

class BOMListView(BaseStockView):
    permission_module = "bom"

    def get(self, request):
        try:
            if request.GET.get("active") == "true" and request.GET.get("brand_id"):
                result = BOMService.get_active_by_brand(query_int(request, "brand_id"))
            else:
                result = BOMService.list(
                    brand_id=query_int(request, "brand_id"),
                    product_id=query_int(request, "product_id"),
                    status=request.GET.get("status"),
                    **self.get_page(request),
                )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = validate_payload(serializers.BOMSerializer, self.get_json_body(request))
            result = BOMService.create(**data)
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class BOMDetailView(BaseStockView):
    permission_module = "bom"

    def get(self, request, bom_id):
        try:
            result = BOMService.get(bom_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, bom_id):
        try:
            data = validate_payload(serializers.BOMUpdateSerializer, self.get_json_body(request), partial=True)
            result = BOMService.update(bom_id, **data)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    patch = put

    def delete(self, request, bom_id):
        try:
            result = BOMService.delete(bom_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class BOMMaterialsView(BaseStockView):
    """POST appends one line; PUT replaces the whole list."""
    permission_module = "bom"
    permission_actions = {"POST": "edit"}

    def post(self, request, bom_id):
        try:
            data = validate_payload(serializers.BOMLineSerializer, self.get_json_body(request))
            result = BOMService.add_material(bom_id, **data)
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, bom_id):
        try:
            body = self.get_json_body(request)
            if not isinstance(body.get("materials"), list):
                raise ValidationError("materials must be a list", "materials")
            lines = [
                validate_payload(serializers.BOMLineSerializer, line if isinstance(line, dict) else {})
                for line in body["materials"]
            ]
            result = BOMService.replace_materials(bom_id, lines)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class BOMMaterialDetailView(BaseStockView):
    permission_module = "bom"
    permission_actions = {"DELETE": "edit"}

    def put(self, request, line_id):
        try:
            data = validate_payload(serializers.BOMLineSerializer, self.get_json_body(request), partial=True)
            result = BOMService.update_material(line_id, **data)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    patch = put

    def delete(self, request, line_id):
        try:
            result = BOMService.remove_material(line_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class BOMRequirementsView(BaseStockView):
    permission_module = "bom"

    def get(self, request, bom_id):
        try:
            result = BOMService.get_requirements(bom_id, request.GET.get("quantity"))
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class BOMAvailabilityView(BaseStockView):
    permission_module = "bom"

    def get(self, request, bom_id):
        try:
            result = BOMService.check_availability(bom_id, request.GET.get("quantity"))
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class BOMActionView(BaseStockView):
    permission_module = "bom"

    ACTION_PERMISSIONS = {
        "activate": "approve",
        "archive": "approve",
        "draft": "approve",
        "approve": "approve",
        "recalculate": "edit",
        "new-version": "create",
    }

    def get_permission_action(self, request, **kwargs):
        return self.ACTION_PERMISSIONS.get(kwargs.get("action"), "edit")

    def post(self, request, bom_id, action):
        try:
            if action == "activate":
                result = BOMService.activate(bom_id)
            elif action == "archive":
                result = BOMService.archive(bom_id)
            elif action == "draft":
                result = BOMService.restore_draft(bom_id)
            elif action == "recalculate":
                result = BOMService.recalculate(bom_id)
            elif action == "approve":
                data = validate_payload(serializers.ApprovalSerializer, self.get_json_body(request))
                result = BOMService.approve(bom_id, **data)
            elif action == "new-version":
                data = validate_payload(serializers.NewVersionSerializer, self.get_json_body(request))
                return self.success(BOMService.new_version(bom_id, data["version"]), 201)
            else:
                raise ValidationError(f"Unknown action: {action}", "action")

            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


# ==================== PRODUCTION ====================

class ProductionListView(BaseStockView):
    permission_module = "production"

    def get(self, request):
        try:
            result = ProductionService.list(
                brand_id=query_int(request, "brand_id"),
                product_id=query_int(request, "product_id"),
                status=request.GET.get("status"),
                **self.get_page(request),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = validate_payload(serializers.ProductionSerializer, self.get_json_body(request))
            result = ProductionService.create(**data)
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class ProductionSummaryView(BaseStockView):
    permission_module = "production"

    def get(self, request):
        try:
            result = ProductionService.get_summary(
                start_date=request.GET.get("start_date"),
                end_date=request.GET.get("end_date"),
                brand_id=query_int(request, "brand_id"),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class ProductionDetailView(BaseStockView):
    permission_module = "production"

    def get(self, request, production_id):
        try:
            result = ProductionService.get(production_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, production_id):
        try:
            data = validate_payload(serializers.ProductionUpdateSerializer, self.get_json_body(request), partial=True)
            result = ProductionService.update(production_id, **data)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    patch = put

    def delete(self, request, production_id):
        try:
            result = ProductionService.delete(production_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class ProductionStatusView(BaseStockView):
    """Approving or rejecting a batch needs the approve grant; other moves need edit."""
    permission_module = "production"

    def get_permission_action(self, request, **kwargs):
        try:
            target = self.get_json_body(request).get("status")
        except ValidationError:
            return "edit"
        if target in (Production.Status.APPROVED, Production.Status.REJECTED):
            return "approve"
        return "edit"

    def put(self, request, production_id):
        try:
            data = validate_payload(serializers.StatusSerializer, self.get_json_body(request))
            result = ProductionService.change_status(production_id, data["status"])
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    post = put
    patch = put


class ProductionMaterialsView(BaseStockView):
    permission_module = "production"
    permission_actions = {"POST": "edit"}

    def post(self, request, production_id):
        try:
            data = validate_payload(serializers.ConsumedMaterialSerializer, self.get_json_body(request))
            result = ProductionService.add_material(production_id, **data)
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class ProductionMaterialDetailView(BaseStockView):
    permission_module = "production"
    permission_actions = {"DELETE": "edit"}

    def delete(self, request, line_id):
        try:
            result = ProductionService.remove_material(line_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class ProductionStaffView(BaseStockView):
    permission_module = "production"
    permission_actions = {"POST": "edit"}

    def post(self, request, production_id):
        try:
            data = validate_payload(serializers.StaffSerializer, self.get_json_body(request))
            result = ProductionService.add_staff(production_id, **data)
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class ProductionStaffDetailView(BaseStockView):
    permission_module = "production"
    permission_actions = {"DELETE": "edit"}

    def delete(self, request, staff_id):
        try:
            result = ProductionService.remove_staff(staff_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class ProductionQualityCheckView(BaseStockView):
    permission_module = "production"
    permission_actions = {"POST": "edit"}

    def post(self, request, production_id):
        try:
            data = validate_payload(serializers.QualityCheckSerializer, self.get_json_body(request))
            result = ProductionService.add_quality_check(
                production_id, checked_by=self.get_user(request).username, **data
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class ProductionIssueView(BaseStockView):
    permission_module = "production"
    permission_actions = {"POST": "edit"}

    def post(self, request, production_id):
        try:
            data = validate_payload(serializers.IssueSerializer, self.get_json_body(request))
            result = ProductionService.report_issue(
                production_id, reported_by=self.get_user(request).username, **data
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class ProductionIssueResolveView(BaseStockView):
    permission_module = "production"
    permission_actions = {"POST": "edit", "PUT": "edit"}

    def post(self, request, issue_id):
        try:
            data = validate_payload(serializers.ResolveIssueSerializer, self.get_json_body(request))
            result = ProductionService.resolve_issue(
                issue_id, data["action"], resolved_by=self.get_user(request).username
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    put = post


class ProductionNoteView(BaseStockView):
    permission_module = "production"
    permission_actions = {"POST": "edit"}

    def post(self, request, production_id):
        try:
            data = validate_payload(serializers.NoteSerializer, self.get_json_body(request))
            result = ProductionService.add_note(
                production_id, data["content"], author=self.get_user(request).username
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class ProductionValidationView(BaseStockView):
    permission_module = "production"

    def get(self, request, production_id):
        try:
            result = ProductionService.validate_completion(production_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class ProductionPostInventoryView(BaseStockView):
    permission_module = "production"
    permission_actions = {"POST": "approve"}

    def post(self, request, production_id):
        try:
            result = ProductionService.post_to_inventory(production_id, user=self.get_user(request))
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


# ==================== INVENTORY ====================

class InventoryListView(BaseStockView):
    permission_module = "inventory"

    def get(self, request):
        try:
            result = InventoryService.list(
                brand_id=query_int(request, "brand_id"),
                item_type=request.GET.get("item_type"),
                **self.get_page(request),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = validate_payload(serializers.InventoryCreateSerializer, self.get_json_body(request))
            result = InventoryService.create(**data)
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


def _require_brand_id(request) -> int:
    brand_id = query_int(request, "brand_id")
    if not brand_id:
        raise ValidationError("brand_id is required", "brand_id")
    return brand_id


class InventoryLowStockView(BaseStockView):
    permission_module = "inventory"

    def get(self, request):
        try:
            result = InventoryService.get_low_stock(_require_brand_id(request))
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class InventoryValueView(BaseStockView):
    permission_module = "inventory"

    def get(self, request):
        try:
            result = InventoryService.get_value(_require_brand_id(request))
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class InventoryItemTransactionView(BaseStockView):
    """Append a movement by item reference, opening the ledger on first use."""
    permission_module = "inventory"

    def post(self, request):
        try:
            data = validate_payload(serializers.ItemTransactionSerializer, self.get_json_body(request))
            result = InventoryService.add_item_transaction(
                data.pop("item_type"), data.pop("item_id"), data.pop("brand"),
                user=self.get_user(request), **data
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class InventoryDetailView(BaseStockView):
    permission_module = "inventory"

    def get(self, request, inventory_id):
        try:
            result = InventoryService.get(inventory_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, inventory_id):
        try:
            data = validate_payload(serializers.InventoryLimitsSerializer, self.get_json_body(request), partial=True)
            result = InventoryService.update_limits(inventory_id, **data)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    patch = put


class InventoryTransactionView(BaseStockView):
    permission_module = "inventory"

    def get(self, request, inventory_id):
        try:
            result = InventoryService.get_transactions(
                inventory_id,
                type=request.GET.get("type"),
                **self.get_page(request, default_per_page=50),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request, inventory_id):
        try:
            data = validate_payload(serializers.TransactionSerializer, self.get_json_body(request))
            result = InventoryService.add_transaction(inventory_id, user=self.get_user(request), **data)
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)
