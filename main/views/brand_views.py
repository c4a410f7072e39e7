from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from main.helpers.auth import require_auth, require_role
from main.helpers.request import parse_json_body, query_int, validate_payload
from main.helpers.response import APIResponse, handle_service_error
from main.models import User
from main.serializers import BrandSerializer
from ..services.brand_service import BrandService


@csrf_exempt
@require_http_methods(["GET", "POST"])
def brands(request):
    if request.method == 'POST':
        return create_brand(request)
    return list_brands(request)


@require_auth
def list_brands(request):
    try:
        result = BrandService.list(
            page=query_int(request, 'page', 1),
            per_page=query_int(request, 'per_page', 20),
            search=request.GET.get('search'),
            status=request.GET.get('status'),
        )
        return APIResponse.from_result(result)
    except Exception as e:
        return handle_service_error(e)


@require_role(User.RoleChoices.ADMIN)
def create_brand(request):
    try:
        data = validate_payload(BrandSerializer, parse_json_body(request))
        result = BrandService.create(**data)
        return APIResponse.from_result(result, status=201)
    except Exception as e:
        return handle_service_error(e)


@csrf_exempt
@require_http_methods(["GET"])
@require_auth
def active_brands(request):
    return APIResponse.from_result(BrandService.list_active())


@csrf_exempt
@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
def brand_detail(request, brand_id):
    if request.method == 'GET':
        return get_brand(request, brand_id)
    if request.method == 'DELETE':
        return delete_brand(request, brand_id)
    return update_brand(request, brand_id)


@require_auth
def get_brand(request, brand_id):
    try:
        return APIResponse.from_result(BrandService.get(brand_id))
    except Exception as e:
        return handle_service_error(e)


@require_role(User.RoleChoices.ADMIN)
def update_brand(request, brand_id):
    try:
        brand = BrandService.get_or_404(brand_id)
        data = validate_payload(BrandSerializer, parse_json_body(request), instance=brand, partial=True)
        result = BrandService.update(brand_id, **data)
        return APIResponse.from_result(result)
    except Exception as e:
        return handle_service_error(e)


@require_role(User.RoleChoices.ADMIN)
def delete_brand(request, brand_id):
    try:
        return APIResponse.from_result(BrandService.delete(brand_id))
    except Exception as e:
        return handle_service_error(e)
