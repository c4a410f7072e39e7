from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from main.helpers.auth import require_auth
from main.helpers.response import APIResponse, handle_service_error
from ..services.role_service import RoleService


@csrf_exempt
@require_http_methods(["GET"])
@require_auth
def list_roles(request):
    result = RoleService.get_all_roles()
    return APIResponse.from_result(result)


@csrf_exempt
@require_http_methods(["GET"])
@require_auth
def get_role(request, role_code):
    try:
        result = RoleService.get_role(role_code)
        return APIResponse.from_result(result)
    except Exception as e:
        return handle_service_error(e)
