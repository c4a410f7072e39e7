from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from main.helpers.auth import require_permission
from main.helpers.request import parse_json_body, query_int, validate_payload
from main.helpers.response import APIResponse, handle_service_error
from main.serializers import UserCreateSerializer, UserUpdateSerializer
from ..services.user_service import UserService


@csrf_exempt
@require_http_methods(["GET", "POST"])
@require_permission('users')
def users(request):
    try:
        if request.method == 'POST':
            data = validate_payload(UserCreateSerializer, parse_json_body(request))
            result = UserService.create_user(**data)
            return APIResponse.from_result(result, status=201)

        result = UserService.get_all_users(
            page=query_int(request, 'page', 1),
            per_page=query_int(request, 'per_page', 20),
            search=request.GET.get('search'),
            role=request.GET.get('role'),
            status=request.GET.get('status'),
        )
        return APIResponse.from_result(result)
    except Exception as e:
        return handle_service_error(e)


@csrf_exempt
@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@require_permission('users')
def user_detail(request, user_id):
    try:
        if request.method == 'GET':
            result = UserService.get_user(user_id)
        elif request.method == 'DELETE':
            result = UserService.delete_user(user_id, acting_user=request.auth_user)
        else:
            data = validate_payload(UserUpdateSerializer, parse_json_body(request), partial=True)
            result = UserService.update_user(user_id, **data)
        return APIResponse.from_result(result)
    except Exception as e:
        return handle_service_error(e)


@csrf_exempt
@require_http_methods(["POST"])
@require_permission('users', 'edit')
def sync_permissions(request, user_id):
    try:
        result = UserService.sync_permissions(user_id)
        return APIResponse.from_result(result)
    except Exception as e:
        return handle_service_error(e)
