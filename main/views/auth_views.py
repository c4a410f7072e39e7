from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from main.helpers.auth import require_auth
from main.helpers.request import parse_json_body, validate_payload
from main.helpers.response import APIResponse, handle_service_error
from main.serializers import LoginSerializer
from main.services.auth_service import AuthService
from main.services.user_service import UserService


def get_client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', '')


@csrf_exempt
@require_http_methods(["POST"])
def login(request):
    try:
        data = validate_payload(LoginSerializer, parse_json_body(request))
        result = AuthService.login(
            email=data['email'],
            password=data['password'],
            ip_address=get_client_ip(request),
            user_agent=request.META.get('HTTP_USER_AGENT', ''),
        )
    except Exception as e:
        return handle_service_error(e)

    return APIResponse.success(
        data={
            'token': result['token'],
            'user': UserService._serialize_user(result['user']),
        },
        message='Login successful',
    )


@csrf_exempt
@require_http_methods(["POST"])
@require_auth
def logout(request):
    try:
        AuthService.logout(request.auth_token)
    except Exception as e:
        return handle_service_error(e)

    return APIResponse.success(message='Logged out successfully')


@csrf_exempt
@require_http_methods(["GET"])
@require_auth
def me(request):
    return APIResponse.success(data={'user': UserService._serialize_user(request.auth_user)})
