"""
Request authentication and authorization for API views.

Function views use the decorators directly; class-based views call
``authenticate_request`` and ``authorize`` from their dispatch.
"""

from functools import wraps

from main.models import User
from main.helpers.response import handle_service_error
from main.services.auth_service import AuthService
from main.services.role_service import RoleService
from stock.services.base_service import AuthenticationError, PermissionDeniedError

# HTTP method -> permission action
METHOD_ACTIONS = {
    "GET": "view",
    "HEAD": "view",
    "POST": "create",
    "PUT": "edit",
    "PATCH": "edit",
    "DELETE": "delete",
}


def get_bearer_token(request):
    header = request.META.get("HTTP_AUTHORIZATION", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return None


def authenticate_request(request) -> User:
    token = get_bearer_token(request)
    if not token:
        raise AuthenticationError("Not authorized, no token")

    user = AuthService.get_user_from_token(token)
    if not user:
        raise AuthenticationError("Not authorized, token failed")

    if user.status != User.UserStatus.ACTIVE:
        raise AuthenticationError("Account is not active")

    request.auth_user = user
    request.auth_token = token
    return user


def authorize(user: User, module: str, action: str):
    if not RoleService.has_permission(user, module, action):
        raise PermissionDeniedError(
            f"Role {user.role} is not allowed to {action} {module}", module, action
        )


def require_auth(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            authenticate_request(request)
        except AuthenticationError as e:
            return handle_service_error(e)
        return view(request, *args, **kwargs)
    return wrapper


def require_role(*roles):
    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            try:
                user = authenticate_request(request)
                if user.role not in roles:
                    raise PermissionDeniedError(
                        f"User role {user.role} is not authorized to access this route"
                    )
            except (AuthenticationError, PermissionDeniedError) as e:
                return handle_service_error(e)
            return view(request, *args, **kwargs)
        return wrapper
    return decorator


def require_permission(module: str, action: str = None):
    """Authorize against the user's grants; ``action`` defaults to the one implied by the HTTP method."""
    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            try:
                user = authenticate_request(request)
                authorize(user, module, action or METHOD_ACTIONS.get(request.method, "view"))
            except (AuthenticationError, PermissionDeniedError) as e:
                return handle_service_error(e)
            return view(request, *args, **kwargs)
        return wrapper
    return decorator
