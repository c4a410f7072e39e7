import logging
import traceback

from django.conf import settings
from django.http import JsonResponse
from django.utils import timezone

from stock.services.base_service import (
    ServiceError, ValidationError, AuthenticationError, PermissionDeniedError,
    NotFoundError, BusinessRuleError, InsufficientStockError,
)

logger = logging.getLogger(__name__)


def _timestamp():
    return timezone.now().isoformat()


def show_error_detail() -> bool:
    return settings.DEBUG or getattr(settings, "ENVIRONMENT", "development") != "production"


class APIResponse:
    """Every API body is {success, data, message, timestamp}; errors add an ``error`` block."""

    @staticmethod
    def success(data=None, message="Success", status=200):
        return JsonResponse({
            "success": True,
            "data": data,
            "message": message,
            "timestamp": _timestamp(),
        }, status=status)

    @staticmethod
    def created(data=None, message="Created successfully"):
        return APIResponse.success(data=data, message=message, status=201)

    @staticmethod
    def from_result(result: dict, status: int = 200):
        return APIResponse.success(
            data=result.get("data"),
            message=result.get("message", "Success"),
            status=status,
        )

    @staticmethod
    def error(message="Request failed", code="error", status=400, details=None, **extra):
        body = {
            "success": False,
            "data": None,
            "message": message,
            "timestamp": _timestamp(),
            "error": {"code": code, "details": details or {}},
        }
        body.update(extra)
        return JsonResponse(body, status=status)

    @staticmethod
    def validation_error(errors, message="Validation failed"):
        return APIResponse.error(message=message, code="validation_error", status=400, errors=errors)

    @staticmethod
    def unauthorized(message="Not authorized"):
        return APIResponse.error(message=message, code="unauthorized", status=401)

    @staticmethod
    def forbidden(message="Forbidden"):
        return APIResponse.error(message=message, code="forbidden", status=403)

    @staticmethod
    def not_found(message="Resource not found"):
        return APIResponse.error(message=message, code="not_found", status=404)

    @staticmethod
    def server_error(exc: Exception):
        if show_error_detail():
            return APIResponse.error(
                message=str(exc) or exc.__class__.__name__,
                code="server_error",
                status=500,
                stack=traceback.format_exception(type(exc), exc, exc.__traceback__),
            )
        return APIResponse.error(message="Internal server error", code="server_error", status=500)


def handle_service_error(e: Exception):
    if isinstance(e, ValidationError):
        return APIResponse.validation_error(e.errors, e.message)
    elif isinstance(e, AuthenticationError):
        return APIResponse.unauthorized(e.message)
    elif isinstance(e, PermissionDeniedError):
        return APIResponse.forbidden(e.message)
    elif isinstance(e, NotFoundError):
        return APIResponse.not_found(e.message)
    elif isinstance(e, InsufficientStockError):
        return APIResponse.error(e.message, "insufficient_stock", 400, e.details)
    elif isinstance(e, BusinessRuleError):
        return APIResponse.error(e.message, "business_rule", 400, e.details)
    elif isinstance(e, ServiceError):
        return APIResponse.error(e.message, e.code.lower(), 400, e.details)
    else:
        logger.exception("Unhandled error while handling request")
        return APIResponse.server_error(e)
