from typing import Dict, Any, Optional, List, Tuple
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import datetime
from django.db.models import Model
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime


class ServiceError(Exception):
    def __init__(self, message: str, code: str = "ERROR", details: Dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationError(ServiceError):
    def __init__(self, message: str, field: str = None, errors: List[Dict] = None):
        self.field = field
        self.errors = errors or ([{"field": field, "message": message}] if field else [])
        super().__init__(message, "VALIDATION_ERROR", {"errors": self.errors})


class AuthenticationError(ServiceError):
    def __init__(self, message: str = "Not authorized, no token"):
        super().__init__(message, "UNAUTHORIZED")


class PermissionDeniedError(ServiceError):
    def __init__(self, message: str = "Not authorized to access this resource", module: str = None, action: str = None):
        super().__init__(message, "FORBIDDEN", {"module": module, "action": action})


class NotFoundError(ServiceError):
    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found: {identifier}",
            "NOT_FOUND",
            {"resource": resource, "identifier": str(identifier)}
        )


class BusinessRuleError(ServiceError):
    def __init__(self, message: str, rule: str = None):
        super().__init__(message, "BUSINESS_RULE_VIOLATION", {"rule": rule})


class InsufficientStockError(ServiceError):
    def __init__(self, item_name: str, required: Decimal, available: Decimal):
        super().__init__(
            f"Insufficient stock for {item_name}: required {required}, available {available}",
            "INSUFFICIENT_STOCK",
            {"item": item_name, "required": str(required), "available": str(available)}
        )


def success_response(data: Any = None, message: str = "Success") -> Dict:
    return {"success": True, "data": data, "message": message}


def paginate_queryset(queryset, page: int = 1, per_page: int = 20) -> Tuple[List, Dict]:
    page = max(1, page)
    per_page = min(max(1, per_page), 100)

    total = queryset.count()
    total_pages = (total + per_page - 1) // per_page

    offset = (page - 1) * per_page
    items = list(queryset[offset:offset + per_page])

    return items, {
        "page": page,
        "per_page": per_page,
        "total_items": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1
    }


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value is None or value == "":
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def require_decimal(value: Any, field: str, minimum: Decimal = None) -> Decimal:
    """Strict variant of to_decimal used on request input: bad numbers are errors, not zeros."""
    if value is None or value == "":
        raise ValidationError(f"{field} is required", field)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number", field)
    if not result.is_finite():
        raise ValidationError(f"{field} must be a number", field)
    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be at least {minimum}", field)
    return result


def round_decimal(value: Decimal, places: int = 4) -> Decimal:
    # Unsaved model defaults arrive as plain ints.
    value = to_decimal(value)
    quantize_str = "0." + "0" * places if places else "1"
    return value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)


def to_datetime(value: Any, field: str) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = parse_datetime(str(value))
        if parsed is None:
            day = parse_date(str(value))
            if day is None:
                raise ValidationError(f"{field} must be an ISO date", field)
            parsed = datetime(day.year, day.month, day.day)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def money(value: Decimal) -> str:
    return str(round_decimal(value, 4))


def generate_batch_number(model_class: Model, field: str = "batch_number") -> str:
    """YYYYMM-NNNN, one sequence per calendar month across every brand."""
    month_part = timezone.now().strftime("%Y%m")
    filter_kwargs = {f"{field}__startswith": f"{month_part}-"}
    existing = model_class.objects.filter(**filter_kwargs).values_list(field, flat=True)

    # Compared as numbers: "-10000" sorts before "-9999" as text.
    last_seq = 0
    for value in existing:
        suffix = value.split("-")[-1]
        if suffix.isdigit():
            last_seq = max(last_seq, int(suffix))

    return f"{month_part}-{last_seq + 1:04d}"


def date_bounds(start: Any, end: Any) -> Tuple[datetime, datetime]:
    start_at = to_datetime(start, "start_date")
    end_at = to_datetime(end, "end_date")
    if not start_at or not end_at:
        raise ValidationError("start_date and end_date are required", "start_date")
    if isinstance(end, str) and len(end) == 10:
        end_at = end_at.replace(hour=23, minute=59, second=59)
    if end_at < start_at:
        raise ValidationError("end_date must be after start_date", "end_date")
    return start_at, end_at


class BaseService:
    model = None
    resource_name = None

    @classmethod
    def _resource(cls) -> str:
        return cls.resource_name or cls.model.__name__

    @classmethod
    def get_by_id(cls, id: int) -> Optional[Model]:
        try:
            return cls.model.objects.get(id=id)
        except (cls.model.DoesNotExist, ValueError):
            return None

    @classmethod
    def get_by_uuid(cls, uuid_str: str) -> Optional[Model]:
        try:
            return cls.model.objects.get(uuid=uuid_str)
        except (cls.model.DoesNotExist, ValueError):
            return None

    @classmethod
    def get_or_404(cls, id: int) -> Model:
        obj = cls.get_by_id(id)
        if not obj:
            raise NotFoundError(cls._resource(), id)
        return obj

    @classmethod
    def exists(cls, id: int) -> bool:
        return cls.model.objects.filter(id=id).exists()

    @classmethod
    def get_active(cls):
        if hasattr(cls.model, 'status'):
            return cls.model.objects.filter(status="active")
        return cls.model.objects.all()
