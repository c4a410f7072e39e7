import json

from stock.services.base_service import ValidationError


def parse_json_body(request) -> dict:
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON body", "body")
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object", "body")
    return data


def flatten_errors(errors, prefix: str = "") -> list:
    """Turn DRF's nested ``serializer.errors`` into [{field, message}, ...]."""
    flat = []
    if isinstance(errors, dict):
        for field, value in errors.items():
            if field == "non_field_errors":
                name = prefix or field
            else:
                name = f"{prefix}.{field}" if prefix else field
            flat.extend(flatten_errors(value, name))
    elif isinstance(errors, list):
        for index, value in enumerate(errors):
            if isinstance(value, (dict, list)):
                flat.extend(flatten_errors(value, f"{prefix}.{index}" if prefix else str(index)))
            else:
                flat.append({"field": prefix, "message": str(value)})
    else:
        flat.append({"field": prefix, "message": str(errors)})
    return flat


def validate_payload(serializer_class, data: dict, instance=None, partial: bool = False) -> dict:
    serializer = serializer_class(instance=instance, data=data, partial=partial)
    if not serializer.is_valid():
        errors = flatten_errors(serializer.errors)
        raise ValidationError(
            "; ".join(f"{e['field']}: {e['message']}" for e in errors) or "Validation failed",
            errors[0]["field"] if errors else None,
            errors,
        )
    return dict(serializer.validated_data)


def query_int(request, name: str, default=None):
    value = request.GET.get(name)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", name)
