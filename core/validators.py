"""
Input checks shared by the transaction, conversation and message services.
"""
import uuid
from typing import Any, Dict

from core.exceptions import ValidationError


def is_valid_id(value: Any) -> bool:
    """Return True if value is a syntactically valid record identifier (UUID string)."""
    if not isinstance(value, str) or not value:
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def require_fields(fields: Dict[str, Any], message: str = "Missing required fields") -> None:
    """Raise ValidationError naming every field that is None or blank."""
    missing = [
        name for name, value in fields.items()
        if value is None or (isinstance(value, str) and not value.strip())
    ]
    if missing:
        raise ValidationError(message, details={"missing": missing})


def require_valid_id(value: Any, field: str, label: str) -> str:
    if not is_valid_id(value):
        raise ValidationError(f"Invalid {label} id", field=field)
    return value
