"""DynamoDB type conversion utilities.

DynamoDB stores numbers as Decimal types, but our Pydantic models use float/int.
Records are written in their persisted (camelCase, JSON-mode) shape plus any
bookkeeping attributes such as ``version``.
"""

from decimal import Decimal
from typing import Any

from botocore.exceptions import ClientError
from pydantic import BaseModel


def decimal_to_python(obj: Any) -> Any:
    """
    Recursively convert DynamoDB Decimal types to Python float/int types.

    Args:
        obj: Any object that may contain Decimal values

    Returns:
        The object with all Decimal values converted to float or int
    """
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    elif isinstance(obj, dict):
        return {key: decimal_to_python(value) for key, value in obj.items()}
    elif isinstance(obj, (list, tuple, set)):
        return [decimal_to_python(item) for item in obj]
    return obj


def python_to_decimal(obj: Any) -> Any:
    """
    Recursively convert Python float/int types to Decimal for DynamoDB storage.

    Floats go through ``str`` after rounding to 6 places to avoid binary noise.
    """
    if isinstance(obj, float):
        return Decimal(str(round(obj, 6)))
    elif isinstance(obj, int) and not isinstance(obj, bool):
        return Decimal(obj)
    elif isinstance(obj, dict):
        return {key: python_to_decimal(value) for key, value in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [python_to_decimal(item) for item in obj]
    return obj


def model_to_item(model: BaseModel, **extra: Any) -> dict[str, Any]:
    """Serialize a model to a DynamoDB item in its persisted field names."""
    item = model.model_dump(mode="json", by_alias=True)
    item.update(extra)
    return python_to_decimal(item)


def item_to_dict(item: dict[str, Any] | None) -> dict[str, Any] | None:
    """Convert a DynamoDB item back to Python-native types."""
    if item is None:
        return None
    return decimal_to_python(item)


def is_conditional_check_failure(error: ClientError) -> bool:
    """True when a write lost an optimistic-concurrency or uniqueness condition."""
    return error.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"
