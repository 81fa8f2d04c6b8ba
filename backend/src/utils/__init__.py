"""Utility functions for the ParkCheck backend."""

from .dynamodb_utils import decimal_to_python, item_to_dict, model_to_item, python_to_decimal

__all__ = [
    "decimal_to_python",
    "python_to_decimal",
    "model_to_item",
    "item_to_dict",
]
