"""
Response Field Policies

Upstream payloads are decoded JSON (dicts and lists). Rather than scattering
`.get(..., 0)` calls through every mapper, each mapper declares a policy table
that says what happens when a field is missing or not numeric:

    REQUIRED      -> raise MalformedResponseError
    DEFAULT_ZERO  -> Decimal(0)
    OMIT          -> None

Example:
    MARKET_FIELDS = {
        "current_price": FieldPolicy.REQUIRED,
        "total_volume": FieldPolicy.DEFAULT_ZERO,
        "total_supply": FieldPolicy.OMIT,
    }
    values = extract_fields(item, MARKET_FIELDS)
"""

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from core.errors import MalformedResponseError


class FieldPolicy(str, Enum):
    REQUIRED = "required"
    DEFAULT_ZERO = "default_zero"
    OMIT = "omit"


def parse_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert a JSON value to Decimal.

    Returns None for missing, boolean, or non-numeric values.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def extract_decimal(payload: Mapping[str, Any], key: str, policy: FieldPolicy) -> Optional[Decimal]:
    """
    Read one numeric field from a payload according to its policy.

    Raises:
        MalformedResponseError: Field is REQUIRED and missing or not numeric
    """
    value = parse_decimal(payload.get(key))
    if value is not None:
        return value

    if policy is FieldPolicy.REQUIRED:
        raise MalformedResponseError(f"Required field '{key}' is missing or not numeric")
    if policy is FieldPolicy.DEFAULT_ZERO:
        return Decimal(0)
    return None


def extract_fields(payload: Mapping[str, Any], policies: Mapping[str, FieldPolicy]) -> Dict[str, Optional[Decimal]]:
    """Apply a whole policy table to a payload."""
    return {key: extract_decimal(payload, key, policy) for key, policy in policies.items()}


def require_mapping(value: Any, what: str) -> Dict[str, Any]:
    """Ensure a decoded JSON value is an object."""
    if not isinstance(value, dict):
        raise MalformedResponseError(f"Expected an object for {what}, got {type(value).__name__}")
    return value


def require_list(value: Any, what: str) -> list:
    """Ensure a decoded JSON value is an array."""
    if not isinstance(value, list):
        raise MalformedResponseError(f"Expected an array for {what}, got {type(value).__name__}")
    return value
