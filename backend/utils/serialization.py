"""
JSON helpers for values JavaScript clients cannot represent natively.

Identifiers are 64-bit integers in the database. Anything above 2**53 loses
precision as a JSON number, so every identifier leaves the API as a string.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional


def id_to_str(value: Optional[int]) -> Optional[str]:
    """Render an identifier as a decimal string (None stays None)."""
    if value is None:
        return None
    return str(value)


def parse_id(value, field: str = "id") -> Optional[int]:
    """
    Parse an identifier sent as a JSON number or decimal string.

    Raises:
        ValueError: If the value is not an integer
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Field '{field}' must be an integer identifier")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text.lstrip("-").isdigit():
        raise ValueError(f"Field '{field}' must be an integer identifier")
    return int(text)


def iso_or_none(value: Optional[date | datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def money(value: Optional[Decimal | int | float | str]) -> Decimal:
    """Quantize a monetary value to cents; None becomes 0.00."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(Decimal("0.01"))
