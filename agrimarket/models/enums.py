"""Enum values and the casing convention at the storage/wire boundary.

The database stores upper-case values (``FARMER``, ``AVAILABLE``); tokens and
JSON carry lower-case ones (``farmer``, ``available``).
"""
from typing import Iterable

ROLES = ("admin", "farmer", "buyer")
PRODUCT_STATUSES = ("available", "sold", "reserved")

ADMIN, FARMER, BUYER = ("ADMIN", "FARMER", "BUYER")
AVAILABLE, SOLD, RESERVED = ("AVAILABLE", "SOLD", "RESERVED")
PENDING, CONFIRMED, SHIPPED, DELIVERED, CANCELLED = (
    "PENDING", "CONFIRMED", "SHIPPED", "DELIVERED", "CANCELLED"
)


def to_storage(value: str, allowed: Iterable[str]) -> str:
    if not isinstance(value, str):
        raise ValueError(f"Expected a string, got {type(value).__name__}")
    normalized = value.strip().lower()
    if normalized not in allowed:
        raise ValueError(f"Invalid value '{value}'. Must be one of: {', '.join(allowed)}")
    return normalized.upper()


def to_wire(value):
    if value is None:
        return None
    return str(value).lower()


def role_to_storage(role: str) -> str:
    return to_storage(role, ROLES)


def role_to_wire(role: str) -> str:
    wire = to_wire(role)
    if wire not in ROLES:
        raise ValueError(f"Unknown role '{role}'")
    return wire
