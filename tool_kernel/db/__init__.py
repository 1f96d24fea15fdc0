"""Database layer - engine, base classes, types, and immutability."""

from tool_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from tool_kernel.db.engine import Database
from tool_kernel.db.types import round_money

__all__ = [
    "Database",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "round_money",
]
