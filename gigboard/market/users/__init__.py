"""Registered marketplace users."""

from gigboard.market.users.models import User, UserRole
from gigboard.market.users.storage import InMemoryUserStorage, SupabaseUserStorage, UserStorage

__all__ = ["User", "UserRole", "UserStorage", "InMemoryUserStorage", "SupabaseUserStorage"]
