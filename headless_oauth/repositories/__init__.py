"""
Repository layer - data access
"""

from .account_store import (
    AccountStore,
    CustomerRepository,
    ExternalIdentityRepository,
    ShopUserRepository,
    SqlAlchemyAccountStore,
)
from .base import BaseRepository

__all__ = [
    "BaseRepository",
    "AccountStore",
    "SqlAlchemyAccountStore",
    "CustomerRepository",
    "ShopUserRepository",
    "ExternalIdentityRepository",
]
