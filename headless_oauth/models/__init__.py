"""
Data models
"""

from .account import Customer, ShopUser
from .base import TimestampMixin
from .oauth_identity import ExternalIdentity

__all__ = [
    "Customer",
    "ShopUser",
    "ExternalIdentity",
    "TimestampMixin",
]
