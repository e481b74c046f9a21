"""
Service layer - business logic
"""

from .base import BaseService
from .oauth_service import OAuthResult, OAuthService, create_oauth_service
from .user_resolver import UserResolver, UserResolveResult, backfill_names

__all__ = [
    "BaseService",
    "OAuthService",
    "OAuthResult",
    "create_oauth_service",
    "UserResolver",
    "UserResolveResult",
    "backfill_names",
]
