"""
OAuth identity providers.
"""

from headless_oauth.core.oauth.providers.apple import AppleClientSecretGenerator, AppleProvider
from headless_oauth.core.oauth.providers.base import BaseOAuthProvider, RefreshableOAuthProvider
from headless_oauth.core.oauth.providers.facebook import FacebookProvider
from headless_oauth.core.oauth.providers.github import GitHubProvider
from headless_oauth.core.oauth.providers.google import GoogleProvider
from headless_oauth.core.oauth.providers.linkedin import LinkedInProvider
from headless_oauth.core.oauth.providers.oidc import OpenIdConnectProvider

__all__ = [
    "BaseOAuthProvider",
    "RefreshableOAuthProvider",
    "GoogleProvider",
    "AppleProvider",
    "AppleClientSecretGenerator",
    "FacebookProvider",
    "GitHubProvider",
    "LinkedInProvider",
    "OpenIdConnectProvider",
]
